"""Tests for configuration models."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from batchtest.models.config import BatchTestConfig


class TestBatchTestConfig:
    """Tests for BatchTestConfig model."""

    def test_default_values(self):
        """Test BatchTestConfig has correct default values."""
        config = BatchTestConfig()
        assert config.batch_modules == []
        assert config.known_namespaces is None
        assert config.selected_batches == []
        assert config.data_dir == ".batchtest"
        assert config.test_timeout_seconds == 10.0
        assert config.report_formats == ["json"]
        assert config.report_output_dir == "./batchtest-reports"

    def test_timeout_may_be_disabled(self):
        assert BatchTestConfig(test_timeout_seconds=None).test_timeout_seconds is None

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            BatchTestConfig(test_timeout_seconds=0)

    def test_save_and_load(self, tmp_path: Path):
        """Test BatchTestConfig round-trips through a JSON file."""
        path = tmp_path / "nested" / "batchtest.json"
        config = BatchTestConfig(batch_modules=["my_batches"], known_namespaces=["core"])
        config.save(path)

        with open(path) as f:
            data = json.load(f)
        assert data["batch_modules"] == ["my_batches"]

        loaded = BatchTestConfig.load(path)
        assert loaded == config

    def test_load_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            BatchTestConfig.load(tmp_path / "nope.json")

    def test_load_partial_file_uses_defaults(self, tmp_path: Path):
        path = tmp_path / "batchtest.json"
        path.write_text(json.dumps({"selected_batches": ["ns.a"]}))
        config = BatchTestConfig.load(path)
        assert config.selected_batches == ["ns.a"]
        assert config.data_dir == ".batchtest"
