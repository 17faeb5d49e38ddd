"""Batch registration data structures."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Union

from pydantic import BaseModel, ConfigDict

# Called with the run's TestContext each time a run includes the batch.
RegistrationCallback = Callable[[Any], Union[None, Awaitable[None]]]


class BatchDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    registration_callback: RegistrationCallback
    display_name: str
    snapshot_base_dir: str  # relative to the store's base path
    pre_selected: bool = True  # initial UI selection only


class RegistrationWarning(BaseModel):
    kind: str  # invalid_key, unknown_namespace, already_exists
    key: str
    message: str
