"""Batch registry - deferred registration of named test batches."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Iterator, Optional

from batchtest.models.batch import BatchDefinition, RegistrationCallback, RegistrationWarning
from batchtest.snapshots.store import SnapshotStore
from batchtest.utils import BATCH_KEY_SEPARATOR, get_batch_name_parts

logger = logging.getLogger(__name__)


class BatchRegistry:
    """Maps batch keys to their definitions, in registration order.

    Registration never raises: a malformed key, an unknown namespace or a
    duplicate key only produce a warning, and the batch is still stored.
    """

    def __init__(self, known_namespaces: Optional[Iterable[str]] = None):
        # None disables namespace validation
        self.known_namespaces: Optional[set[str]] = (
            set(known_namespaces) if known_namespaces is not None else None
        )
        self.warnings: list[RegistrationWarning] = []
        self._batches: dict[str, BatchDefinition] = {}
        self._listeners: list[Callable[[], None]] = []

    def add_known_namespaces(self, namespaces: Iterable[str]) -> None:
        if self.known_namespaces is None:
            self.known_namespaces = set()
        self.known_namespaces.update(namespaces)

    def subscribe(self, listener: Callable[[], None]) -> None:
        """Call `listener` after every registration (e.g. to reset a results view)."""
        self._listeners.append(listener)

    def register(
        self,
        key: str,
        callback: RegistrationCallback,
        *,
        display_name: Optional[str] = None,
        snapshot_base_dir: Optional[str] = None,
        pre_selected: bool = True,
    ) -> BatchDefinition:
        """Register (or replace) the batch `key`.

        `callback` is called with the run's test context every time a run
        includes this batch, and declares the batch's suites and tests.
        """
        if BATCH_KEY_SEPARATOR not in key:
            self._warn("invalid_key", key,
                       f'Batch key "{key}" has no namespace; use "<namespace>.<identifier>"')
        elif self.known_namespaces is not None:
            namespace, _ = get_batch_name_parts(key)
            if namespace not in self.known_namespaces:
                self._warn("unknown_namespace", key,
                           f'Batch key "{key}" uses unknown namespace "{namespace}"')

        if key in self._batches:
            self._warn("already_exists", key,
                       f'Batch "{key}" already exists; the new registration replaces it')

        batch = BatchDefinition(
            key=key,
            registration_callback=callback,
            display_name=display_name or key,
            snapshot_base_dir=snapshot_base_dir or SnapshotStore.get_default_snap_dir(key),
            pre_selected=pre_selected,
        )
        self._batches[key] = batch
        logger.debug("Registered batch %s (%s)", key, batch.display_name)

        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Registry listener failed after registering %s", key)
        return batch

    def _warn(self, kind: str, key: str, message: str) -> None:
        logger.warning(message)
        self.warnings.append(RegistrationWarning(kind=kind, key=key, message=message))

    def get(self, key: str) -> BatchDefinition | None:
        return self._batches.get(key)

    def keys(self) -> Iterator[str]:
        return iter(list(self._batches))

    def batches(self) -> Iterator[BatchDefinition]:
        return iter(list(self._batches.values()))

    def pre_selected_keys(self) -> list[str]:
        return [b.key for b in self._batches.values() if b.pre_selected]

    def snapshot_dir(self, key: str) -> Optional[str]:
        batch = self._batches.get(key)
        return batch.snapshot_base_dir if batch else None

    def __contains__(self, key: object) -> bool:
        return key in self._batches

    def __iter__(self) -> Iterator[str]:
        return self.keys()

    def __len__(self) -> int:
        return len(self._batches)
