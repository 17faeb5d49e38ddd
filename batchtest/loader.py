"""Load batch definitions from Python modules.

A batch module is any importable module exposing::

    def register_batches(registry: BatchRegistry) -> None:
        registry.register("my-package.smoke", declare_smoke, display_name="Smoke")

Each module's top-level package name is returned so the caller can accept
it as a known namespace.
"""

from __future__ import annotations

import importlib
import logging
from typing import Iterable

from batchtest.registry.batch_registry import BatchRegistry

logger = logging.getLogger(__name__)

REGISTER_HOOK = "register_batches"


def load_batch_modules(registry: BatchRegistry, module_names: Iterable[str]) -> list[str]:
    """Import each module and let it register its batches.

    Modules that fail to import, lack the hook or raise from it are logged
    and skipped. Returns the namespaces of the modules that loaded.
    """
    namespaces: list[str] = []
    for name in module_names:
        try:
            module = importlib.import_module(name)
        except Exception as e:
            logger.error("Could not import batch module %s: %s", name, e)
            continue

        hook = getattr(module, REGISTER_HOOK, None)
        if not callable(hook):
            logger.warning("Batch module %s has no %s(registry) function", name, REGISTER_HOOK)
            continue

        before = len(registry)
        try:
            hook(registry)
        except Exception:
            logger.exception("Batch module %s failed while registering batches", name)
            continue

        namespace = name.partition(".")[0]
        if namespace not in namespaces:
            namespaces.append(namespace)
        logger.debug("Loaded batch module %s (%d new batches)", name, len(registry) - before)

    return namespaces
