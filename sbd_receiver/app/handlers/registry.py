"""
Explicit handler registry.

Handlers are registered at startup, either directly or from the
``handlers`` setting, and never change while envelopes are processed.
There is no plugin scanning: what is configured is what runs.
"""

from __future__ import annotations

import importlib
import logging
from typing import Iterable, Iterator, List

from sbd_receiver.app.handlers.base import IncomingSBDHandler

logger = logging.getLogger("sbd_receiver.handlers")


class HandlerRegistryError(RuntimeError):
    """A configured handler could not be loaded."""


class HandlerRegistry:
    def __init__(self, handlers: Iterable[IncomingSBDHandler] = ()) -> None:
        self._handlers: List[IncomingSBDHandler] = []
        for handler in handlers:
            self.register(handler)

    @classmethod
    def from_import_paths(cls, paths: Iterable[str]) -> "HandlerRegistry":
        """
        Build a registry from ``package.module:ClassName`` paths.

        Each class is instantiated without arguments. Any failure is fatal
        so misconfiguration surfaces at startup, not on first receipt.
        """
        registry = cls()
        for path in paths:
            registry.register(_instantiate(path))

        logger.debug("Loaded %d incoming SBD handler(s)", len(registry))
        return registry

    def register(self, handler: IncomingSBDHandler) -> None:
        if not isinstance(handler, IncomingSBDHandler):
            raise TypeError(
                f"{type(handler).__name__} does not implement IncomingSBDHandler"
            )
        self._handlers.append(handler)

    def __iter__(self) -> Iterator[IncomingSBDHandler]:
        # Iterate over a copy so late registrations never affect a dispatch
        return iter(list(self._handlers))

    def __len__(self) -> int:
        return len(self._handlers)


def _instantiate(path: str) -> IncomingSBDHandler:
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise HandlerRegistryError(
            f"Invalid handler path '{path}', expected 'package.module:ClassName'"
        )

    try:
        module = importlib.import_module(module_name)
        handler_cls = getattr(module, attr)
    except (ImportError, AttributeError) as exc:
        raise HandlerRegistryError(f"Cannot load handler '{path}': {exc}") from exc

    handler = handler_cls()
    if not isinstance(handler, IncomingSBDHandler):
        raise HandlerRegistryError(
            f"Handler '{path}' does not implement IncomingSBDHandler"
        )
    return handler
