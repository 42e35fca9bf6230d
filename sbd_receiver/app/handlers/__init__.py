from .base import IncomingSBDHandler
from .registry import HandlerRegistry, HandlerRegistryError
from .logging_handler import LoggingSBDHandler

__all__ = [
    "IncomingSBDHandler",
    "HandlerRegistry",
    "HandlerRegistryError",
    "LoggingSBDHandler",
]
