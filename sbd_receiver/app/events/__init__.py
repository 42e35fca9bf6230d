from .models import ReceiptEvent, ReceiptEventType
from .emitter import ReceiptEventEmitter, NullEventEmitter, emit_safely
from .memory_emitter import MemoryQueueEventEmitter

__all__ = [
    "ReceiptEvent",
    "ReceiptEventType",
    "ReceiptEventEmitter",
    "NullEventEmitter",
    "MemoryQueueEventEmitter",
    "emit_safely",
]
