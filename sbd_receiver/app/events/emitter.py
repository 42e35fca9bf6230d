from __future__ import annotations

import logging
from typing import Protocol

from sbd_receiver.app.events.models import ReceiptEvent

logger = logging.getLogger(__name__)


class ReceiptEventEmitter(Protocol):
    """
    Interface for broadcasting receipt observations.

    Implementations must be:
    - non-blocking (or minimally blocking)
    - fail-safe (emission failures must not fail the receipt)
    - observational only
    """

    async def emit(self, event: ReceiptEvent) -> None:
        ...


class NullEventEmitter:
    """
    A safe no-op emitter.

    Used when nobody is listening (pipeline invocations, tests that do
    not care about events).
    """

    async def emit(self, event: ReceiptEvent) -> None:
        return


async def emit_safely(emitter: ReceiptEventEmitter, event: ReceiptEvent) -> None:
    """
    Emit through a caller-supplied emitter.

    A failing emitter is logged and otherwise ignored; the receipt carries on.
    """
    try:
        await emitter.emit(event)
    except Exception:
        logger.debug(
            "event_emission_failed",
            extra={
                "message_id": event.message_id,
                "event_type": event.event_type.value,
            },
            exc_info=True,
        )
