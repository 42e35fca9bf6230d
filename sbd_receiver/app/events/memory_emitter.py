from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, List

from sbd_receiver.app.events.emitter import ReceiptEventEmitter
from sbd_receiver.app.events.models import ReceiptEvent, ReceiptEventType

logger = logging.getLogger(__name__)


class MemoryQueueEventEmitter(ReceiptEventEmitter):
    """
    In-memory async event emitter.

    Properties:
    - single-consumer
    - deterministic ordering
    - terminates cleanly on receipt completion or failure
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[ReceiptEvent | None] = asyncio.Queue()
        self._closed = False

    async def emit(self, event: ReceiptEvent) -> None:
        if self._closed:
            return

        try:
            await self._queue.put(event)
        except Exception:
            # Fail-safe: never let observability break the receipt
            logger.debug("event_emission_failed", exc_info=True)
            return

        if event.event_type in {
            ReceiptEventType.RECEIPT_COMPLETED,
            ReceiptEventType.RECEIPT_FAILED,
        }:
            await self.close()

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            await self._queue.put(None)

    async def stream(self) -> AsyncIterator[ReceiptEvent]:
        """
        Async generator yielding emitted events in order.
        """
        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event

    async def drain(self) -> List[ReceiptEvent]:
        """Collect all events of a closed emitter."""
        return [event async for event in self.stream()]
