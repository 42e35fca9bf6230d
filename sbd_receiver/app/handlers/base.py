from __future__ import annotations

from typing import Protocol, runtime_checkable

from sbd_receiver.app.schemas.sbdh import StandardBusinessDocument


@runtime_checkable
class IncomingSBDHandler(Protocol):
    """
    Application-level consumer of validated inbound documents.

    Handlers are invoked in registration order after the envelope has been
    parsed and, if enabled, the receiver check has passed. Raising fails
    the receipt.
    """

    async def handle(self, document: StandardBusinessDocument) -> None:
        ...
