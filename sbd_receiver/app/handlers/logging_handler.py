from __future__ import annotations

import logging

from sbd_receiver.app.schemas.sbdh import StandardBusinessDocument

logger = logging.getLogger("sbd_receiver.handlers.logging")


class LoggingSBDHandler:
    """Logs every received document. Useful as a first handler in test setups."""

    async def handle(self, document: StandardBusinessDocument) -> None:
        ident = document.header.document_identification
        logger.info(
            "sbd_received",
            extra={
                "message_id": ident.instance_identifier,
                "document_type": ident.type,
                "standard": ident.standard,
                "payload_root": document.payload_root,
                "payload_size": len(document.payload_xml or b""),
            },
        )
