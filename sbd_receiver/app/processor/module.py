"""
SBD processor module.

Hooked into the AS2 pipeline's ``store`` action. Triggers the processing
of the incoming SBD (Standard Business Document) document:

    1. Parse the envelope (mandatory)
    2. Receiver endpoint verification (only if enabled)
    3. Dispatch to the registered handlers, in registration order

Every failure reaches the pipeline as SBDReceiverError. Handlers are never
invoked for an envelope that failed parsing or verification.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from sbd_receiver.app.config import ReceiverSettings
from sbd_receiver.app.configuration import ReceiverConfiguration
from sbd_receiver.app.errors import SBDReceiverError
from sbd_receiver.app.events import (
    NullEventEmitter,
    ReceiptEvent,
    ReceiptEventEmitter,
    ReceiptEventType,
    emit_safely,
)
from sbd_receiver.app.handlers import HandlerRegistry
from sbd_receiver.app.processor.message import ACTION_STORE, AS2Message
from sbd_receiver.app.sbdh.reader import (
    SBDParseError,
    extract_identifiers,
    read_sbd,
)
from sbd_receiver.app.schemas.sbdh import StandardBusinessDocument
from sbd_receiver.app.schemas.verification import ReceiverErrorKind
from sbd_receiver.app.verification.endpoint_verifier import EndpointVerifier

logger = logging.getLogger("sbd_receiver.module")


class SBDReceiverModule:
    def __init__(
        self,
        configuration: ReceiverConfiguration,
        handlers: Optional[HandlerRegistry] = None,
        verifier: Optional[EndpointVerifier] = None,
        max_bytes: Optional[int] = None,
    ) -> None:
        """
        Direct constructor.

        Intended for tests and explicit wiring. The verifier defaults to
        one reading the same configuration.
        """
        self._configuration = configuration
        self._handlers = handlers if handlers is not None else HandlerRegistry()
        self._verifier = (
            verifier if verifier is not None else EndpointVerifier(configuration)
        )
        self._max_bytes = max_bytes

        if len(self._handlers) == 0:
            logger.warning(
                "No incoming SBD handler is registered. Incoming documents "
                "will NOT be handled and may be discarded if no other "
                "processors are active!"
            )
        else:
            logger.debug(
                "Loaded %d incoming SBD handler(s)", len(self._handlers)
            )

    # ------------------------------------------------------------------
    # Integration constructor (composition root)
    # ------------------------------------------------------------------

    @classmethod
    def from_settings(
        cls,
        settings: ReceiverSettings,
        configuration: ReceiverConfiguration,
    ) -> "SBDReceiverModule":
        return cls(
            configuration=configuration,
            handlers=HandlerRegistry.from_import_paths(settings.handlers),
            max_bytes=settings.max_sbd_size_mb * 1024 * 1024,
        )

    # ------------------------------------------------------------------
    # Pipeline contract
    # ------------------------------------------------------------------

    def can_handle(
        self,
        action: str,
        message: Any,
        options: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        # The store action runs automatically upon receipt
        return action == ACTION_STORE and isinstance(message, AS2Message)

    async def handle(
        self,
        action: str,
        message: Any,
        options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        if not self.can_handle(action, message, options):
            return

        await self.on_receive(message.data, message.message_id)

    # ------------------------------------------------------------------
    # Receipt
    # ------------------------------------------------------------------

    async def on_receive(
        self,
        raw: bytes,
        correlation_id: str,
        emitter: Optional[ReceiptEventEmitter] = None,
    ) -> StandardBusinessDocument:
        """
        Validate and dispatch one inbound envelope.

        The emitter is strictly observational.
        """
        emitter = emitter or NullEventEmitter()
        message_id = correlation_id

        await emit_safely(
            emitter,
            ReceiptEvent(
                message_id=message_id,
                event_type=ReceiptEventType.RECEIPT_STARTED,
                details={"size": len(raw)},
            )
        )

        try:
            # ----------------------------------------------------------
            # 1. Interpret content as SBD
            # ----------------------------------------------------------
            try:
                document = read_sbd(raw, max_bytes=self._max_bytes)
            except SBDParseError as exc:
                raise SBDReceiverError.wrap(
                    exc, message_id, ReceiverErrorKind.PARSE_ERROR
                )

            message_id = document.instance_identifier or correlation_id

            await emit_safely(
                emitter,
                ReceiptEvent(
                    message_id=message_id,
                    event_type=ReceiptEventType.ENVELOPE_PARSED,
                    details={
                        "correlation_id": correlation_id,
                        "payload_root": document.payload_root,
                    },
                )
            )

            # ----------------------------------------------------------
            # 2. Receiver endpoint verification (OPTIONAL HARD GATE)
            # ----------------------------------------------------------
            if self._configuration.receiver_check_enabled:
                identifiers = extract_identifiers(document)

                outcome = await self._verifier.verify_receiver(
                    identifiers.participant,
                    identifiers.document_type,
                    identifiers.process,
                    message_id,
                    emitter=emitter,
                )
                if not outcome.accepted:
                    raise SBDReceiverError.from_outcome(outcome)
            else:
                logger.info(
                    "Endpoint checks for the AS2 AP are disabled",
                    extra={"message_id": message_id},
                )
                await emit_safely(
                    emitter,
                    ReceiptEvent(
                        message_id=message_id,
                        event_type=ReceiptEventType.RECEIVER_CHECK_SKIPPED,
                    )
                )

            # ----------------------------------------------------------
            # 3. Dispatch
            # ----------------------------------------------------------
            await self._dispatch(document, message_id, emitter)

        except Exception as exc:
            error = SBDReceiverError.wrap(exc, message_id)

            if error.outcome is None:
                logger.error(
                    "sbd_receipt_failed",
                    extra={
                        "message_id": error.message_id,
                        "kind": error.kind.value,
                        "error": str(error),
                    },
                )

            await emit_safely(
                emitter,
                ReceiptEvent(
                    message_id=message_id,
                    event_type=ReceiptEventType.RECEIPT_FAILED,
                    details={
                        "kind": error.kind.value,
                        "error": str(error),
                        "exception_type": type(exc).__name__,
                    },
                )
            )

            if error is exc:
                raise
            raise error from exc

        await emit_safely(
            emitter,
            ReceiptEvent(
                message_id=message_id,
                event_type=ReceiptEventType.RECEIPT_COMPLETED,
                details={"handlers": len(self._handlers)},
            )
        )
        return document

    async def _dispatch(
        self,
        document: StandardBusinessDocument,
        message_id: str,
        emitter: ReceiptEventEmitter,
    ) -> None:
        if len(self._handlers) == 0:
            logger.warning(
                "No incoming SBD handler registered, document not processed",
                extra={"message_id": message_id},
            )
            return

        for handler in self._handlers:
            handler_name = type(handler).__name__

            await emit_safely(
                emitter,
                ReceiptEvent(
                    message_id=message_id,
                    event_type=ReceiptEventType.HANDLER_INVOKED,
                    details={"handler": handler_name},
                )
            )

            try:
                await handler.handle(document)
            except Exception as exc:
                raise SBDReceiverError.wrap(
                    exc, message_id, ReceiverErrorKind.HANDLER_FAULT
                )

            await emit_safely(
                emitter,
                ReceiptEvent(
                    message_id=message_id,
                    event_type=ReceiptEventType.HANDLER_COMPLETED,
                    details={"handler": handler_name},
                )
            )
