"""
Receiver endpoint verification.

Checks that an inbound document was really addressed to this access point.
The receiver's SMP entry is looked up for the document type and process
of the envelope, and the endpoint found there must be ours:

1. The published endpoint address must contain our AS2 endpoint URL
2. The published certificate must have the serial number of our AP
   certificate

Outcome policy:
    The verifier never raises for domain failures. Missing configuration,
    lookup faults, empty lookups and mismatches are all returned as
    VerificationOutcome values. Any exception raised by the SMP client
    becomes LOOKUP_FAILED.

URL matching:
    The published address only has to CONTAIN the configured URL. An SMP
    entry that embeds our URL inside a longer one passes the URL check;
    the serial number check still applies.

Certificate matching:
    Only serial numbers are compared, not the full certificate. The SMP
    is treated as a trusted source.
"""

from __future__ import annotations

import logging
from typing import Optional

from sbd_receiver.app.configuration import ReceiverConfiguration
from sbd_receiver.app.crypto.certificates import (
    CertificateDecodeError,
    decode_certificate,
    describe_certificate,
)
from sbd_receiver.app.events import (
    NullEventEmitter,
    ReceiptEvent,
    ReceiptEventEmitter,
    ReceiptEventType,
    emit_safely,
)
from sbd_receiver.app.schemas.endpoint import (
    TRANSPORT_PROFILE_AS2,
    EndpointDescriptor,
)
from sbd_receiver.app.schemas.identifiers import (
    DocumentTypeIdentifier,
    ParticipantIdentifier,
    ProcessIdentifier,
)
from sbd_receiver.app.schemas.verification import (
    ReceiverErrorKind,
    VerificationOutcome,
)

logger = logging.getLogger("sbd_receiver.verifier")


class EndpointVerifier:
    def __init__(self, configuration: ReceiverConfiguration) -> None:
        self._configuration = configuration

    async def verify_receiver(
        self,
        participant: Optional[ParticipantIdentifier],
        document_type: Optional[DocumentTypeIdentifier],
        process: Optional[ProcessIdentifier],
        message_id: str,
        emitter: Optional[ReceiptEventEmitter] = None,
    ) -> VerificationOutcome:
        emitter = emitter or NullEventEmitter()

        outcome = await self._verify(
            participant, document_type, process, message_id, emitter
        )

        if not outcome.accepted:
            logger.error(
                "%s %s",
                message_id,
                outcome.reason,
                extra={
                    "message_id": message_id,
                    "status": outcome.status.value,
                    "kind": outcome.kind.value,
                },
            )

        await emit_safely(
            emitter,
            ReceiptEvent(
                message_id=message_id,
                event_type=ReceiptEventType.RECEIVER_VERIFICATION_COMPLETED,
                details={
                    "status": outcome.status.value,
                    "kind": outcome.kind.value if outcome.kind else None,
                    "reason": outcome.reason,
                },
            )
        )
        return outcome

    # ------------------------------------------------------------------
    # Verification steps
    # ------------------------------------------------------------------

    async def _verify(
        self,
        participant: Optional[ParticipantIdentifier],
        document_type: Optional[DocumentTypeIdentifier],
        process: Optional[ProcessIdentifier],
        message_id: str,
        emitter: ReceiptEventEmitter,
    ) -> VerificationOutcome:
        smp_client = self._configuration.smp_client
        if smp_client is None:
            return VerificationOutcome.reject(
                message_id,
                ReceiverErrorKind.CONFIGURATION_MISSING,
                "SMP client not configured",
            )

        missing = [
            name
            for name, value in (
                ("receiver", participant),
                ("document type", document_type),
                ("process", process),
            )
            if value is None
        ]
        if missing:
            return VerificationOutcome.lookup_failed(
                message_id,
                ReceiverErrorKind.MISSING_IDENTIFIER,
                f"missing identifier: {', '.join(missing)}",
            )

        # ----------------------------------------------------------
        # Step 1: SMP lookup
        # ----------------------------------------------------------
        logger.debug(
            "%s Looking up the endpoint of recipient %s at SMP '%s' for %s and %s",
            message_id,
            participant.uri_encoded,
            smp_client.smp_host_uri,
            document_type.uri_encoded,
            process.uri_encoded,
        )
        await emit_safely(
            emitter,
            ReceiptEvent(
                message_id=message_id,
                event_type=ReceiptEventType.ENDPOINT_LOOKUP_STARTED,
                details={
                    "participant": participant.uri_encoded,
                    "document_type": document_type.uri_encoded,
                    "process": process.uri_encoded,
                    "smp": smp_client.smp_host_uri,
                    "transport_profile": TRANSPORT_PROFILE_AS2,
                },
            )
        )

        try:
            endpoint = await smp_client.get_endpoint(
                participant, document_type, process, TRANSPORT_PROFILE_AS2
            )
        except Exception as exc:
            return VerificationOutcome.lookup_failed(
                message_id,
                ReceiverErrorKind.LOOKUP_FAULT,
                f"Failed to retrieve endpoint of recipient "
                f"{participant.uri_encoded}: {exc}",
                cause=exc,
            )

        if endpoint is None:
            return VerificationOutcome.lookup_failed(
                message_id,
                ReceiverErrorKind.LOOKUP_EMPTY,
                "no endpoint resolved for provided receiver/document type/process",
            )

        # ----------------------------------------------------------
        # Step 2: Is it for us?
        # ----------------------------------------------------------
        url_outcome = await self._check_endpoint_url(endpoint, message_id, emitter)
        if url_outcome is not None:
            return url_outcome

        # ----------------------------------------------------------
        # Step 3: Certificate serial number
        # ----------------------------------------------------------
        cert_outcome = await self._check_endpoint_certificate(
            endpoint, message_id, emitter
        )
        if cert_outcome is not None:
            return cert_outcome

        return VerificationOutcome.accept(message_id, endpoint.endpoint_url)

    async def _check_endpoint_url(
        self,
        endpoint: EndpointDescriptor,
        message_id: str,
        emitter: ReceiptEventEmitter,
    ) -> Optional[VerificationOutcome]:
        own_url = self._configuration.as2_endpoint_url
        recipient_url = endpoint.endpoint_url
        logger.debug("%s Recipient AP URL is %s", message_id, recipient_url)

        await emit_safely(
            emitter,
            ReceiptEvent(
                message_id=message_id,
                event_type=ReceiptEventType.ENDPOINT_RESOLVED,
                details={
                    "endpoint_url": recipient_url,
                    "own_url": own_url,
                },
            )
        )

        if not own_url or not own_url.strip():
            return VerificationOutcome.reject(
                message_id,
                ReceiverErrorKind.CONFIGURATION_MISSING,
                "endpoint URL not configured for this AP",
                endpoint_url=recipient_url,
            )
        logger.debug("%s Our AP URL is %s", message_id, own_url)

        if recipient_url is None or own_url not in recipient_url:
            return VerificationOutcome.reject(
                message_id,
                ReceiverErrorKind.URL_MISMATCH,
                f"The request is targeted for '{recipient_url}' and is not "
                f"for us ({own_url})",
                endpoint_url=recipient_url,
            )
        return None

    async def _check_endpoint_certificate(
        self,
        endpoint: EndpointDescriptor,
        message_id: str,
        emitter: ReceiptEventEmitter,
    ) -> Optional[VerificationOutcome]:
        own_cert = self._configuration.ap_certificate
        if own_cert is None:
            return VerificationOutcome.reject(
                message_id,
                ReceiverErrorKind.CONFIGURATION_MISSING,
                "certificate not configured for this AP",
                endpoint_url=endpoint.endpoint_url,
            )

        try:
            recipient_cert = decode_certificate(endpoint.certificate)
        except CertificateDecodeError as exc:
            return VerificationOutcome.reject(
                message_id,
                ReceiverErrorKind.CERTIFICATE_DECODE_ERROR,
                "Failed to convert looked up endpoint certificate to an "
                f"X.509 certificate: {exc}",
                endpoint_url=endpoint.endpoint_url,
                cause=exc,
            )

        if recipient_cert is None:
            # Most likely an invalid SMP entry
            return VerificationOutcome.reject(
                message_id,
                ReceiverErrorKind.CERTIFICATE_DECODE_ERROR,
                "no certificate found in resolved endpoint",
                endpoint_url=endpoint.endpoint_url,
            )

        recipient_summary = describe_certificate(recipient_cert)
        logger.debug(
            "%s Recipient certificate present: %s", message_id, recipient_summary
        )
        await emit_safely(
            emitter,
            ReceiptEvent(
                message_id=message_id,
                event_type=ReceiptEventType.ENDPOINT_CERTIFICATE_RESOLVED,
                details=recipient_summary,
            )
        )

        if own_cert.serial_number != recipient_cert.serial_number:
            return VerificationOutcome.reject(
                message_id,
                ReceiverErrorKind.CERTIFICATE_MISMATCH,
                "certificate serial mismatch: SMP certificate "
                f"{recipient_summary['serial_number']} does not match this "
                f"AP's certificate {format(own_cert.serial_number, 'x')}",
                endpoint_url=endpoint.endpoint_url,
            )

        logger.debug(
            "%s The certificate of the SMP lookup matches our certificate",
            message_id,
        )
        return None
