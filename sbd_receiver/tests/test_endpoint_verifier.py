"""
Endpoint verifier tests.

Covers every decision point of the receiver check:

- missing configuration fails closed (REJECTED / CONFIGURATION_MISSING)
- missing identifiers never reach the SMP (LOOKUP_FAILED)
- SMP faults are wrapped, never raised (LOOKUP_FAILED / LOOKUP_FAULT)
- the URL check is a substring match
- the certificate check compares serial numbers only

The SMP client is replaced with an AsyncMock double in every test.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import pytest

from sbd_receiver.app.configuration import ReceiverConfiguration
from sbd_receiver.app.events import MemoryQueueEventEmitter, ReceiptEventType
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
    VerificationStatus,
)
from sbd_receiver.app.smp.client import SMPNotFoundError
from sbd_receiver.app.verification.endpoint_verifier import EndpointVerifier

from sbd_receiver.tests.fixtures.certificates import (
    make_certificate,
    pem_bytes,
    smp_certificate_string,
)
from sbd_receiver.tests.fixtures.documents import (
    DOCUMENT_TYPE_ID,
    OWN_AP_URL,
    PROCESS_ID,
    RECEIVER_ID,
)

pytestmark = pytest.mark.anyio


# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------

_OWN_CERT = make_certificate(serial_number=0x1001)
_OTHER_CERT = make_certificate(serial_number=0x2002, common_name="POP000999")

_PARTICIPANT = ParticipantIdentifier(value=RECEIVER_ID)
_DOCUMENT_TYPE = DocumentTypeIdentifier(value=DOCUMENT_TYPE_ID)
_PROCESS = ProcessIdentifier(value=PROCESS_ID)


def _smp_returning(endpoint) -> AsyncMock:
    smp = AsyncMock()
    smp.smp_host_uri = "https://smp.example.com"
    smp.get_endpoint.return_value = endpoint
    return smp


def _smp_raising(exc: Exception) -> AsyncMock:
    smp = AsyncMock()
    smp.smp_host_uri = "https://smp.example.com"
    smp.get_endpoint.side_effect = exc
    return smp


def _endpoint(url=OWN_AP_URL, certificate=None) -> EndpointDescriptor:
    return EndpointDescriptor(
        endpoint_url=url,
        certificate=(
            certificate
            if certificate is not None
            else smp_certificate_string(_OWN_CERT)
        ),
    )


def _verifier(smp, *, url=OWN_AP_URL, certificate=_OWN_CERT) -> EndpointVerifier:
    return EndpointVerifier(
        ReceiverConfiguration(
            receiver_check_enabled=True,
            smp_client=smp,
            as2_endpoint_url=url,
            ap_certificate=certificate,
        )
    )


async def _verify(verifier, participant=_PARTICIPANT, document_type=_DOCUMENT_TYPE, process=_PROCESS):
    return await verifier.verify_receiver(
        participant, document_type, process, "msg-001"
    )


# ---------------------------------------------------------------------------
# Acceptance
# ---------------------------------------------------------------------------

async def test_matching_url_and_serial_is_accepted():
    smp = _smp_returning(_endpoint())

    outcome = await _verify(_verifier(smp))

    assert outcome.status == VerificationStatus.ACCEPTED
    assert outcome.accepted is True
    assert outcome.kind is None
    assert outcome.endpoint_url == OWN_AP_URL

    smp.get_endpoint.assert_awaited_once_with(
        _PARTICIPANT, _DOCUMENT_TYPE, _PROCESS, TRANSPORT_PROFILE_AS2
    )


async def test_resolved_url_containing_own_url_is_accepted():
    smp = _smp_returning(_endpoint(url="https://ap.example.com/as2;v=2"))

    outcome = await _verify(_verifier(smp))

    assert outcome.accepted is True


async def test_pem_certificate_in_smp_entry_is_accepted():
    pem = pem_bytes(_OWN_CERT).decode("ascii")
    smp = _smp_returning(_endpoint(certificate=pem))

    outcome = await _verify(_verifier(smp))

    assert outcome.accepted is True


async def test_same_serial_different_certificate_is_accepted():
    """Only serial numbers are compared."""
    twin = make_certificate(serial_number=_OWN_CERT.serial_number, common_name="OTHER")
    smp = _smp_returning(_endpoint(certificate=smp_certificate_string(twin)))

    outcome = await _verify(_verifier(smp))

    assert outcome.accepted is True


# ---------------------------------------------------------------------------
# Configuration missing (fail closed)
# ---------------------------------------------------------------------------

async def test_missing_smp_client_is_rejected_before_lookup():
    verifier = EndpointVerifier(
        ReceiverConfiguration(
            receiver_check_enabled=True,
            as2_endpoint_url=OWN_AP_URL,
            ap_certificate=_OWN_CERT,
        )
    )

    outcome = await _verify(verifier)

    assert outcome.status == VerificationStatus.REJECTED
    assert outcome.kind == ReceiverErrorKind.CONFIGURATION_MISSING
    assert "not configured" in outcome.reason


@pytest.mark.parametrize("own_url", [None, "", "   "])
async def test_missing_own_url_is_rejected(own_url):
    smp = _smp_returning(_endpoint())

    outcome = await _verify(_verifier(smp, url=own_url))

    assert outcome.status == VerificationStatus.REJECTED
    assert outcome.kind == ReceiverErrorKind.CONFIGURATION_MISSING
    assert "endpoint URL not configured" in outcome.reason


async def test_missing_own_certificate_is_rejected():
    smp = _smp_returning(_endpoint())

    outcome = await _verify(_verifier(smp, certificate=None))

    assert outcome.status == VerificationStatus.REJECTED
    assert outcome.kind == ReceiverErrorKind.CONFIGURATION_MISSING
    assert "certificate not configured" in outcome.reason


# ---------------------------------------------------------------------------
# Missing identifiers
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "participant, document_type, process",
    [
        (None, _DOCUMENT_TYPE, _PROCESS),
        (_PARTICIPANT, None, _PROCESS),
        (_PARTICIPANT, _DOCUMENT_TYPE, None),
        (None, None, None),
    ],
)
async def test_missing_identifier_is_lookup_failure(participant, document_type, process):
    smp = _smp_returning(_endpoint())

    outcome = await _verify(_verifier(smp), participant, document_type, process)

    assert outcome.status == VerificationStatus.LOOKUP_FAILED
    assert outcome.kind == ReceiverErrorKind.MISSING_IDENTIFIER
    assert outcome.reason.startswith("missing identifier")
    smp.get_endpoint.assert_not_awaited()


# ---------------------------------------------------------------------------
# Lookup failures
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "exc",
    [
        SMPNotFoundError("No SMP entry"),
        httpx.ConnectError("connection refused"),
        ValueError("malformed response"),
    ],
)
async def test_lookup_fault_is_wrapped(exc):
    smp = _smp_raising(exc)

    outcome = await _verify(_verifier(smp))

    assert outcome.status == VerificationStatus.LOOKUP_FAILED
    assert outcome.kind == ReceiverErrorKind.LOOKUP_FAULT
    assert outcome.cause is exc
    assert RECEIVER_ID in outcome.reason


async def test_empty_lookup_is_lookup_failure():
    smp = _smp_returning(None)

    outcome = await _verify(_verifier(smp))

    assert outcome.status == VerificationStatus.LOOKUP_FAILED
    assert outcome.kind == ReceiverErrorKind.LOOKUP_EMPTY
    assert "no endpoint resolved" in outcome.reason


# ---------------------------------------------------------------------------
# URL mismatch
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "resolved_url",
    [
        "https://other.example.com",
        "https://ap.example.com/as",
        None,
    ],
)
async def test_foreign_endpoint_url_is_rejected(resolved_url):
    smp = _smp_returning(_endpoint(url=resolved_url))

    outcome = await _verify(_verifier(smp))

    assert outcome.status == VerificationStatus.REJECTED
    assert outcome.kind == ReceiverErrorKind.URL_MISMATCH
    assert "not for us" in outcome.reason


# ---------------------------------------------------------------------------
# Certificate checks
# ---------------------------------------------------------------------------

async def test_serial_mismatch_is_rejected():
    smp = _smp_returning(
        _endpoint(certificate=smp_certificate_string(_OTHER_CERT))
    )

    outcome = await _verify(_verifier(smp))

    assert outcome.status == VerificationStatus.REJECTED
    assert outcome.kind == ReceiverErrorKind.CERTIFICATE_MISMATCH
    assert outcome.reason.startswith("certificate serial mismatch")


async def test_undecodable_certificate_is_rejected():
    smp = _smp_returning(_endpoint(certificate="this is not a certificate"))

    outcome = await _verify(_verifier(smp))

    assert outcome.status == VerificationStatus.REJECTED
    assert outcome.kind == ReceiverErrorKind.CERTIFICATE_DECODE_ERROR
    assert outcome.cause is not None


async def test_missing_certificate_in_endpoint_is_rejected():
    smp = _smp_returning(
        EndpointDescriptor(endpoint_url=OWN_AP_URL, certificate=None)
    )

    outcome = await _verify(_verifier(smp))

    assert outcome.status == VerificationStatus.REJECTED
    assert outcome.kind == ReceiverErrorKind.CERTIFICATE_DECODE_ERROR
    assert "no certificate" in outcome.reason


async def test_url_is_checked_before_certificate():
    smp = _smp_returning(
        _endpoint(
            url="https://other.example.com",
            certificate="garbage",
        )
    )

    outcome = await _verify(_verifier(smp))

    assert outcome.kind == ReceiverErrorKind.URL_MISMATCH


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

async def test_decision_points_emit_events():
    smp = _smp_returning(_endpoint())
    emitter = MemoryQueueEventEmitter()

    outcome = await _verifier(smp).verify_receiver(
        _PARTICIPANT, _DOCUMENT_TYPE, _PROCESS, "msg-001", emitter=emitter
    )
    await emitter.close()
    events = await emitter.drain()

    assert outcome.accepted is True
    assert [e.event_type for e in events] == [
        ReceiptEventType.ENDPOINT_LOOKUP_STARTED,
        ReceiptEventType.ENDPOINT_RESOLVED,
        ReceiptEventType.ENDPOINT_CERTIFICATE_RESOLVED,
        ReceiptEventType.RECEIVER_VERIFICATION_COMPLETED,
    ]
    assert all(e.message_id == "msg-001" for e in events)
    assert events[0].details["participant"] == _PARTICIPANT.uri_encoded
    assert events[1].details["endpoint_url"] == OWN_AP_URL
    assert events[2].details["serial_number"] == format(_OWN_CERT.serial_number, "x")
    assert events[-1].details["status"] == "accepted"


async def test_rejection_is_logged_at_error_with_message_id(caplog):
    smp = _smp_returning(_endpoint(url="https://other.example.com"))

    with caplog.at_level("ERROR", logger="sbd_receiver.verifier"):
        await _verify(_verifier(smp))

    assert any(
        record.levelname == "ERROR" and "msg-001" in record.getMessage()
        for record in caplog.records
    )


async def test_resolved_url_is_traced_without_own_url():
    smp = _smp_returning(_endpoint())
    emitter = MemoryQueueEventEmitter()

    outcome = await _verifier(smp, url=None).verify_receiver(
        _PARTICIPANT, _DOCUMENT_TYPE, _PROCESS, "msg-001", emitter=emitter
    )
    await emitter.close()
    events = await emitter.drain()

    assert outcome.kind == ReceiverErrorKind.CONFIGURATION_MISSING
    assert outcome.endpoint_url == OWN_AP_URL
    resolved = [e for e in events if e.event_type == ReceiptEventType.ENDPOINT_RESOLVED]
    assert resolved[0].details["endpoint_url"] == OWN_AP_URL
    assert resolved[0].details["own_url"] is None


class _RaisingEmitter:
    async def emit(self, event) -> None:
        raise RuntimeError("event sink down")


async def test_raising_emitter_does_not_change_outcome():
    smp = _smp_returning(_endpoint())

    outcome = await _verifier(smp).verify_receiver(
        _PARTICIPANT, _DOCUMENT_TYPE, _PROCESS, "msg-001", emitter=_RaisingEmitter()
    )

    assert outcome.accepted is True
    smp.get_endpoint.assert_awaited_once()
