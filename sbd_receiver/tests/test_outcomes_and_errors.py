"""
Verification outcome and SBDReceiverError tests.
"""

import pytest
from pydantic import ValidationError

from sbd_receiver.app.errors import SBDReceiverError
from sbd_receiver.app.schemas.verification import (
    ReceiverErrorKind,
    VerificationOutcome,
    VerificationStatus,
)


# ---------------------------------------------------------------------------
# VerificationOutcome
# ---------------------------------------------------------------------------

def test_accept_has_no_kind_or_reason():
    outcome = VerificationOutcome.accept("m1", endpoint_url="https://ap")

    assert outcome.accepted is True
    assert outcome.kind is None
    assert outcome.reason is None


def test_accepted_outcome_cannot_carry_reason():
    with pytest.raises(ValidationError):
        VerificationOutcome(
            status=VerificationStatus.ACCEPTED,
            message_id="m1",
            reason="nope",
        )


@pytest.mark.parametrize(
    "status", [VerificationStatus.REJECTED, VerificationStatus.LOOKUP_FAILED]
)
def test_failed_outcome_requires_kind_and_reason(status):
    with pytest.raises(ValidationError):
        VerificationOutcome(status=status, message_id="m1")
    with pytest.raises(ValidationError):
        VerificationOutcome(
            status=status,
            message_id="m1",
            kind=ReceiverErrorKind.URL_MISMATCH,
            reason="",
        )


def test_cause_is_not_serialized():
    cause = RuntimeError("boom")
    outcome = VerificationOutcome.lookup_failed(
        "m1", ReceiverErrorKind.LOOKUP_FAULT, "lookup failed", cause=cause
    )

    assert outcome.cause is cause
    assert "cause" not in outcome.model_dump()
    assert outcome.status == VerificationStatus.LOOKUP_FAILED


# ---------------------------------------------------------------------------
# SBDReceiverError
# ---------------------------------------------------------------------------

def test_from_outcome_carries_kind_and_cause():
    cause = TimeoutError("slow smp")
    outcome = VerificationOutcome.lookup_failed(
        "m1", ReceiverErrorKind.LOOKUP_FAULT, "lookup failed", cause=cause
    )

    error = SBDReceiverError.from_outcome(outcome)

    assert error.kind == ReceiverErrorKind.LOOKUP_FAULT
    assert error.message_id == "m1"
    assert error.outcome is outcome
    assert error.__cause__ is cause
    assert str(error) == "m1 lookup failed"


def test_from_accepted_outcome_is_refused():
    with pytest.raises(ValueError):
        SBDReceiverError.from_outcome(VerificationOutcome.accept("m1"))


def test_wrap_keeps_existing_errors():
    existing = SBDReceiverError(
        "m1 bad", message_id="m1", kind=ReceiverErrorKind.PARSE_ERROR
    )

    assert SBDReceiverError.wrap(existing, "m2") is existing


def test_wrap_chains_foreign_exceptions():
    cause = KeyError("x")

    error = SBDReceiverError.wrap(cause, "m1", ReceiverErrorKind.HANDLER_FAULT)

    assert error.kind == ReceiverErrorKind.HANDLER_FAULT
    assert error.__cause__ is cause
    assert error.to_dict() == {
        "message_id": "m1",
        "kind": "handler_fault",
        "reason": str(error),
    }


def test_wrap_defaults_to_unexpected():
    assert SBDReceiverError.wrap(OSError(), "m1").kind == ReceiverErrorKind.UNEXPECTED
