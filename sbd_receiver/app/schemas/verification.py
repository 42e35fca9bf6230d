"""
Receiver verification outcome schema.

A VerificationOutcome is the result of checking that an inbound document
was really addressed to this access point. It is one of:

- ACCEPTED: the SMP entry for the receiver points at this AP
- REJECTED: the check ran and the document is not for us, or the
  local identity is incomplete
- LOOKUP_FAILED: the SMP entry could not be determined

Outcomes are values. The verifier never raises for domain failures; the
processor module decides how to surface them.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Enumerations (FROZEN CONTRACTS)
# ---------------------------------------------------------------------------

class VerificationStatus(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    LOOKUP_FAILED = "lookup_failed"


class ReceiverErrorKind(str, Enum):
    """
    Failure taxonomy shared by verification outcomes and SBDReceiverError.

    Every kind is recoverable at the pipeline boundary.
    """

    PARSE_ERROR = "parse_error"
    CONFIGURATION_MISSING = "configuration_missing"
    MISSING_IDENTIFIER = "missing_identifier"
    LOOKUP_FAULT = "lookup_fault"
    LOOKUP_EMPTY = "lookup_empty"
    URL_MISMATCH = "url_mismatch"
    CERTIFICATE_DECODE_ERROR = "certificate_decode_error"
    CERTIFICATE_MISMATCH = "certificate_mismatch"
    HANDLER_FAULT = "handler_fault"
    UNEXPECTED = "unexpected"


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------

class VerificationOutcome(BaseModel):
    status: VerificationStatus

    message_id: str = Field(
        ...,
        description="Message id the verification was performed for",
    )

    kind: Optional[ReceiverErrorKind] = None

    reason: Optional[str] = Field(
        None,
        description="Human-readable rejection or failure reason",
    )

    endpoint_url: Optional[str] = Field(
        None,
        description="Resolved endpoint URL, if the lookup got that far",
    )

    cause: Optional[BaseException] = Field(
        None,
        exclude=True,
        description="Underlying exception for LOOKUP_FAILED and decode errors",
    )

    @model_validator(mode="after")
    def enforce_outcome_invariants(self):
        if self.status == VerificationStatus.ACCEPTED:
            if self.kind is not None or self.reason is not None:
                raise ValueError(
                    "An accepted outcome must not carry a kind or reason"
                )
        else:
            if self.kind is None or not self.reason:
                raise ValueError(
                    f"A {self.status.value} outcome requires a kind and reason"
                )
        return self

    @property
    def accepted(self) -> bool:
        return self.status == VerificationStatus.ACCEPTED

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def accept(
        cls, message_id: str, endpoint_url: Optional[str] = None
    ) -> "VerificationOutcome":
        return cls(
            status=VerificationStatus.ACCEPTED,
            message_id=message_id,
            endpoint_url=endpoint_url,
        )

    @classmethod
    def reject(
        cls,
        message_id: str,
        kind: ReceiverErrorKind,
        reason: str,
        *,
        endpoint_url: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> "VerificationOutcome":
        return cls(
            status=VerificationStatus.REJECTED,
            message_id=message_id,
            kind=kind,
            reason=reason,
            endpoint_url=endpoint_url,
            cause=cause,
        )

    @classmethod
    def lookup_failed(
        cls,
        message_id: str,
        kind: ReceiverErrorKind,
        reason: str,
        *,
        cause: Optional[BaseException] = None,
    ) -> "VerificationOutcome":
        return cls(
            status=VerificationStatus.LOOKUP_FAILED,
            message_id=message_id,
            kind=kind,
            reason=reason,
            cause=cause,
        )

    model_config = ConfigDict(
        frozen=True,
        arbitrary_types_allowed=True,
    )
