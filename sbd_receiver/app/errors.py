"""
Domain-level failure type surfaced to the AS2 pipeline.

Whatever goes wrong while receiving an envelope reaches the caller as a
single SBDReceiverError. The original exception is kept as ``__cause__``
so the chain stays intact for logging. The pipeline decides retry or
negative acknowledgement.
"""

from __future__ import annotations

from typing import Optional

from sbd_receiver.app.schemas.verification import (
    ReceiverErrorKind,
    VerificationOutcome,
)


class SBDReceiverError(Exception):
    def __init__(
        self,
        message: str,
        *,
        message_id: Optional[str],
        kind: ReceiverErrorKind,
        outcome: Optional[VerificationOutcome] = None,
    ) -> None:
        super().__init__(message)
        self.message_id = message_id
        self.kind = kind
        self.outcome = outcome

    @classmethod
    def from_outcome(cls, outcome: VerificationOutcome) -> "SBDReceiverError":
        if outcome.accepted:
            raise ValueError("An accepted outcome is not an error")

        error = cls(
            f"{outcome.message_id} {outcome.reason}",
            message_id=outcome.message_id,
            kind=outcome.kind,
            outcome=outcome,
        )
        error.__cause__ = outcome.cause
        return error

    @classmethod
    def wrap(
        cls,
        exc: BaseException,
        message_id: Optional[str],
        kind: ReceiverErrorKind = ReceiverErrorKind.UNEXPECTED,
    ) -> "SBDReceiverError":
        """
        Wrap ``exc`` unless it already is an SBDReceiverError.
        """
        if isinstance(exc, SBDReceiverError):
            return exc

        error = cls(
            f"{message_id} {type(exc).__name__}: {exc}",
            message_id=message_id,
            kind=kind,
        )
        error.__cause__ = exc
        return error

    def to_dict(self) -> dict:
        return {
            "message_id": self.message_id,
            "kind": self.kind.value,
            "reason": str(self),
        }
