from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


# ----------------------------------------------------------------------
# Event Types (Finite)
# ----------------------------------------------------------------------
class ReceiptEventType(str, Enum):
    """
    Progression events emitted while an inbound envelope is processed.

    New entries must preserve observational semantics.
    """

    # ------------------------------------------------------------------
    # Receipt Lifecycle
    # ------------------------------------------------------------------
    RECEIPT_STARTED = "receipt_started"
    RECEIPT_COMPLETED = "receipt_completed"
    RECEIPT_FAILED = "receipt_failed"

    # ------------------------------------------------------------------
    # Envelope Parsing
    # ------------------------------------------------------------------
    ENVELOPE_PARSED = "envelope_parsed"

    # ------------------------------------------------------------------
    # Receiver Verification
    # ------------------------------------------------------------------
    RECEIVER_CHECK_SKIPPED = "receiver_check_skipped"
    ENDPOINT_LOOKUP_STARTED = "endpoint_lookup_started"
    ENDPOINT_RESOLVED = "endpoint_resolved"
    ENDPOINT_CERTIFICATE_RESOLVED = "endpoint_certificate_resolved"
    RECEIVER_VERIFICATION_COMPLETED = "receiver_verification_completed"

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    HANDLER_INVOKED = "handler_invoked"
    HANDLER_COMPLETED = "handler_completed"


# ----------------------------------------------------------------------
# Event Model
# ----------------------------------------------------------------------
class ReceiptEvent(BaseModel):
    """
    An immutable observation made while processing one inbound envelope.

    Events are:
    - strictly observational
    - transport-agnostic
    - not authoritative
    """

    event_id: UUID = Field(default_factory=uuid4)
    message_id: str = Field(..., description="Message id of the envelope")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: ReceiptEventType

    # Optional contextual metadata (identifiers, resolved URL, counts, etc.)
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
