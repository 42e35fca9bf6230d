"""
Identifier value types.

Participant, document type and process identifiers are scheme + value
pairs. They are derived per incoming envelope, used for the SMP lookup
and discarded afterwards.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Default identifier schemes
# ---------------------------------------------------------------------------

DEFAULT_PARTICIPANT_SCHEME = "iso6523-actorid-upis"
DEFAULT_DOCUMENT_TYPE_SCHEME = "busdox-docid-qns"
DEFAULT_PROCESS_SCHEME = "cenbii-procid-ubl"


class _SchemeValueIdentifier(BaseModel):
    scheme: str = Field(..., min_length=1)
    value: str = Field(..., min_length=1)

    @property
    def uri_encoded(self) -> str:
        """The ``scheme::value`` form used in SMP URLs and log lines."""
        return f"{self.scheme}::{self.value}"

    def __str__(self) -> str:
        return self.uri_encoded

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
    )


class ParticipantIdentifier(_SchemeValueIdentifier):
    """Identifies the receiver (or sender) of a message."""

    scheme: str = Field(DEFAULT_PARTICIPANT_SCHEME, min_length=1)


class DocumentTypeIdentifier(_SchemeValueIdentifier):
    """Identifies the business document type."""

    scheme: str = Field(DEFAULT_DOCUMENT_TYPE_SCHEME, min_length=1)


class ProcessIdentifier(_SchemeValueIdentifier):
    """Identifies the business process."""

    scheme: str = Field(DEFAULT_PROCESS_SCHEME, min_length=1)
