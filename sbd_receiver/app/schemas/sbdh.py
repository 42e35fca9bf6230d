"""
Standard Business Document schema.

Structured view of an inbound SBD envelope: the Standard Business Document
Header (SBDH) plus the business payload. Only the header parts this
service reads are modelled; the payload is kept as serialized XML and is
never interpreted here.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PartnerIdentification(BaseModel):
    """Sender/Receiver ``Identifier`` element and its ``Authority``."""

    authority: Optional[str] = None
    value: str

    model_config = ConfigDict(frozen=True)


class DocumentIdentification(BaseModel):
    standard: Optional[str] = None
    type_version: Optional[str] = None
    instance_identifier: Optional[str] = None
    type: Optional[str] = None
    creation_date_and_time: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)


class BusinessScope(BaseModel):
    """A single ``BusinessScope/Scope`` entry."""

    type: str
    instance_identifier: Optional[str] = None
    identifier: Optional[str] = Field(
        None,
        description="Optional scheme carried in the Scope/Identifier element",
    )

    model_config = ConfigDict(frozen=True)


class StandardBusinessDocumentHeader(BaseModel):
    header_version: Optional[str] = None
    senders: List[PartnerIdentification] = Field(default_factory=list)
    receivers: List[PartnerIdentification] = Field(default_factory=list)
    document_identification: DocumentIdentification = Field(
        default_factory=DocumentIdentification
    )
    business_scopes: List[BusinessScope] = Field(default_factory=list)

    def scope(self, scope_type: str) -> Optional[BusinessScope]:
        """First scope of the given type, compared case-insensitively."""
        wanted = scope_type.upper()
        for scope in self.business_scopes:
            if scope.type.upper() == wanted:
                return scope
        return None

    model_config = ConfigDict(frozen=True)


class StandardBusinessDocument(BaseModel):
    header: StandardBusinessDocumentHeader

    payload_root: Optional[str] = Field(
        None,
        description="Clark-notation tag of the business payload root element",
    )

    payload_xml: Optional[bytes] = Field(
        None,
        description="Serialized business payload element",
    )

    @property
    def instance_identifier(self) -> Optional[str]:
        return self.header.document_identification.instance_identifier

    model_config = ConfigDict(frozen=True)
