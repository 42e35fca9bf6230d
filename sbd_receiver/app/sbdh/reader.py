"""
Standard Business Document reader.

Parses raw SBD XML into a StandardBusinessDocument and extracts the
receiver, document type and process identifiers used for the SMP lookup.

Parsing is structural only:
- The SBDH must be present and well-formed
- Exactly the header fields modelled in schemas/sbdh.py are read
- The business payload is kept as serialized XML and never interpreted

Identifier extraction is lenient: anything missing from the header is
returned as None. Deciding whether a missing identifier is acceptable is
the verifier's job.
"""

from __future__ import annotations

import logging
from typing import Optional

from lxml import etree
from pydantic import BaseModel, ConfigDict, ValidationError

from sbd_receiver.app.schemas.identifiers import (
    DEFAULT_DOCUMENT_TYPE_SCHEME,
    DEFAULT_PARTICIPANT_SCHEME,
    DEFAULT_PROCESS_SCHEME,
    DocumentTypeIdentifier,
    ParticipantIdentifier,
    ProcessIdentifier,
)
from sbd_receiver.app.schemas.sbdh import (
    BusinessScope,
    DocumentIdentification,
    PartnerIdentification,
    StandardBusinessDocument,
    StandardBusinessDocumentHeader,
)
from sbd_receiver.app.utils.xml import child_text, parse_xml

logger = logging.getLogger(__name__)


SBDH_NS = "http://www.unece.org/cefact/namespaces/StandardBusinessDocumentHeader"

_NSMAP = {"sh": SBDH_NS}

SCOPE_DOCUMENT_ID = "DOCUMENTID"
SCOPE_PROCESS_ID = "PROCESSID"


class SBDParseError(ValueError):
    """The bytes are not a structurally valid Standard Business Document."""


class ExtractedIdentifiers(BaseModel):
    """Identifiers taken from the SBDH. Any of them may be missing."""

    participant: Optional[ParticipantIdentifier] = None
    document_type: Optional[DocumentTypeIdentifier] = None
    process: Optional[ProcessIdentifier] = None
    message_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def read_sbd(raw: bytes, *, max_bytes: Optional[int] = None) -> StandardBusinessDocument:
    """
    Interpret ``raw`` as a Standard Business Document.

    Raises SBDParseError for anything that is not one.
    """
    if not raw:
        raise SBDParseError("Empty document")

    if max_bytes is not None and len(raw) > max_bytes:
        raise SBDParseError(
            f"Document size {len(raw)} exceeds the limit of {max_bytes} bytes"
        )

    try:
        root = parse_xml(raw)
    except etree.XMLSyntaxError as exc:
        raise SBDParseError(f"Document is not well-formed XML: {exc}") from exc

    if root.tag != f"{{{SBDH_NS}}}StandardBusinessDocument":
        raise SBDParseError(
            "Failed to interpret the passed document as a Standard Business "
            f"Document (root element {root.tag})"
        )

    header_el = root.find("sh:StandardBusinessDocumentHeader", _NSMAP)
    if header_el is None:
        raise SBDParseError("Standard Business Document has no header")

    payload_el = next(
        (
            child
            for child in root.iterchildren(tag=etree.Element)
            if etree.QName(child).namespace != SBDH_NS
        ),
        None,
    )
    if payload_el is None:
        raise SBDParseError("Standard Business Document has no business payload")

    try:
        header = _read_header(header_el)
    except ValidationError as exc:
        raise SBDParseError(f"Invalid Standard Business Document Header: {exc}") from exc

    return StandardBusinessDocument(
        header=header,
        payload_root=payload_el.tag,
        payload_xml=etree.tostring(payload_el),
    )


def _read_header(header_el: etree._Element) -> StandardBusinessDocumentHeader:
    ident_el = header_el.find("sh:DocumentIdentification", _NSMAP)

    return StandardBusinessDocumentHeader(
        header_version=child_text(header_el, "sh:HeaderVersion", _NSMAP),
        senders=_read_partners(header_el, "sh:Sender"),
        receivers=_read_partners(header_el, "sh:Receiver"),
        document_identification=DocumentIdentification(
            standard=child_text(ident_el, "sh:Standard", _NSMAP),
            type_version=child_text(ident_el, "sh:TypeVersion", _NSMAP),
            instance_identifier=child_text(ident_el, "sh:InstanceIdentifier", _NSMAP),
            type=child_text(ident_el, "sh:Type", _NSMAP),
            creation_date_and_time=child_text(
                ident_el, "sh:CreationDateAndTime", _NSMAP
            ),
        ),
        business_scopes=[
            BusinessScope(
                type=child_text(scope_el, "sh:Type", _NSMAP) or "",
                instance_identifier=child_text(
                    scope_el, "sh:InstanceIdentifier", _NSMAP
                ),
                identifier=child_text(scope_el, "sh:Identifier", _NSMAP),
            )
            for scope_el in header_el.iterfind("sh:BusinessScope/sh:Scope", _NSMAP)
        ],
    )


def _read_partners(header_el: etree._Element, path: str) -> list[PartnerIdentification]:
    partners = []
    for partner_el in header_el.iterfind(path, _NSMAP):
        ident_el = partner_el.find("sh:Identifier", _NSMAP)
        if ident_el is None or not (ident_el.text or "").strip():
            continue
        authority = (ident_el.get("Authority") or "").strip() or None
        partners.append(
            PartnerIdentification(authority=authority, value=ident_el.text.strip())
        )
    return partners


# ---------------------------------------------------------------------------
# Identifier extraction
# ---------------------------------------------------------------------------

def extract_identifiers(document: StandardBusinessDocument) -> ExtractedIdentifiers:
    header = document.header

    participant = None
    if header.receivers:
        receiver = header.receivers[0]
        participant = ParticipantIdentifier(
            scheme=receiver.authority or DEFAULT_PARTICIPANT_SCHEME,
            value=receiver.value,
        )

    return ExtractedIdentifiers(
        participant=participant,
        document_type=_scope_identifier(
            header.scope(SCOPE_DOCUMENT_ID),
            DocumentTypeIdentifier,
            DEFAULT_DOCUMENT_TYPE_SCHEME,
        ),
        process=_scope_identifier(
            header.scope(SCOPE_PROCESS_ID),
            ProcessIdentifier,
            DEFAULT_PROCESS_SCHEME,
        ),
        message_id=document.instance_identifier,
    )


def _scope_identifier(scope: Optional[BusinessScope], identifier_cls, default_scheme: str):
    if scope is None or not scope.instance_identifier:
        return None
    return identifier_cls(
        scheme=scope.identifier or default_scheme,
        value=scope.instance_identifier,
    )
