"""
SMP (Service Metadata Publisher) lookup client.

Resolves (participant, document type, process, transport profile) to the
endpoint published in the receiver's SMP entry.

HARD GUARANTEES:
- Read-only: only GET requests are issued
- XML responses are parsed with entity resolution and network access off
- At most one SMP Redirect is followed
- Transport errors are retried a bounded number of times; HTTP status
  errors are not retried

The ``ds:Signature`` of SignedServiceMetadata is not validated here.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol
from urllib.parse import quote

import httpx
from lxml import etree
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sbd_receiver.app.schemas.endpoint import EndpointDescriptor
from sbd_receiver.app.schemas.identifiers import (
    DocumentTypeIdentifier,
    ParticipantIdentifier,
    ProcessIdentifier,
)
from sbd_receiver.app.smp.locator import sml_smp_url
from sbd_receiver.app.utils.xml import child_text, parse_xml

logger = logging.getLogger("sbd_receiver.smp_client")


SMP_NS = "http://busdox.org/serviceMetadata/publishing/1.0/"
IDS_NS = "http://busdox.org/transport/identifiers/1.0/"
WSA_NS = "http://www.w3.org/2005/08/addressing"

_NSMAP = {"smp": SMP_NS, "ids": IDS_NS, "wsa": WSA_NS}


class SMPLookupError(RuntimeError):
    """The SMP could not be queried or returned an unusable response."""


class SMPNotFoundError(SMPLookupError):
    """The SMP has no entry for the participant/document type."""


class DirectoryLookupClient(Protocol):
    """
    Interface consumed by the endpoint verifier.

    Returns None when the participant is registered but publishes no
    endpoint for the process and transport profile. Raises for anything
    else that goes wrong.
    """

    @property
    def smp_host_uri(self) -> str:
        ...

    async def get_endpoint(
        self,
        participant: ParticipantIdentifier,
        document_type: DocumentTypeIdentifier,
        process: ProcessIdentifier,
        transport_profile: str,
    ) -> Optional[EndpointDescriptor]:
        ...


class SMPClient:
    """
    Async SMP client over a shared httpx.AsyncClient.

    Exactly one of ``smp_url`` (fixed SMP) or ``sml_dns_zone`` (SMP located
    per participant through the SML) must be given.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        smp_url: Optional[str] = None,
        sml_dns_zone: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        if bool(smp_url) == bool(sml_dns_zone):
            raise ValueError(
                "Exactly one of smp_url or sml_dns_zone must be configured"
            )

        self.client = http_client
        self.timeout = timeout
        self._smp_url = str(smp_url).rstrip("/") if smp_url else None
        self._sml_dns_zone = sml_dns_zone

    @property
    def smp_host_uri(self) -> str:
        if self._smp_url:
            return self._smp_url
        return f"sml:{self._sml_dns_zone}"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_endpoint(
        self,
        participant: ParticipantIdentifier,
        document_type: DocumentTypeIdentifier,
        process: ProcessIdentifier,
        transport_profile: str,
    ) -> Optional[EndpointDescriptor]:
        metadata = await self.get_service_metadata(participant, document_type)

        for process_el in metadata.iterfind(
            "smp:ServiceInformation/smp:ProcessList/smp:Process", _NSMAP
        ):
            process_id = process_el.find("ids:ProcessIdentifier", _NSMAP)
            if process_id is None or not _same_identifier(process_id, process):
                continue

            for endpoint_el in process_el.iterfind(
                "smp:ServiceEndpointList/smp:Endpoint", _NSMAP
            ):
                if endpoint_el.get("transportProfile") == transport_profile:
                    return _to_descriptor(endpoint_el, transport_profile)

        logger.debug(
            "smp_no_matching_endpoint",
            extra={
                "participant": participant.uri_encoded,
                "document_type": document_type.uri_encoded,
                "process": process.uri_encoded,
                "transport_profile": transport_profile,
            },
        )
        return None

    async def get_service_metadata(
        self,
        participant: ParticipantIdentifier,
        document_type: DocumentTypeIdentifier,
    ) -> etree._Element:
        """
        Fetch the ServiceMetadata element for a participant/document type.

        Follows a single SMP Redirect.
        """
        url = self.service_metadata_url(participant, document_type)
        metadata = _service_metadata(await self._fetch(url), url)

        redirect = metadata.find("smp:Redirect", _NSMAP)
        if redirect is None:
            return metadata

        target = redirect.get("href")
        if not target:
            raise SMPLookupError(f"SMP redirect without target at {url}")

        logger.debug("smp_redirect_followed", extra={"from": url, "to": target})

        metadata = _service_metadata(await self._fetch(target), target)
        if metadata.find("smp:Redirect", _NSMAP) is not None:
            raise SMPLookupError(f"SMP redirected more than once ({url})")
        return metadata

    def service_metadata_url(
        self,
        participant: ParticipantIdentifier,
        document_type: DocumentTypeIdentifier,
    ) -> str:
        base = self._smp_url or sml_smp_url(participant, self._sml_dns_zone)
        return (
            f"{base}/{quote(participant.uri_encoded, safe='')}"
            f"/services/{quote(document_type.uri_encoded, safe='')}"
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, max=2),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _fetch(self, url: str) -> bytes:
        response = await self.client.get(
            url,
            headers={"Accept": "application/xml, text/xml"},
            timeout=self.timeout,
        )

        if response.status_code == 404:
            raise SMPNotFoundError(f"No SMP entry at {url}")

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "smp_request_failed",
                extra={
                    "status_code": response.status_code,
                    "url": url,
                },
            )
            raise SMPLookupError(
                f"SMP responded with HTTP {response.status_code} for {url}"
            ) from exc

        return response.content


def _service_metadata(data: bytes, url: str) -> etree._Element:
    try:
        root = parse_xml(data)
    except etree.XMLSyntaxError as exc:
        raise SMPLookupError(f"SMP returned malformed XML from {url}") from exc

    if root.tag == f"{{{SMP_NS}}}SignedServiceMetadata":
        metadata = root.find("smp:ServiceMetadata", _NSMAP)
    elif root.tag == f"{{{SMP_NS}}}ServiceMetadata":
        metadata = root
    else:
        metadata = None

    if metadata is None:
        raise SMPLookupError(
            f"SMP response from {url} is not a ServiceMetadata document "
            f"(root element {root.tag})"
        )
    return metadata


def _same_identifier(element: etree._Element, identifier: ProcessIdentifier) -> bool:
    scheme = (element.get("scheme") or "").strip()
    value = (element.text or "").strip()
    return scheme.lower() == identifier.scheme.lower() and value == identifier.value


def _to_descriptor(endpoint_el: etree._Element, transport_profile: str) -> EndpointDescriptor:
    try:
        return EndpointDescriptor(
            endpoint_url=child_text(
                endpoint_el, "wsa:EndpointReference/wsa:Address", _NSMAP
            ),
            certificate=child_text(endpoint_el, "smp:Certificate", _NSMAP),
            transport_profile=transport_profile,
            service_activation_date=child_text(
                endpoint_el, "smp:ServiceActivationDate", _NSMAP
            ),
            service_expiration_date=child_text(
                endpoint_el, "smp:ServiceExpirationDate", _NSMAP
            ),
            service_description=child_text(
                endpoint_el, "smp:ServiceDescription", _NSMAP
            ),
            technical_contact_url=child_text(
                endpoint_el, "smp:TechnicalContactUrl", _NSMAP
            ),
        )
    except ValidationError as exc:
        raise SMPLookupError(f"SMP endpoint entry is malformed: {exc}") from exc
