"""
Runtime configuration store for receiver endpoint checks.

ReceiverConfiguration holds everything the endpoint verifier needs that is
not a plain environment value: the SMP client and the parsed certificate
of this access point.

Concurrency:
    The store is written at startup (or during administration) and read
    by every receipt. Reads take no lock. Writers must be serialized by
    the caller; concurrent writes during request processing are not
    supported.
"""

from __future__ import annotations

import logging
from typing import Optional

from cryptography import x509
from pydantic import BaseModel, ConfigDict

from sbd_receiver.app.config import ReceiverSettings
from sbd_receiver.app.crypto.certificates import load_certificate_file
from sbd_receiver.app.smp.client import DirectoryLookupClient

logger = logging.getLogger("sbd_receiver.configuration")


DEFAULT_RECEIVER_CHECK_ENABLED = False


class NodeIdentity(BaseModel):
    """Snapshot of this access point's own URL and certificate."""

    endpoint_url: Optional[str] = None
    certificate: Optional[x509.Certificate] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.endpoint_url and self.endpoint_url.strip()) and (
            self.certificate is not None
        )

    model_config = ConfigDict(
        frozen=True,
        arbitrary_types_allowed=True,
    )


class ReceiverConfiguration:
    """
    Read-mostly configuration shared by the verifier and the processor
    module.

    All values may be absent. The verifier fails closed on whatever it
    needs but finds missing; nothing here validates completeness.
    """

    def __init__(
        self,
        *,
        receiver_check_enabled: bool = DEFAULT_RECEIVER_CHECK_ENABLED,
        smp_client: Optional[DirectoryLookupClient] = None,
        as2_endpoint_url: Optional[str] = None,
        ap_certificate: Optional[x509.Certificate] = None,
    ) -> None:
        self._receiver_check_enabled = receiver_check_enabled
        self._smp_client = smp_client
        self._as2_endpoint_url = as2_endpoint_url
        self._ap_certificate = ap_certificate

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    @classmethod
    def from_settings(
        cls,
        settings: ReceiverSettings,
        smp_client: Optional[DirectoryLookupClient] = None,
    ) -> "ReceiverConfiguration":
        """
        Build the store from environment settings.

        The AP certificate is loaded once here. A configured but unreadable
        certificate fails startup.
        """
        ap_certificate = None
        if settings.ap_certificate_path is not None:
            ap_certificate = load_certificate_file(settings.ap_certificate_path)

        configuration = cls(
            receiver_check_enabled=settings.receiver_check_enabled,
            smp_client=smp_client,
            as2_endpoint_url=settings.as2_endpoint_url,
            ap_certificate=ap_certificate,
        )

        if configuration.receiver_check_enabled and not (
            configuration.node_identity.is_complete and smp_client is not None
        ):
            # Not fatal: every receipt will be rejected until fixed
            logger.warning(
                "receiver_check_incomplete_configuration",
                extra={
                    "smp_client_configured": smp_client is not None,
                    "as2_endpoint_url_configured": bool(settings.as2_endpoint_url),
                    "ap_certificate_configured": ap_certificate is not None,
                },
            )

        return configuration

    # ------------------------------------------------------------------
    # Receiver check flag
    # ------------------------------------------------------------------

    @property
    def receiver_check_enabled(self) -> bool:
        """
        True if the checks for endpoint URL and endpoint certificate are
        enabled. Disabled by default for backwards compatibility.
        """
        return self._receiver_check_enabled

    @receiver_check_enabled.setter
    def receiver_check_enabled(self, enabled: bool) -> None:
        self._receiver_check_enabled = bool(enabled)

    # ------------------------------------------------------------------
    # SMP client
    # ------------------------------------------------------------------

    @property
    def smp_client(self) -> Optional[DirectoryLookupClient]:
        """SMP client used for the endpoint lookup. None if not configured."""
        return self._smp_client

    @smp_client.setter
    def smp_client(self, client: Optional[DirectoryLookupClient]) -> None:
        self._smp_client = client

    # ------------------------------------------------------------------
    # Node identity
    # ------------------------------------------------------------------

    @property
    def as2_endpoint_url(self) -> Optional[str]:
        """URL of this AP, compared against the SMP lookup result."""
        return self._as2_endpoint_url

    @as2_endpoint_url.setter
    def as2_endpoint_url(self, url: Optional[str]) -> None:
        self._as2_endpoint_url = url

    @property
    def ap_certificate(self) -> Optional[x509.Certificate]:
        """Certificate of this AP, compared against the SMP lookup result."""
        return self._ap_certificate

    @ap_certificate.setter
    def ap_certificate(self, certificate: Optional[x509.Certificate]) -> None:
        self._ap_certificate = certificate

    @property
    def node_identity(self) -> NodeIdentity:
        return NodeIdentity(
            endpoint_url=self._as2_endpoint_url,
            certificate=self._ap_certificate,
        )
