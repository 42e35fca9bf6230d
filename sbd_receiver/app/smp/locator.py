"""
SML-based SMP location.

A participant's SMP is found through DNS: the SML publishes a CNAME for
``B-<md5 of the lower-cased participant value>.<scheme>.<zone>`` pointing
at the SMP host. Resolution is left to the HTTP client; this module only
builds the name.
"""

from __future__ import annotations

import hashlib

from sbd_receiver.app.schemas.identifiers import ParticipantIdentifier


# SML zone of the Peppol acceptance network
SML_TEST_ZONE = "acc.edelivery.tech.ec.europa.eu"


def sml_host_name(participant: ParticipantIdentifier, sml_dns_zone: str) -> str:
    zone = sml_dns_zone.strip().strip(".")
    if not zone:
        raise ValueError("SML DNS zone must not be empty")

    digest = hashlib.md5(
        participant.value.lower().encode("utf-8")
    ).hexdigest()
    return f"B-{digest}.{participant.scheme}.{zone}"


def sml_smp_url(participant: ParticipantIdentifier, sml_dns_zone: str) -> str:
    """SMP base URL for ``participant`` under the given SML zone."""
    return f"http://{sml_host_name(participant, sml_dns_zone)}"
