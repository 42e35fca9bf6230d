"""
Endpoint descriptor schema.

An EndpointDescriptor is the result of a directory (SMP) lookup. It
captures the access point URL and certificate exactly as published by the
receiver's SMP entry. Descriptors are transient and fetched fresh for
every verification.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# AS2 transport profile as published in SMP endpoint entries
TRANSPORT_PROFILE_AS2 = "busdox-transport-as2-ver1p0"


class EndpointDescriptor(BaseModel):
    """
    A single SMP endpoint entry.

    The certificate is kept as the opaque encoded string from the SMP
    response (base64 DER or PEM). Decoding happens in the verifier so a
    malformed value becomes a rejection rather than a lookup failure.
    """

    endpoint_url: Optional[str] = Field(
        None,
        description="EndpointReference/Address as published by the SMP",
    )

    certificate: Optional[str] = Field(
        None,
        description="Encoded access point certificate as published",
    )

    transport_profile: str = Field(
        TRANSPORT_PROFILE_AS2,
        description="Transport profile of the endpoint",
    )

    service_activation_date: Optional[datetime] = None
    service_expiration_date: Optional[datetime] = None
    service_description: Optional[str] = None
    technical_contact_url: Optional[str] = None

    model_config = ConfigDict(frozen=True)
