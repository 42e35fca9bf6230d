"""
Centralized configuration management for the SBD Receiver.

Pydantic v2 settings management. Values are parsed once from the
environment at startup and are immutable afterwards. Objects that are not
plain environment values (the SMP client, the parsed AP certificate) live
in ReceiverConfiguration, which is built from these settings.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import AnyHttpUrl, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReceiverSettings(BaseSettings):
    """
    Application settings parsed from the environment (prefix SBD_RECEIVER_).

    Receiver checks are disabled by default for backwards compatibility
    with deployments that predate them. They must be enabled explicitly
    in production.
    """

    # ---------------------------------------------------------------------
    # Receiver endpoint checks
    # ---------------------------------------------------------------------

    receiver_check_enabled: Annotated[
        bool,
        Field(
            default=False,
            description=(
                "Verify via SMP lookup that inbound documents are addressed "
                "to this access point"
            ),
        ),
    ]

    as2_endpoint_url: Annotated[
        Optional[str],
        Field(
            default=None,
            description=(
                "Public AS2 endpoint URL of this AP, compared against the "
                "SMP lookup result"
            ),
        ),
    ]

    ap_certificate_path: Annotated[
        Optional[Path],
        Field(
            default=None,
            description=(
                "PEM- or DER-encoded certificate of this AP, compared "
                "against the SMP lookup result"
            ),
        ),
    ]

    # ---------------------------------------------------------------------
    # SMP lookup
    # ---------------------------------------------------------------------

    smp_url: Annotated[
        Optional[AnyHttpUrl],
        Field(
            default=None,
            description="Fixed SMP base URL. Mutually exclusive with sml_dns_zone.",
        ),
    ]

    sml_dns_zone: Annotated[
        Optional[str],
        Field(
            default=None,
            description=(
                "SML DNS zone used to locate each receiver's SMP "
                "(e.g. edelivery.tech.ec.europa.eu)"
            ),
        ),
    ]

    smp_timeout_seconds: Annotated[
        float,
        Field(
            default=30.0,
            gt=0,
            le=120,
            description="Overall timeout for a single SMP request",
        ),
    ]

    # ---------------------------------------------------------------------
    # Dispatch
    # ---------------------------------------------------------------------

    handlers: Annotated[
        List[str],
        Field(
            default_factory=list,
            description=(
                "Incoming SBD handlers as 'package.module:ClassName' "
                "import paths, invoked in this order"
            ),
        ),
    ]

    # ---------------------------------------------------------------------
    # Operational Boundaries
    # ---------------------------------------------------------------------

    max_sbd_size_mb: Annotated[
        int,
        Field(
            default=20,
            ge=1,
            le=100,
            description="Upper bound on accepted SBD envelope size",
        ),
    ]

    # ---------------------------------------------------------------------
    # Validators
    # ---------------------------------------------------------------------

    @field_validator("ap_certificate_path")
    @classmethod
    def certificate_path_must_exist(cls, v: Optional[Path]) -> Optional[Path]:
        if v is not None and not v.is_file():
            raise ValueError(
                f"Configured ap_certificate_path is not a file: {v}"
            )
        return v

    @model_validator(mode="after")
    def smp_location_is_unambiguous(self) -> "ReceiverSettings":
        if self.smp_url is not None and self.sml_dns_zone:
            raise ValueError(
                "smp_url and sml_dns_zone cannot both be configured."
            )
        return self

    model_config = SettingsConfigDict(
        env_prefix="SBD_RECEIVER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> ReceiverSettings:
    """Singleton settings provider."""
    return ReceiverSettings()
