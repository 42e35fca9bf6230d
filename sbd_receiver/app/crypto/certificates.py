"""
X.509 certificate decoding helpers.

SMP entries publish the access point certificate as a base64 string,
usually bare DER without PEM armour, sometimes as full PEM. Local
certificates are loaded from PEM or DER files.
"""

from __future__ import annotations

import base64
import binascii
from pathlib import Path
from typing import Dict, Optional, Union

from cryptography import x509


_PEM_MARKER = "-----BEGIN CERTIFICATE-----"


class CertificateDecodeError(ValueError):
    """Raised when a certificate string or file is not a valid X.509 certificate."""


def decode_certificate(value: Union[str, bytes, None]) -> Optional[x509.Certificate]:
    """
    Decode a published certificate string.

    Returns None for a missing or blank value. Raises
    CertificateDecodeError for anything that is present but not a
    certificate.
    """
    if value is None:
        return None

    if isinstance(value, bytes):
        try:
            value = value.decode("ascii")
        except UnicodeDecodeError as exc:
            raise CertificateDecodeError(
                "Certificate string is not ASCII"
            ) from exc

    text = value.strip()
    if not text:
        return None

    try:
        if _PEM_MARKER in text:
            return x509.load_pem_x509_certificate(text.encode("ascii"))

        # Bare base64 DER, possibly wrapped over several lines
        der = base64.b64decode("".join(text.split()), validate=True)
        return x509.load_der_x509_certificate(der)
    except (ValueError, binascii.Error) as exc:
        raise CertificateDecodeError(
            f"Failed to decode certificate: {exc}"
        ) from exc


def load_certificate_file(path: Union[str, Path]) -> x509.Certificate:
    """Load a PEM- or DER-encoded certificate from disk."""
    data = Path(path).read_bytes()

    try:
        if data.lstrip().startswith(b"-----BEGIN"):
            return x509.load_pem_x509_certificate(data)
        return x509.load_der_x509_certificate(data)
    except ValueError as exc:
        raise CertificateDecodeError(
            f"{path} does not contain a PEM or DER X.509 certificate"
        ) from exc


def describe_certificate(certificate: x509.Certificate) -> Dict[str, str]:
    """Loggable summary of a certificate."""
    return {
        "subject": certificate.subject.rfc4514_string(),
        "issuer": certificate.issuer.rfc4514_string(),
        "serial_number": format(certificate.serial_number, "x"),
    }
