"""
Certificate decoding tests.

SMP entries carry bare base64 DER or PEM. Blank means absent; anything
else that is not a certificate raises CertificateDecodeError.
"""

import pytest

from sbd_receiver.app.crypto.certificates import (
    CertificateDecodeError,
    decode_certificate,
    describe_certificate,
    load_certificate_file,
)

from sbd_receiver.tests.fixtures.certificates import (
    der_bytes,
    make_certificate,
    pem_bytes,
    smp_certificate_string,
)


_CERT = make_certificate(serial_number=0xBEEF, common_name="POP000042")


@pytest.mark.parametrize("value", [None, "", "   \n", b""])
def test_blank_value_decodes_to_none(value):
    assert decode_certificate(value) is None


def test_bare_base64_der_is_decoded():
    assert decode_certificate(smp_certificate_string(_CERT)) == _CERT


def test_base64_wrapped_over_lines_is_decoded():
    encoded = smp_certificate_string(_CERT)
    wrapped = "\n".join(encoded[i:i + 64] for i in range(0, len(encoded), 64))

    assert decode_certificate(f"\n  {wrapped}\n") == _CERT


def test_pem_string_and_bytes_are_decoded():
    pem = pem_bytes(_CERT)

    assert decode_certificate(pem) == _CERT
    assert decode_certificate(pem.decode("ascii")) == _CERT


@pytest.mark.parametrize(
    "value",
    [
        "not base64 at all!",
        "QUJD",  # valid base64, not DER
        "-----BEGIN CERTIFICATE-----\nQUJD\n-----END CERTIFICATE-----",
        "zertifikat-ä".encode("utf-8"),
    ],
)
def test_garbage_raises_decode_error(value):
    with pytest.raises(CertificateDecodeError):
        decode_certificate(value)


@pytest.mark.parametrize("encode", [pem_bytes, der_bytes])
def test_certificate_file_pem_or_der(tmp_path, encode):
    path = tmp_path / "ap.crt"
    path.write_bytes(encode(_CERT))

    assert load_certificate_file(path).serial_number == 0xBEEF


def test_certificate_file_garbage(tmp_path):
    path = tmp_path / "ap.crt"
    path.write_bytes(b"garbage")

    with pytest.raises(CertificateDecodeError):
        load_certificate_file(path)


def test_describe_certificate():
    summary = describe_certificate(_CERT)

    assert summary["serial_number"] == "beef"
    assert "CN=POP000042" in summary["subject"]
    assert summary["subject"] == summary["issuer"]
