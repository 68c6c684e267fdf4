"""Shared fixtures: freshly generated certificates in PEM form."""

import textwrap
from pathlib import Path
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.x509.oid import NameOID
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives import serialization


def build_certificate(common_name: str, issuer_name: str = None) -> x509.Certificate:
    """Create a certificate signed with a throwaway EC key."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, issuer_name or common_name)])
    now = datetime.now(timezone.utc)

    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(private_key, hashes.SHA256())
    )


def to_block(cert: x509.Certificate) -> str:
    """PEM text as the extractor returns it (no trailing newline)."""
    return cert.public_bytes(serialization.Encoding.PEM).decode("ascii").rstrip("\n")


def rewrap_block(block: str, width: int = 76) -> str:
    """Same certificate, base64 body wrapped at a different width."""
    lines = block.splitlines()
    body = "".join(lines[1:-1])
    return "\n".join([lines[0], *textwrap.wrap(body, width), lines[-1]])


@pytest.fixture
def make_block():
    """Factory for PEM blocks of new certificates."""

    def _make(common_name: str, issuer_name: str = None) -> str:
        return to_block(build_certificate(common_name, issuer_name))

    return _make


@pytest.fixture
def cert_a(make_block):
    return make_block("alpha.example.com", "Example Root CA")


@pytest.fixture
def cert_b(make_block):
    return make_block("beta.example.com", "Example Root CA")


@pytest.fixture
def write_pem(tmp_path):
    """Write blocks to a file under tmp_path, one blank line between them."""

    def _write(name: str, *blocks: str, header: str = "") -> Path:
        path = tmp_path / name
        path.write_bytes((header + "".join(block + "\n\n" for block in blocks)).encode("utf-8"))
        return path

    return _write


@pytest.fixture
def garbage_block():
    """Well-formed markers around something that is not a certificate."""
    return "-----BEGIN CERTIFICATE-----\nbm90IGEgY2VydGlmaWNhdGU=\n-----END CERTIFICATE-----"


@pytest.fixture
def rewrap():
    return rewrap_block
