"""Tests for certificate inspection backends."""

import subprocess
import threading
from unittest.mock import Mock, patch

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes

from certmerge.exceptions import CertificateParseError, InspectorError
from certmerge.inspector import (
    CryptographyInspector,
    OpenSSLInspector,
    create_inspector,
    inspect_records,
)
from certmerge.models import CertificateDetails, CertificateRecord, InspectorKind, RecordStatus


def test_cryptography_inspector_details(make_block):
    block = make_block("leaf.example.com", "Issuing CA")
    cert = x509.load_pem_x509_certificate(block.encode("ascii"))

    details = CryptographyInspector().inspect(block)

    assert details.fingerprint == cert.fingerprint(hashes.SHA1()).hex()
    assert details.fingerprint == details.fingerprint.lower()
    assert len(details.fingerprint) == 40
    assert details.subject == "CN=leaf.example.com"
    assert details.issuer == "CN=Issuing CA"
    assert details.text is None


def test_cryptography_inspector_text_dump(cert_a):
    details = CryptographyInspector().inspect(cert_a, with_text=True)

    assert details.text.startswith("Certificate:\n")
    assert "Subject: CN=alpha.example.com" in details.text
    assert "Issuer: CN=Example Root CA" in details.text
    assert "basicConstraints: critical" in details.text
    assert "-----BEGIN CERTIFICATE-----" not in details.text


def test_cryptography_inspector_fingerprint_ignores_wrapping(cert_a, rewrap):
    inspector = CryptographyInspector()
    assert inspector.inspect(cert_a).fingerprint == inspector.inspect(rewrap(cert_a)).fingerprint


def test_cryptography_inspector_rejects_garbage(garbage_block):
    with pytest.raises(CertificateParseError):
        CryptographyInspector().inspect(garbage_block)


def _completed(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


@patch("certmerge.inspector.subprocess.run")
def test_openssl_inspector_parses_output(mock_run, cert_a):
    mock_run.return_value = _completed(
        b"SHA1 Fingerprint=AB:CD:EF:01\nsubject=CN=alpha.example.com\nissuer=CN=Example Root CA\n"
    )

    details = OpenSSLInspector(timeout=5).inspect(cert_a)

    assert details == CertificateDetails(
        fingerprint="abcdef01", subject="CN=alpha.example.com", issuer="CN=Example Root CA"
    )
    args, kwargs = mock_run.call_args
    assert args[0][:3] == ["openssl", "x509", "-noout"]
    assert kwargs["input"] == cert_a.encode("ascii")
    assert kwargs["timeout"] == 5


@patch("certmerge.inspector.subprocess.run")
def test_openssl_inspector_text_dump_is_second_call(mock_run, cert_a):
    mock_run.side_effect = [
        _completed(b"sha1 Fingerprint=01:02\nsubject=CN=a\nissuer=CN=b\n"),
        _completed(b"Certificate:\n    Data:\n"),
    ]

    details = OpenSSLInspector().inspect(cert_a, with_text=True)

    assert details.fingerprint == "0102"
    assert details.text == "Certificate:\n    Data:\n"
    assert "-text" in mock_run.call_args_list[1][0][0]


@patch("certmerge.inspector.subprocess.run")
def test_openssl_inspector_nonzero_exit_is_parse_error(mock_run, garbage_block):
    mock_run.return_value = _completed(stderr=b"unable to load certificate\nmore\n", returncode=1)

    with pytest.raises(CertificateParseError, match="unable to load certificate"):
        OpenSSLInspector().inspect(garbage_block)


@patch("certmerge.inspector.subprocess.run")
def test_openssl_inspector_timeout_is_inspector_error(mock_run, cert_a):
    mock_run.side_effect = subprocess.TimeoutExpired(cmd="openssl", timeout=1)

    with pytest.raises(InspectorError, match="timed out"):
        OpenSSLInspector(timeout=1).inspect(cert_a)


@patch("certmerge.inspector.subprocess.run")
def test_openssl_inspector_missing_binary(mock_run, cert_a):
    mock_run.side_effect = FileNotFoundError()

    with pytest.raises(InspectorError, match="not found"):
        OpenSSLInspector(openssl="/nonexistent/openssl").inspect(cert_a)


def test_create_inspector():
    assert isinstance(create_inspector(InspectorKind.CRYPTOGRAPHY), CryptographyInspector)
    openssl = create_inspector(InspectorKind.OPENSSL, timeout=7)
    assert isinstance(openssl, OpenSSLInspector)
    assert openssl.timeout == 7


class FakeInspector:
    """Fingerprint is the block itself; blocks starting with 'bad' fail."""

    def __init__(self):
        self.calls = []
        self.lock = threading.Lock()

    def inspect(self, block, with_text=False):
        with self.lock:
            self.calls.append(block)
        if block.startswith("bad"):
            raise CertificateParseError(f"cannot parse {block}")
        return CertificateDetails(fingerprint=block, subject=f"CN={block}", issuer="CN=CA")


def _records(*blocks):
    return [CertificateRecord(block=b, index=i) for i, b in enumerate(blocks)]


def test_inspect_records_continues_after_parse_error():
    records = _records("a", "bad1", "b")

    bad = inspect_records(records, FakeInspector())

    assert bad == 1
    assert [r.status for r in records] == [RecordStatus.VALID, RecordStatus.INVALID, RecordStatus.VALID]
    assert records[1].details is None
    assert "cannot parse bad1" in records[1].error


@pytest.mark.parametrize("jobs", [1, 4])
def test_inspect_records_parallel_keeps_order(jobs):
    blocks = [f"cert{i}" if i % 5 else f"bad{i}" for i in range(40)]
    records = _records(*blocks)
    inspector = FakeInspector()

    bad = inspect_records(records, inspector, jobs=jobs)

    assert bad == 8
    assert sorted(inspector.calls) == sorted(blocks)
    for record in records:
        if record.block.startswith("bad"):
            assert record.status == RecordStatus.INVALID
        else:
            assert record.details.fingerprint == record.block


def test_inspect_records_propagates_inspector_error():
    inspector = Mock()
    inspector.inspect.side_effect = InspectorError("openssl x509 timed out after 1s")

    with pytest.raises(InspectorError):
        inspect_records(_records("a", "b"), inspector)
