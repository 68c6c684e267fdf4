"""Certificate inspection backends."""

import logging
import subprocess
import warnings
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Protocol, Sequence

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, rsa

from certmerge.exceptions import CertificateParseError, InspectorError
from certmerge.models import CertificateDetails, CertificateRecord, InspectorKind

logger = logging.getLogger(__name__)

# Legacy roots with non-positive serials
warnings.filterwarnings("ignore", message="Parsed a serial number which wasn't positive")


class CertificateInspector(Protocol):
    """Parses one PEM block and reports its identity."""

    def inspect(self, block: str, with_text: bool = False) -> CertificateDetails:
        """
        Args:
            block: PEM text of exactly one certificate
            with_text: Also produce a human-readable dump

        Raises:
            CertificateParseError: The block is not a valid certificate
            InspectorError: The backend itself failed
        """
        ...


def _encode_block(block: str) -> bytes:
    return block.encode("utf-8", errors="surrogateescape")


def _oid_name(oid: x509.ObjectIdentifier) -> str:
    return getattr(oid, "_name", None) or oid.dotted_string


def _describe_public_key(cert: x509.Certificate) -> str:
    key = cert.public_key()
    if isinstance(key, rsa.RSAPublicKey):
        return f"RSA ({key.key_size} bit)"
    if isinstance(key, ec.EllipticCurvePublicKey):
        return f"EC {key.curve.name} ({key.key_size} bit)"
    if isinstance(key, dsa.DSAPublicKey):
        return f"DSA ({key.key_size} bit)"
    if isinstance(key, ed25519.Ed25519PublicKey):
        return "Ed25519"
    if isinstance(key, ed448.Ed448PublicKey):
        return "Ed448"
    return type(key).__name__


def render_certificate_text(cert: x509.Certificate) -> str:
    """Render the fields of a certificate as an indented text dump."""
    lines = [
        "Certificate:",
        "    Data:",
        f"        Version: {cert.version.value + 1} ({hex(cert.version.value)})",
        f"        Serial Number: {cert.serial_number:x}",
        f"        Signature Algorithm: {_oid_name(cert.signature_algorithm_oid)}",
        f"        Issuer: {cert.issuer.rfc4514_string()}",
        "        Validity",
        f"            Not Before: {cert.not_valid_before_utc:%b %d %H:%M:%S %Y} GMT",
        f"            Not After : {cert.not_valid_after_utc:%b %d %H:%M:%S %Y} GMT",
        f"        Subject: {cert.subject.rfc4514_string()}",
        "        Subject Public Key Info:",
        f"            Public Key Algorithm: {_describe_public_key(cert)}",
    ]
    try:
        extensions = list(cert.extensions)
    except (ValueError, x509.DuplicateExtension, x509.UnsupportedGeneralNameType) as e:
        lines.append(f"        X509v3 extensions: <unparsable: {e}>")
        extensions = []
    if extensions:
        lines.append("        X509v3 extensions:")
        for ext in extensions:
            critical = " critical" if ext.critical else ""
            lines.append(f"            {_oid_name(ext.oid)}:{critical}")
            lines.append(f"                {ext.value}")
    lines.append(f"    Signature Algorithm: {_oid_name(cert.signature_algorithm_oid)}")
    return "\n".join(lines) + "\n"


class CryptographyInspector:
    """In-process inspection with the cryptography library."""

    def inspect(self, block: str, with_text: bool = False) -> CertificateDetails:
        try:
            cert = x509.load_pem_x509_certificate(_encode_block(block))
            fingerprint = cert.fingerprint(hashes.SHA1()).hex()
            subject = cert.subject.rfc4514_string()
            issuer = cert.issuer.rfc4514_string()
            text: Optional[str] = None
            if with_text:
                text = render_certificate_text(cert)
        except (ValueError, x509.InvalidVersion, UnsupportedAlgorithm) as e:
            raise CertificateParseError(str(e) or type(e).__name__) from e

        return CertificateDetails(fingerprint=fingerprint, subject=subject, issuer=issuer, text=text)


class OpenSSLInspector:
    """
    Inspection through the openssl command line tool.

    The block is passed on stdin, so every call owns its pipes and nothing
    touches the filesystem. A call that exceeds ``timeout`` seconds is killed
    and reported as an InspectorError.
    """

    def __init__(self, openssl: str = "openssl", timeout: float = 30.0):
        self.openssl = openssl
        self.timeout = timeout

    def _run(self, block: str, args: Sequence[str]) -> str:
        cmd = [self.openssl, "x509", "-noout", *args]
        try:
            result = subprocess.run(
                cmd,
                input=_encode_block(block),
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise InspectorError(f"openssl x509 timed out after {self.timeout}s") from e
        except FileNotFoundError as e:
            raise InspectorError(f"openssl command not found: {self.openssl}") from e
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            first_line = stderr.splitlines()[0] if stderr else f"exit status {result.returncode}"
            raise CertificateParseError(first_line)
        return result.stdout.decode("utf-8", errors="replace")

    def inspect(self, block: str, with_text: bool = False) -> CertificateDetails:
        output = self._run(
            block,
            ["-fingerprint", "-sha1", "-subject", "-issuer", "-nameopt", "RFC2253"],
        )
        fingerprint = subject = issuer = None
        for line in output.splitlines():
            key, sep, value = line.partition("=")
            if not sep:
                continue
            key = key.strip().lower()
            if key.endswith("fingerprint"):
                fingerprint = value.strip().replace(":", "").lower()
            elif key == "subject":
                subject = value.strip()
            elif key == "issuer":
                issuer = value.strip()
        if fingerprint is None or subject is None or issuer is None:
            raise CertificateParseError(f"unexpected openssl output: {output.strip()!r}")

        text = self._run(block, ["-text"]) if with_text else None
        return CertificateDetails(fingerprint=fingerprint, subject=subject, issuer=issuer, text=text)


def create_inspector(kind: InspectorKind, timeout: float = 30.0) -> CertificateInspector:
    if kind == InspectorKind.OPENSSL:
        return OpenSSLInspector(timeout=timeout)
    return CryptographyInspector()


def inspect_records(
    records: List[CertificateRecord],
    inspector: CertificateInspector,
    with_text: bool = False,
    jobs: int = 1,
) -> int:
    """
    Inspect every record and mark it valid or invalid.

    Records are inspected independently; one unparsable block never stops
    the others. With ``jobs > 1`` inspection runs on a thread pool, and
    results are applied back in first-seen order.

    Args:
        records: Records in first-seen order
        inspector: Backend to use
        with_text: Request text dumps
        jobs: Number of parallel inspections

    Returns:
        Number of records marked invalid

    Raises:
        InspectorError: If the backend fails (propagated, nothing is written)
    """

    def _inspect(record: CertificateRecord):
        try:
            return inspector.inspect(record.block, with_text=with_text)
        except CertificateParseError as e:
            return e

    if jobs > 1 and len(records) > 1:
        with ThreadPoolExecutor(max_workers=jobs) as pool:
            outcomes = list(pool.map(_inspect, records))
    else:
        outcomes = [_inspect(record) for record in records]

    bad = 0
    for record, outcome in zip(records, outcomes):
        if isinstance(outcome, CertificateParseError):
            record.mark_invalid(str(outcome))
            bad += 1
            logger.warning(f"Dropping invalid certificate #{record.index + 1}: {outcome}")
        else:
            record.mark_valid(outcome)
            logger.debug(f"Certificate #{record.index + 1}: {outcome.subject} (SHA1 {outcome.fingerprint})")
    return bad
