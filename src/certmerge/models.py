"""Data models for bundle merging."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, List


class RecordStatus(str, Enum):
    """Lifecycle state of a certificate record."""

    PENDING = "PENDING"  # not inspected
    VALID = "VALID"
    INVALID = "INVALID"
    DUPLICATE = "DUPLICATE"  # same fingerprint as an earlier record


class InspectorKind(str, Enum):
    """Available certificate inspection backends."""

    CRYPTOGRAPHY = "cryptography"
    OPENSSL = "openssl"


@dataclass(frozen=True)
class CertificateDetails:
    """Metadata derived from a parsed certificate."""

    fingerprint: str  # lowercase hex SHA1 over DER, no separators
    subject: str
    issuer: str
    text: Optional[str] = None


@dataclass
class CertificateRecord:
    """One extracted certificate block plus whatever inspection found out."""

    block: str
    index: int  # first-seen position among unique blocks
    details: Optional[CertificateDetails] = None
    status: RecordStatus = RecordStatus.PENDING
    error: Optional[str] = None

    @property
    def surviving(self) -> bool:
        return self.status in (RecordStatus.PENDING, RecordStatus.VALID)

    @property
    def subject(self) -> str:
        return self.details.subject if self.details else ""

    def mark_valid(self, details: CertificateDetails) -> None:
        self.details = details
        self.status = RecordStatus.VALID

    def mark_invalid(self, error: str) -> None:
        self.status = RecordStatus.INVALID
        self.error = error

    def mark_duplicate(self, first: "CertificateRecord") -> None:
        self.status = RecordStatus.DUPLICATE
        self.error = f"same fingerprint as certificate #{first.index + 1}"


@dataclass
class MergeOptions:
    """Everything a merge run needs to know, built by the CLI or a caller."""

    bundle: Path
    new_certs: List[Path] = field(default_factory=list)
    root: Optional[Path] = None
    fingerprint: bool = False  # dedupe on SHA1 fingerprint instead of exact text
    sort: bool = False  # order by subject, case-insensitive
    title: bool = False  # annotate with subject/issuer lines
    text: bool = False  # annotate with a full text dump
    check_only: bool = False  # decide, never write
    jobs: int = 1
    inspector: InspectorKind = InspectorKind.CRYPTOGRAPHY
    timeout: float = 30.0

    @property
    def needs_inspection(self) -> bool:
        return self.fingerprint or self.sort or self.title or self.text


@dataclass
class MergeResult:
    """Outcome of a merge run."""

    bundle_path: Path
    loaded: int
    unique: int
    bad: int = 0
    duplicates: int = 0
    added: int = 0  # surviving certificates not already in the bundle file
    written: int = 0
    rewritten: bool = False
    backup_path: Optional[Path] = None
    reasons: List[str] = field(default_factory=list)
    records: List[CertificateRecord] = field(default_factory=list)

    @property
    def rewrite_needed(self) -> bool:
        return bool(self.reasons)

    @property
    def removed(self) -> int:
        return (self.loaded - self.unique) + self.bad + self.duplicates

    @property
    def surviving(self) -> List[CertificateRecord]:
        return [r for r in self.records if r.surviving]
