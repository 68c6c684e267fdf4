"""Exception hierarchy for certmerge."""

from pathlib import Path
from typing import Optional, Union


class CertMergeError(Exception):
    """Base class for all certmerge errors."""


class BundleIOError(CertMergeError, OSError):
    """A file could not be read, renamed or written. Always fatal."""

    def __init__(self, path: Union[str, Path], cause: Union[str, BaseException], backup: Optional[Path] = None):
        self.path = Path(path)
        self.cause = cause
        self.backup = backup
        message = f"{self.path}: {cause}"
        if backup is not None:
            message += f" (original content preserved in {backup})"
        super().__init__(message)


class CertificateParseError(CertMergeError, ValueError):
    """A block between certificate markers is not a valid X.509 certificate."""


class InspectorError(CertMergeError):
    """The certificate inspection backend itself failed (missing tool, timeout)."""
