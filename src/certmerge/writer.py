"""Rendering and writing the merged bundle."""

import logging
import os
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional

from certmerge.exceptions import BundleIOError
from certmerge.loader import ENCODING, ERRORS
from certmerge.models import CertificateRecord

logger = logging.getLogger(__name__)

TEXT_SEPARATOR = "=" * 77
BACKUP_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def order_records(records: Iterable[CertificateRecord], sort: bool = False) -> List[CertificateRecord]:
    """
    Return the surviving records in output order.

    First-seen order unless ``sort`` is set, in which case records are
    ordered by case-folded subject. The sort is stable, so records with
    equal subjects keep their first-seen order and a sorted bundle sorts
    to itself.
    """
    surviving = sorted((r for r in records if r.surviving), key=lambda r: r.index)
    if sort:
        surviving.sort(key=lambda r: r.subject.casefold())
    return surviving


def render_bundle(records: Iterable[CertificateRecord], title: bool = False, text: bool = False) -> str:
    """
    Render records as bundle file content.

    Per record: an optional title (subject and issuer lines, blank line),
    an optional text dump preceded by a separator line, then the original
    block verbatim followed by a blank line. Lines added around a block use
    the block's own line terminator, so a CRLF bundle stays CRLF.
    """
    parts = []
    for record in records:
        eol = "\r\n" if "\r\n" in record.block else "\n"
        if title and record.details is not None:
            parts.append(f"subject= {record.details.subject}{eol}")
            parts.append(f"issuer= {record.details.issuer}{eol}")
            parts.append(eol)
        if text and record.details is not None and record.details.text:
            parts.append(TEXT_SEPARATOR + eol)
            dump = record.details.text.replace("\r\n", "\n")
            dump = dump if dump.endswith("\n") else dump + "\n"
            parts.append(dump.replace("\n", eol))
        parts.append(record.block)
        parts.append(eol + eol)
    return "".join(parts)


def backup_path_for(path: Path, now: Optional[datetime] = None) -> Path:
    """
    Backup location: the bundle path plus a UTC timestamp suffix.

    Raises:
        ValueError: If ``now`` is a naive datetime
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None or now.utcoffset() is None:
        raise ValueError("backup timestamp must be timezone-aware")
    return Path(f"{path}.{now.astimezone(timezone.utc).strftime(BACKUP_TIMESTAMP_FORMAT)}")


def write_bundle(path: Path, content: str, now: Optional[datetime] = None) -> Path:
    """
    Replace the bundle with new content, keeping the original as a backup.

    The original is renamed to the backup path first, so it is never
    modified in place. If the rename fails nothing has changed on disk.

    Args:
        path: Bundle to replace
        content: Fully rendered new content
        now: Timezone-aware timestamp for the backup name (defaults to
            current UTC time)

    Returns:
        Path of the backup file

    Raises:
        BundleIOError: If the backup exists already, the rename fails, or
            the new bundle cannot be written
    """
    backup = backup_path_for(path, now)
    if os.path.lexists(backup):
        raise BundleIOError(backup, "backup file already exists")

    try:
        os.rename(path, backup)
    except OSError as e:
        raise BundleIOError(path, f"cannot rename to {backup}: {e.strerror or e}") from e
    logger.debug(f"Renamed {path} to {backup}")

    try:
        with open(path, "x", encoding=ENCODING, errors=ERRORS, newline="") as f:
            f.write(content)
        shutil.copymode(backup, path)
    except OSError as e:
        raise BundleIOError(path, e.strerror or e, backup=backup) from e

    return backup
