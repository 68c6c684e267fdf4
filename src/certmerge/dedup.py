"""Duplicate removal by exact text and by fingerprint."""

import logging
from typing import Dict, Iterable, List

from certmerge.models import CertificateRecord, RecordStatus

logger = logging.getLogger(__name__)


def dedupe_exact(blocks: Iterable[str]) -> List[CertificateRecord]:
    """
    Keep the first occurrence of every distinct block.

    Blocks are compared as exact strings, so a certificate re-wrapped at a
    different line length counts as a different block here.

    Args:
        blocks: Extracted blocks in first-seen order

    Returns:
        One record per distinct block, in first-seen order
    """
    seen: Dict[str, CertificateRecord] = {}
    for block in blocks:
        if block in seen:
            logger.debug(f"Dropping exact duplicate of certificate #{seen[block].index + 1}")
            continue
        seen[block] = CertificateRecord(block=block, index=len(seen))
    return list(seen.values())


def dedupe_fingerprints(records: Iterable[CertificateRecord]) -> int:
    """
    Mark records whose fingerprint was already seen as duplicates.

    Must run on records in first-seen order after inspection; only VALID
    records take part.

    Returns:
        Number of records marked as duplicates
    """
    first_seen: Dict[str, CertificateRecord] = {}
    duplicates = 0
    for record in records:
        if record.status != RecordStatus.VALID or record.details is None:
            continue
        fingerprint = record.details.fingerprint
        if fingerprint in first_seen:
            record.mark_duplicate(first_seen[fingerprint])
            duplicates += 1
            logger.info(f"Dropping duplicate certificate {record.subject} (SHA1 {fingerprint})")
        else:
            first_seen[fingerprint] = record
    return duplicates
