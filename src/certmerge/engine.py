"""Merge pipeline: load, extract, dedupe, inspect, decide, write."""

import logging
from datetime import datetime
from typing import List, Optional

from certmerge.dedup import dedupe_exact, dedupe_fingerprints
from certmerge.extractor import extract_blocks
from certmerge.inspector import CertificateInspector, create_inspector, inspect_records
from certmerge.loader import read_sources, resolve_path
from certmerge.models import MergeOptions, MergeResult
from certmerge.writer import order_records, render_bundle, write_bundle

logger = logging.getLogger(__name__)


def rewrite_required(result: MergeResult, options: MergeOptions) -> List[str]:
    """
    Decide whether the bundle has to be rewritten.

    Pure function of the engine state after deduplication and inspection.

    Returns:
        Reasons for a rewrite; an empty list means the bundle is already
        in the requested shape and must not be touched
    """
    reasons = []
    if result.added:
        reasons.append(f"{result.added} new certificate(s)")
    if result.unique != result.loaded:
        reasons.append(f"{result.loaded - result.unique} exact duplicate(s)")
    if result.bad:
        reasons.append(f"{result.bad} invalid certificate(s)")
    if result.duplicates:
        reasons.append(f"{result.duplicates} fingerprint duplicate(s)")
    if options.sort:
        reasons.append("sorting by subject requested")
    if options.text:
        reasons.append("text annotation requested")
    if options.title:
        reasons.append("title annotation requested")
    return reasons


def merge_bundle(
    options: MergeOptions,
    inspector: Optional[CertificateInspector] = None,
    now: Optional[datetime] = None,
) -> MergeResult:
    """
    Merge new certificates into a bundle.

    Args:
        options: What to merge and how
        inspector: Inspection backend; created from ``options.inspector``
            when omitted
        now: Timezone-aware timestamp used for the backup name (defaults
            to current time)

    Returns:
        MergeResult with counts, reasons and backup location

    Raises:
        BundleIOError: On any file system failure
        InspectorError: If the inspection backend fails
    """
    bundle_path = resolve_path(options.bundle, options.root)
    contents = read_sources([options.bundle, *options.new_certs], options.root)
    in_bundle = set(extract_blocks(contents[0]))

    blocks = extract_blocks("".join(contents))
    records = dedupe_exact(blocks)
    result = MergeResult(
        bundle_path=bundle_path,
        loaded=len(blocks),
        unique=len(records),
        records=records,
    )
    logger.debug(f"Loaded {result.loaded} certificate(s), {result.unique} unique by content")

    if options.needs_inspection:
        if inspector is None:
            inspector = create_inspector(options.inspector, timeout=options.timeout)
        result.bad = inspect_records(records, inspector, with_text=options.text, jobs=options.jobs)
        if options.fingerprint:
            result.duplicates = dedupe_fingerprints(records)

    result.added = sum(1 for r in records if r.surviving and r.block not in in_bundle)
    result.reasons = rewrite_required(result, options)
    if not result.reasons:
        logger.info(f"{bundle_path}: no changes needed")
        return result
    logger.debug(f"Rewrite required: {'; '.join(result.reasons)}")

    if options.check_only:
        logger.info(f"{bundle_path}: rewrite needed ({'; '.join(result.reasons)})")
        return result

    ordered = order_records(records, sort=options.sort)
    content = render_bundle(ordered, title=options.title, text=options.text)
    result.backup_path = write_bundle(bundle_path, content, now=now)
    result.written = len(ordered)
    result.rewritten = True
    logger.info(f"Wrote {result.written} certificate(s) to {bundle_path}, backup in {result.backup_path}")
    return result
