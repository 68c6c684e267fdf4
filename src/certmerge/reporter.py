"""Run summaries (text and JSON)."""

import json
from io import StringIO
from pathlib import Path
from typing import Any, Dict

from rich.console import Console

from certmerge.models import MergeResult, RecordStatus

# Global flag for colored output
_use_color = True


def set_color_output(enabled: bool) -> None:
    """Enable or disable colored output."""
    global _use_color
    _use_color = enabled


def _format_outcome(result: MergeResult) -> str:
    """Short outcome label, colored when enabled."""
    if result.rewritten:
        label, style = "REWRITTEN", "yellow"
    elif result.rewrite_needed:
        label, style = "REWRITE NEEDED", "red"
    else:
        label, style = "UNCHANGED", "green"
    if not _use_color:
        return label
    output = StringIO()
    console = Console(file=output, force_terminal=True, width=1000)
    console.print(f"[{style}]{label}[/{style}]", end="")
    return output.getvalue()


def generate_text_report(result: MergeResult) -> str:
    """
    Generate human-readable summary of a merge run.

    Args:
        result: MergeResult to report

    Returns:
        Formatted text report
    """
    lines = []
    lines.append(f"Bundle: {result.bundle_path}")
    lines.append(f"Status: {_format_outcome(result)}")
    lines.append(f"Loaded: {result.loaded}")
    lines.append(f"Unique: {result.unique}")
    if result.added:
        lines.append(f"Added: {result.added}")
    if result.bad:
        lines.append(f"Removed (invalid): {result.bad}")
    if result.duplicates:
        lines.append(f"Removed (fingerprint duplicates): {result.duplicates}")
    lines.append(f"Removed (total): {result.removed}")

    if result.rewritten:
        lines.append(f"Written: {result.written}")
        lines.append(f"Backup: {result.backup_path}")
    elif result.rewrite_needed:
        lines.append(f"Reasons: {'; '.join(result.reasons)}")
    else:
        lines.append("No changes needed, bundle left untouched")

    dropped = [r for r in result.records if r.status in (RecordStatus.INVALID, RecordStatus.DUPLICATE)]
    if dropped:
        lines.append("")
        lines.append("Dropped certificates:")
        for record in dropped:
            name = record.subject or "<unparsable>"
            lines.append(f"  #{record.index + 1} {record.status.value}: {name} ({record.error})")

    return "\n".join(lines)


def generate_json_report(result: MergeResult) -> str:
    """
    Generate JSON report.

    Certificate blocks and text dumps are left out; records carry their
    position, status and identity.
    """

    def serialize(obj: Any) -> str:
        if isinstance(obj, Path):
            return str(obj)
        elif isinstance(obj, RecordStatus):
            return obj.value
        raise TypeError(f"Type {type(obj)} not serializable")

    data: Dict[str, Any] = {
        "bundle": result.bundle_path,
        "loaded": result.loaded,
        "unique": result.unique,
        "bad": result.bad,
        "duplicates": result.duplicates,
        "added": result.added,
        "removed": result.removed,
        "written": result.written,
        "rewritten": result.rewritten,
        "rewrite_needed": result.rewrite_needed,
        "backup": result.backup_path,
        "reasons": result.reasons,
        "certificates": [
            {
                "index": record.index + 1,
                "status": record.status,
                "fingerprint_sha1": record.details.fingerprint if record.details else None,
                "subject": record.details.subject if record.details else None,
                "issuer": record.details.issuer if record.details else None,
                "error": record.error,
            }
            for record in result.records
        ],
    }
    return json.dumps(data, indent=2, default=serialize)
