"""Locating PEM certificate blocks in raw text."""

import logging
import re
from typing import List

logger = logging.getLogger(__name__)

BEGIN_MARKER = "-----BEGIN CERTIFICATE-----"
END_MARKER = "-----END CERTIFICATE-----"

# Marker lines must stand alone; a trailing CR is tolerated for CRLF files
_BLOCK_RE = re.compile(
    r"^" + re.escape(BEGIN_MARKER) + r"\r?$.*?^" + re.escape(END_MARKER) + r"(?=\r?$)",
    re.MULTILINE | re.DOTALL,
)


def extract_blocks(text: str) -> List[str]:
    """
    Extract certificate blocks in the order they appear.

    Each block runs from the BEGIN marker line to the END marker and is a
    verbatim slice of the input. Anything outside a block (comments, blank
    lines, annotations from earlier runs) is dropped.

    Args:
        text: Concatenated file contents

    Returns:
        List of blocks, duplicates included
    """
    blocks = [m.group(0) for m in _BLOCK_RE.finditer(text)]
    logger.debug(f"Extracted {len(blocks)} certificate block(s)")
    return blocks
