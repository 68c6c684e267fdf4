"""Reading bundle and certificate files."""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from certmerge.exceptions import BundleIOError

logger = logging.getLogger(__name__)

# Undecodable bytes round-trip unchanged through surrogateescape
ENCODING = "utf-8"
ERRORS = "surrogateescape"


def resolve_path(path: Union[str, Path], root: Optional[Path] = None) -> Path:
    """
    Apply the alternate filesystem root to a path.

    Args:
        path: Path as given on the command line
        root: Optional root prefix (e.g. a chroot or image mount point)

    Returns:
        The path below root, or the path unchanged when no root is set
    """
    path = Path(path)
    if root is None:
        return path
    return Path(root) / str(path).lstrip("/")


def read_file(path: Path) -> str:
    """Read a file verbatim (no newline translation)."""
    try:
        with open(path, "r", encoding=ENCODING, errors=ERRORS, newline="") as f:
            return f.read()
    except OSError as e:
        raise BundleIOError(path, e.strerror or e) from e


def read_sources(paths: Iterable[Union[str, Path]], root: Optional[Path] = None) -> List[str]:
    """
    Read every input file, each followed by a newline.

    The newline keeps a missing final newline from gluing an END marker to
    the next file's BEGIN marker.

    Raises:
        BundleIOError: If any file cannot be read
    """
    contents = []
    for path in paths:
        resolved = resolve_path(path, root)
        content = read_file(resolved)
        logger.debug(f"Read {len(content)} characters from {resolved}")
        contents.append(content + "\n")
    return contents


def load_sources(paths: Iterable[Union[str, Path]], root: Optional[Path] = None) -> str:
    """
    Concatenate the contents of all input files.

    The first path is the bundle, the rest are new certificate sources.

    Raises:
        BundleIOError: If any file cannot be read
    """
    return "".join(read_sources(paths, root))
