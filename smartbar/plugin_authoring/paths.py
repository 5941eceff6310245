"""Resolution of user-supplied paths.

Command arguments may be relative, contain ``~`` or environment variables, or
be wildcard patterns. They are turned into absolute filesystem paths before
any command runs.
"""

from __future__ import annotations

import glob
import os
from pathlib import Path
from typing import Optional, Union

from smartbar.utils.exceptions import PathResolutionError

_WILDCARD_CHARS = ("*", "?", "[")


def has_wildcard(path: str) -> bool:
    """Check whether a path contains glob wildcard characters."""
    return any(ch in path for ch in _WILDCARD_CHARS)


def to_full_path(
        path: Optional[Union[str, Path]],
        base_dir: Optional[Union[str, Path]] = None
) -> Optional[Path]:
    """Resolve a path to an absolute filesystem path.

    Args:
        path: Path to resolve; may be relative or a wildcard pattern
        base_dir: Directory relative paths are resolved against
            (default: current working directory)

    Returns:
        The absolute path, or None if ``path`` is blank

    Raises:
        PathResolutionError: If a wildcard pattern matches nothing
    """
    if path is None or not str(path).strip():
        return None

    expanded = os.path.expandvars(os.path.expanduser(str(path).strip()))
    base = Path(base_dir) if base_dir else Path.cwd()
    candidate = Path(expanded)
    if not candidate.is_absolute():
        candidate = base / candidate

    if has_wildcard(expanded):
        matches = sorted(glob.glob(str(candidate)))
        if not matches:
            raise PathResolutionError(f"Cannot find path '{path}' because it does not exist", path=str(path))
        return Path(os.path.normpath(os.path.abspath(matches[0])))

    return Path(os.path.normpath(os.path.abspath(candidate)))
