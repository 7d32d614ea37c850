"""
Path helpers for sftpartifact.

Contains the least-common-ancestor calculation used to pick the archive root,
the archive member naming derived from it and duration formatting.
"""

import os
from typing import Sequence

from sftpartifact.errors import ArchiveError, InvalidArgumentError


def compute_ancestor(roots: Sequence[str]) -> str:
    """
    Return the least common ancestor (LCA) of several search roots.

    Example 1: the roots `/foo/` and `/bar/` give `/`.
    Example 2: `/foo/bar/*`, `/foo/voo/two/*` and `/foo/mo/` give `/foo`.

    Args:
        roots: At least two path strings.

    Returns:
        The deepest path shared by every root.

    Raises:
        InvalidArgumentError: If fewer than two roots are given.
    """
    if len(roots) < 2:
        raise InvalidArgumentError("At least two search paths must be provided")

    split_roots = [os.path.normpath(root).split(os.sep) for root in roots]
    smallest = min(len(parts) for parts in split_roots)

    common = []
    # Keep the leading separator of absolute paths, even with no shared segment
    if roots[0].startswith(os.sep):
        common.append(os.sep)

    for index in range(smallest):
        segment = split_roots[0][index]
        if any(parts[index] != segment for parts in split_roots[1:]):
            break
        common.append(segment)

    if not common:
        return os.curdir
    return os.path.join(*common)


def canonical_path(path: str) -> str:
    """Absolute, normalized path with symbolic links resolved."""
    return os.path.realpath(os.path.abspath(os.path.normpath(path)))


def _strip_root(path: str, root_dir: str) -> str:
    root = root_dir.rstrip(os.sep) + os.sep
    if path.startswith(root):
        return path[len(root) :]
    return ""


def member_name(path: str, root_dir: str) -> str:
    """
    Name of a file inside the archive.

    The file path is canonicalized and the root directory removed as a
    literal prefix. When canonicalization leaves the root (a symlink pointing
    elsewhere), the normalized unresolved path is used instead.

    Args:
        path: Source file path.
        root_dir: Archive root directory.

    Returns:
        Relative member name using '/' separators.

    Raises:
        ArchiveError: If the file does not live under root_dir.
    """
    root = canonical_path(root_dir)
    name = _strip_root(canonical_path(path), root)
    if not name:
        name = _strip_root(os.path.abspath(os.path.normpath(path)), root)
    if not name:
        name = _strip_root(
            os.path.abspath(os.path.normpath(path)),
            os.path.abspath(os.path.normpath(root_dir)),
        )
    if not name:
        raise ArchiveError(f"File '{path}' is not within root directory '{root_dir}'")
    return name.replace(os.sep, "/")


def format_elapsed(elapsed: float) -> str:
    """Format a duration in seconds as e.g. '1h 2m 3.40s'."""
    days = int(elapsed // 86400)
    hours = int((elapsed % 86400) // 3600)
    minutes = int((elapsed % 3600) // 60)
    seconds = elapsed % 60

    time_parts = []
    if days > 0:
        time_parts.append(f"{days}d")
    if hours > 0 or days > 0:
        time_parts.append(f"{hours}h")
    if minutes > 0 or hours > 0 or days > 0:
        time_parts.append(f"{minutes}m")
    time_parts.append(f"{seconds:.2f}s")
    return " ".join(time_parts)
