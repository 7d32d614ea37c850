"""
File discovery for sftpartifact.

Expands the multi-line search path into the list of files to archive and
picks the directory that archive member names are relative to.
"""

import fnmatch
import glob
import os
import re
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set

from sftpartifact.report import MemoryReporter, Reporter
from sftpartifact.utils import compute_ancestor

GLOB_CHARS = re.compile(r"[*?\[]")


@dataclass(frozen=True)
class SearchPattern:
    """One line of the search path, made absolute."""

    pattern: str
    negate: bool
    search_path: str


@dataclass(frozen=True)
class SearchResult:
    """Files to archive and the root their member names are relative to."""

    files_to_upload: List[Path]
    root_dir: Path


def literal_root(pattern: str) -> str:
    """Path up to, not including, the first segment with a glob character."""
    segments = pattern.split(os.sep)
    literal: List[str] = []
    for segment in segments:
        if GLOB_CHARS.search(segment):
            break
        literal.append(segment)
    root = os.sep.join(literal)
    if not root and pattern.startswith(os.sep):
        return os.sep
    return root or os.curdir


def parse_patterns(search_path: str) -> List[SearchPattern]:
    """
    Parse the search path into patterns.

    One pattern per line. Blank lines and lines starting with '#' are skipped,
    a leading '!' turns the line into an exclude pattern and '~' is expanded.
    Relative patterns are anchored at the current working directory.
    """
    patterns: List[SearchPattern] = []
    for line in search_path.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        negate = False
        while line.startswith("!"):
            negate = not negate
            line = line[1:].strip()
        if not line:
            continue

        pattern = os.path.abspath(os.path.expanduser(line))
        patterns.append(SearchPattern(pattern, negate, literal_root(pattern)))
    return patterns


def _has_ancestor_in(path: str, roots: Set[str]) -> bool:
    parent = os.path.dirname(path)
    while parent != path:
        if parent in roots:
            return True
        path, parent = parent, os.path.dirname(parent)
    return False


def get_search_paths(patterns: List[SearchPattern]) -> List[str]:
    """
    Literal roots of the include patterns.

    Duplicates and roots lying under another included root are dropped.
    """
    roots = [p.search_path for p in patterns if not p.negate]
    all_roots = set(roots)
    search_paths: List[str] = []
    for root in roots:
        if root in search_paths or _has_ancestor_in(root, all_roots):
            continue
        search_paths.append(root)
    return search_paths


def _is_hidden(path: str, search_root: str) -> bool:
    """Whether path, or any directory from search_root down to it, is hidden."""
    relative = os.path.relpath(path, os.path.dirname(search_root))
    return any(
        part.startswith(".") and part not in (os.curdir, os.pardir)
        for part in relative.split(os.sep)
    )


def _match_parts(parts: List[str], pattern_parts: List[str]) -> bool:
    if not pattern_parts:
        return not parts
    head = pattern_parts[0]
    if head == "**":
        return any(
            _match_parts(parts[i:], pattern_parts[1:]) for i in range(len(parts) + 1)
        )
    if not parts:
        return False
    return fnmatch.fnmatchcase(parts[0], head) and _match_parts(
        parts[1:], pattern_parts[1:]
    )


def path_matches(path: str, pattern: str) -> bool:
    """
    Match path against a glob pattern one segment at a time.

    `*`, `?` and `[...]` never match a separator; only a `**` segment spans
    directories.
    """
    return _match_parts(path.split(os.sep), pattern.split(os.sep))


def _is_excluded(path: str, excludes: List[SearchPattern]) -> bool:
    current = path
    while True:
        if any(path_matches(current, e.pattern) for e in excludes):
            return True
        parent = os.path.dirname(current)
        if parent == current:
            return False
        current = parent


def _walk(directory: str, exclude_hidden: bool) -> Iterator[str]:
    """Yield every entry below directory, following links once."""
    visited = {os.path.realpath(directory)}
    for root, dirs, files in os.walk(directory, followlinks=True):
        if exclude_hidden:
            dirs[:] = [d for d in dirs if not d.startswith(".")]
            files = [f for f in files if not f.startswith(".")]

        kept = []
        for d in sorted(dirs):
            real = os.path.realpath(os.path.join(root, d))
            if real in visited:
                continue
            visited.add(real)
            kept.append(d)
        dirs[:] = kept

        for name in sorted(dirs + files):
            yield os.path.join(root, name)


def expand_pattern(pattern: SearchPattern, exclude_hidden: bool) -> List[str]:
    """All entries (files and directories) matched by one include pattern."""
    matches: List[str] = []
    matched = glob.glob(pattern.pattern, recursive=True, include_hidden=True)
    for match in sorted(matched):
        match = os.path.normpath(match)
        if exclude_hidden and _is_hidden(match, pattern.search_path):
            continue
        matches.append(match)
        if os.path.isdir(match):
            matches.extend(_walk(match, exclude_hidden))
    return matches


def find_files(
    search_path: str,
    exclude_hidden: bool = True,
    reporter: Optional[Reporter] = None,
) -> SearchResult:
    """
    Find the files described by search_path.

    Directories are dropped; the case-insensitive duplicates are reported but
    kept. Zero matches is not an error here: the caller applies the
    if-no-files-found policy.

    Args:
        search_path: Newline separated glob patterns.
        exclude_hidden: Skip files and directories whose name starts with '.'.
        reporter: Event sink for debug and notice messages.

    Returns:
        SearchResult with files in sorted order.
    """
    reporter = reporter or MemoryReporter()
    patterns = parse_patterns(search_path)
    excludes = [p for p in patterns if p.negate]
    search_paths = get_search_paths(patterns)

    candidates: Dict[str, None] = {}
    for pattern in patterns:
        if pattern.negate:
            continue
        reporter.debug(f"Using search path {pattern.search_path}")
        for match in expand_pattern(pattern, exclude_hidden):
            if not _is_excluded(match, excludes):
                candidates[match] = None

    files: List[Path] = []
    seen: Dict[str, str] = {}
    for candidate in sorted(candidates):
        try:
            st_mode = os.stat(candidate).st_mode
        except FileNotFoundError:
            reporter.warning(f"Ignoring broken symbolic link {candidate}")
            continue
        if stat.S_ISDIR(st_mode):
            reporter.debug(f"Ignoring directory {candidate}")
            continue

        files.append(Path(candidate))
        key = candidate.lower()
        if key in seen:
            reporter.notice(
                f"Uploads are case insensitive. There is a collision at {candidate} "
                f"(conflicts with {seen[key]})"
            )
        else:
            seen[key] = candidate

    if len(search_paths) > 1:
        root_dir = compute_ancestor(search_paths)
    elif len(files) == 1 and search_paths and search_paths[0] == str(files[0]):
        root_dir = os.path.dirname(str(files[0]))
    elif search_paths:
        root_dir = search_paths[0]
    else:
        root_dir = os.getcwd()

    reporter.debug(f"Root directory for the artifact: {root_dir}")
    return SearchResult(files_to_upload=files, root_dir=Path(root_dir))
