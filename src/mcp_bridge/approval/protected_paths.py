"""Workspace boundary and protected-file checks for auto-approval.

Two independent checks feed the write/read policy:

- WorkspaceBoundary: is a path inside one of the workspace roots?
- ProtectedFileMatcher: does a path match one of the protected file
  patterns (VCS metadata, editor settings, lock files, keys, env files)?

Pattern matching is a simple glob-to-regex translation, not a full glob
engine:
- ``**/`` matches zero or more whole path segments
- ``**`` elsewhere matches anything, separators included
- ``*`` matches a run of non-separator characters
- ``?`` matches exactly one character
- everything else is literal

A pattern must match the end of the candidate path and start at a segment
boundary (start of the path or right after a ``/``). Candidates are POSIX
paths relative to the containing workspace root, or the resolved absolute
path when outside every root.

Symlink-safe: roots and candidates are resolved to real paths first.
"""

from __future__ import annotations

__all__ = [
    "ProtectedFileMatcher",
    "WorkspaceBoundary",
    "translate_pattern",
]

import os
import re
from pathlib import Path, PurePath
from typing import Iterable

from mcp_bridge.constants import PROTECTED_FILE_PATTERNS


def translate_pattern(pattern: str) -> re.Pattern[str]:
    """Translate a glob-like protected-file pattern to a compiled regex.

    - ``**/`` at the start of a segment: zero or more whole segments
    - ``**`` as the last segment: everything below that directory
    - ``**`` anywhere else, and ``*``: a run of non-separator characters
      (``a**b`` and ``a*b`` match the same paths)
    - ``?``: one character

    Args:
        pattern: Pattern such as ``**/.env`` or ``.git/**``.

    Returns:
        Regex to be applied with ``search`` to a POSIX path.
    """
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        segment_start = i == 0 or pattern[i - 1] == "/"
        if segment_start and pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            # A trailing "/**" segment spans everything below it; inside a
            # segment "**" is the same as "*"
            parts.append(".*" if segment_start and i + 2 == len(pattern) else "[^/]*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append(".")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("(?:^|/)" + "".join(parts) + "$")


class WorkspaceBoundary:
    """Decide whether paths lie inside the workspace roots.

    Roots are resolved once at initialization. A path equal to a root, or
    under it, is inside. With no roots configured, nothing is inside.
    """

    def __init__(self, roots: Iterable[str] = ()) -> None:
        self._roots = tuple(os.path.realpath(r) for r in roots)

    @property
    def roots(self) -> tuple[str, ...]:
        """Get the resolved workspace roots."""
        return self._roots

    def _containing_root(self, resolved: str) -> str | None:
        for root in self._roots:
            if resolved == root or resolved.startswith(root.rstrip(os.sep) + os.sep):
                return root
        return None

    def contains(self, path: str) -> bool:
        """Check if path is inside any workspace root."""
        if not self._roots:
            return False
        try:
            resolved = os.path.realpath(path)
        except (OSError, ValueError):
            return False
        return self._containing_root(resolved) is not None

    def candidate_path(self, path: str) -> str:
        """POSIX path used for protected-pattern matching.

        Relative to the containing root when inside the workspace,
        otherwise the resolved absolute path.
        """
        try:
            resolved = os.path.realpath(path)
        except (OSError, ValueError):
            return PurePath(path).as_posix()

        root = self._containing_root(resolved)
        if root is None:
            return Path(resolved).as_posix()
        return Path(resolved).relative_to(root).as_posix()


class ProtectedFileMatcher:
    """Match paths against protected file patterns.

    Usage in the policy engine:
        matcher = ProtectedFileMatcher()
        if matcher.matches(boundary.candidate_path(path)):
            ...  # requires the protected-files override
    """

    def __init__(self, patterns: Iterable[str] = PROTECTED_FILE_PATTERNS) -> None:
        self._patterns = tuple(patterns)
        self._compiled = tuple(translate_pattern(p) for p in self._patterns)

    @property
    def patterns(self) -> tuple[str, ...]:
        """Get the source patterns."""
        return self._patterns

    def matches(self, candidate: str) -> bool:
        """Check if a POSIX candidate path matches any protected pattern."""
        return any(regex.search(candidate) for regex in self._compiled)

    def matching_pattern(self, candidate: str) -> str | None:
        """Return the first pattern that matches, for logging."""
        for pattern, regex in zip(self._patterns, self._compiled):
            if regex.search(candidate):
                return pattern
        return None
