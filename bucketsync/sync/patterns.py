"""Include/exclude pattern matching for sync inventories.

Patterns are matched against slash-separated paths relative to the sync root:

- ``*`` matches any run of characters except ``/``
- ``?`` matches one character except ``/``
- ``[abc]``, ``[a-z]``, ``[^0-9]`` match one character from a class
- ``\\`` escapes the next character
- a trailing ``/`` (``build/``) matches that directory and everything under it
- a single ``**`` splits the pattern into a literal prefix and suffix
  (``logs/**.gz`` matches any path starting with ``logs/`` and ending in ``.gz``)

Patterns with more than one ``**`` are accepted by validation but never match.
"""

import logging
import re
from functools import lru_cache
from typing import Iterable, Optional

from ..exceptions import PatternError

logger = logging.getLogger(__name__)

RECURSIVE_WILDCARD = "**"


def glob_to_regex(pattern: str) -> str:
    """Translate a glob pattern into an anchored-by-fullmatch regex.

    Args:
        pattern: Glob pattern

    Returns:
        Regular expression source

    Raises:
        ValueError: If the pattern is malformed (unterminated or empty class,
            trailing backslash)

    Examples:
        >>> glob_to_regex("*.md")
        '[^/]*\\\\.md'
    """
    parts: list[str] = []
    i = 0
    n = len(pattern)

    while i < n:
        c = pattern[i]
        if c == "*":
            parts.append("[^/]*")
            i += 1
        elif c == "?":
            parts.append("[^/]")
            i += 1
        elif c == "\\":
            if i + 1 >= n:
                raise ValueError("trailing backslash")
            parts.append(re.escape(pattern[i + 1]))
            i += 2
        elif c == "[":
            class_regex, i = _translate_class(pattern, i + 1)
            parts.append(class_regex)
        else:
            parts.append(re.escape(c))
            i += 1

    return "".join(parts)


def _class_char(pattern: str, i: int) -> tuple[str, int]:
    """Read one (possibly escaped) character inside a class."""
    n = len(pattern)
    if i >= n:
        raise ValueError("unterminated character class")
    c = pattern[i]
    if c in "-]":
        raise ValueError(f"unexpected {c!r} in character class")
    if c == "\\":
        if i + 1 >= n:
            raise ValueError("trailing backslash")
        return pattern[i + 1], i + 2
    return c, i + 1


def _translate_class(pattern: str, i: int) -> tuple[str, int]:
    """Translate a ``[...]`` class starting just after the ``[``.

    Returns:
        Tuple of (regex, index just past the closing ``]``)
    """
    n = len(pattern)
    negate = False
    if i < n and pattern[i] in "^!":
        negate = True
        i += 1

    items: list[str] = []
    ranges = 0
    while True:
        if i >= n:
            raise ValueError("unterminated character class")
        if pattern[i] == "]" and ranges > 0:
            i += 1
            break

        lo, i = _class_char(pattern, i)
        hi = lo
        if i < n and pattern[i] == "-":
            hi, i = _class_char(pattern, i + 1)
        ranges += 1

        # An inverted range is legal but matches nothing
        if lo > hi:
            continue
        if lo == hi:
            items.append(re.escape(lo))
        else:
            items.append(f"{re.escape(lo)}-{re.escape(hi)}")

    body = "".join(items)
    if negate:
        return f"[^/{body}]", i
    if not body:
        return "(?!)", i
    return f"[{body}]", i


@lru_cache(maxsize=512)
def _compile(pattern: str) -> "re.Pattern[str]":
    return re.compile(glob_to_regex(pattern), re.DOTALL)


class PatternMatcher:
    """Decides which relative paths take part in a sync.

    Examples:
        >>> matcher = PatternMatcher()
        >>> matcher.should_include("docs/readme.md", [], ["docs/"])
        False
        >>> matcher.should_include("main.go", ["*.go"], [])
        True
    """

    def should_include(
        self,
        rel_path: str,
        include_patterns: Optional[Iterable[str]] = None,
        exclude_patterns: Optional[Iterable[str]] = None,
    ) -> bool:
        """Check whether a path passes the include/exclude filter.

        Excludes are evaluated first and win over includes. With include
        patterns, the path must match at least one of them; without any,
        every path that is not excluded is included.

        Args:
            rel_path: Path relative to the sync root (either separator)
            include_patterns: Patterns selecting paths
            exclude_patterns: Patterns rejecting paths

        Returns:
            True if the path should be synced
        """
        rel_path = rel_path.replace("\\", "/")

        for pattern in exclude_patterns or ():
            if self.matches_pattern(rel_path, pattern):
                logger.debug("Excluding %s (matches %r)", rel_path, pattern)
                return False

        includes = list(include_patterns or ())
        if includes:
            return any(self.matches_pattern(rel_path, pattern) for pattern in includes)

        return True

    def matches_pattern(self, path: str, pattern: str) -> bool:
        """Check whether a path matches a single pattern.

        Invalid patterns never match.
        """
        if pattern.endswith("/"):
            directory = pattern.rstrip("/")
            return path == directory or path.startswith(directory + "/")

        if RECURSIVE_WILDCARD in pattern:
            return self._matches_recursive(path, pattern)

        try:
            return _compile(pattern).fullmatch(path) is not None
        except ValueError:
            return False

    def _matches_recursive(self, path: str, pattern: str) -> bool:
        """Prefix/suffix matching for patterns containing ``**``."""
        parts = pattern.split(RECURSIVE_WILDCARD)
        if len(parts) != 2:
            return False

        prefix, suffix = parts
        if not path.startswith(prefix):
            return False
        if not suffix:
            return True
        return path.endswith(suffix) and len(path) >= len(prefix) + len(suffix)

    def validate_patterns(self, patterns: Iterable[str]) -> list[PatternError]:
        """Collect syntax errors for a list of patterns.

        Every pattern is checked; one bad pattern does not stop the others.

        Args:
            patterns: Patterns to validate

        Returns:
            One PatternError per invalid pattern (empty if all are valid)
        """
        errors: list[PatternError] = []
        for index, pattern in enumerate(patterns):
            if pattern.count(RECURSIVE_WILDCARD) > 1:
                continue
            try:
                glob_to_regex(pattern)
            except ValueError as e:
                errors.append(PatternError(pattern, index, str(e)))
        return errors
