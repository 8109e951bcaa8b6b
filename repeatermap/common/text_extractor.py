"""Pattern-based field extraction from raw markup.

The upstream pages are third-party HTML with no stable schema. Rather than
parse them into a tree and walk it, each field is pulled out by its own
regular expression. A field whose markup drifted simply comes back empty
while every other field keeps working.

Two modes:

- ``extract_first``: the first match's groups, or None (scalar fields)
- ``extract_all``: every match's groups in document order (repeated rows)

Neither ever raises for a missing match. ``checked_extract_all`` is the one
place a count is enforced, for documents where zero matches means the page
format is broken.

Entity decoding is left to the caller; ``clean_text`` is the usual cleaner.
"""

from __future__ import annotations

import html
import re
from collections.abc import Callable
from dataclasses import dataclass

from repeatermap.common.exceptions import (
    HTMLStructuralAssumptionException,
)

PatternType = str | re.Pattern[str]

# Matches span line breaks in the markup.
DEFAULT_FLAGS = re.DOTALL

_WHITESPACE = re.compile(r"\s+")


def compile_pattern(pattern: PatternType) -> re.Pattern[str]:
    """Return a compiled pattern, compiling strings with DOTALL."""
    if isinstance(pattern, re.Pattern):
        return pattern
    return re.compile(pattern, DEFAULT_FLAGS)


def _groups(match: re.Match[str]) -> tuple[str, ...]:
    # Optional groups that did not participate come back as "" rather than None
    if not match.re.groups:
        return (match.group(0),)
    return tuple(g if g is not None else "" for g in match.groups())


def extract_first(
    document: str, pattern: PatternType
) -> tuple[str, ...] | None:
    """Return the captured groups of the first match, or None.

    A pattern without groups yields the whole match as a 1-tuple.
    """
    match = compile_pattern(pattern).search(document)
    if match is None:
        return None
    return _groups(match)


def extract_all(document: str, pattern: PatternType) -> list[tuple[str, ...]]:
    """Return the captured groups of every match in document order."""
    return [_groups(m) for m in compile_pattern(pattern).finditer(document)]


def checked_extract_all(
    document: str,
    pattern: PatternType,
    description: str,
    min_count: int = 1,
    max_count: int | None = None,
    request_url: str = "",
) -> list[tuple[str, ...]]:
    """Extract all matches and validate how many were found.

    Args:
        document: The markup to search.
        pattern: The row pattern.
        description: Human-readable description of what is being matched.
        min_count: Minimum number of matches expected (default: 1).
        max_count: Maximum number of matches expected (None = unlimited).
        request_url: URL of the document, for error context.

    Returns:
        The matches, as extract_all would return them.

    Raises:
        HTMLStructuralAssumptionException: If the count is out of range.
    """
    compiled = compile_pattern(pattern)
    matches = extract_all(document, compiled)
    actual_count = len(matches)
    if actual_count < min_count or (
        max_count is not None and actual_count > max_count
    ):
        raise HTMLStructuralAssumptionException(
            selector=compiled.pattern,
            selector_type="regex",
            description=description,
            expected_min=min_count,
            expected_max=max_count,
            actual_count=actual_count,
            request_url=request_url,
        )
    return matches


def clean_text(value: str) -> str:
    """Decode HTML entities and normalise whitespace."""
    return _WHITESPACE.sub(" ", html.unescape(value)).strip()


@dataclass(frozen=True)
class Field:
    """A named, independently extracted field.

    Attributes:
        name: Field name, used in debug logging.
        pattern: Pattern with at least ``group`` capture groups.
        group: Which capture group holds the value (1-based).
        clean: Cleaner applied to the raw group text. None keeps it raw.

    Example::

        LICENCE_NO = Field("licence_no", r"Licence Number</td>\\s*<td>([^<]+)")
        LICENCE_NO.first(page)  # "1234567" or None
    """

    name: str
    pattern: PatternType
    group: int = 1
    clean: Callable[[str], str] | None = clean_text

    def _value(self, groups: tuple[str, ...]) -> str | None:
        raw = groups[self.group - 1]
        value = self.clean(raw) if self.clean else raw
        return value or None

    def first(self, document: str) -> str | None:
        """Value of the first match, or None when absent or blank."""
        groups = extract_first(document, self.pattern)
        if groups is None:
            return None
        return self._value(groups)
