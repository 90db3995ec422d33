"""Decode a free-text generation response into (path, content) pairs.

Models do not reliably follow the requested output format, so several header
dialects are accepted, possibly mixed within one response::

    === FILE: src/App.tsx ===      delimited marker
    ### File 2: src/main.tsx       heading
    **File:** styles/main.css      bold label
    File: index.html               plain label

A file ends at an explicit ``=== END FILE ===`` line, at a bare code fence, or
at the next header. Each dialect is a separate matcher so adding one does not
touch the scanning loop.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from visualise.build.models import ParsedFile

HeaderMatcher = Callable[[str], "str | None"]
FooterMatcher = Callable[[str], bool]

_FENCE = "```"
_FENCED_BLOCK = re.compile(r"```[^\n]*\n?(.*?)```", re.DOTALL)
_PATH_NOISE_TAIL = re.compile(r"[\s=*:`]+$")
_PATH_NOISE_HEAD = re.compile(r"^[\s*`]+")


def normalize_header_path(raw: str) -> str:
    """Strip backticks, quotes and trailing delimiter noise from a header path."""
    cleaned = _PATH_NOISE_TAIL.sub("", raw.strip())
    cleaned = _PATH_NOISE_HEAD.sub("", cleaned)
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in {'"', "'"}:
        cleaned = cleaned[1:-1].strip()
    return cleaned


@dataclass(frozen=True)
class RegexHeader:
    name: str
    pattern: re.Pattern[str]

    def __call__(self, line: str) -> str | None:
        match = self.pattern.match(line)
        if match is None:
            return None
        path = normalize_header_path(match.group(1))
        return path or None


HEADER_MATCHERS: tuple[RegexHeader, ...] = (
    RegexHeader("delimited", re.compile(r"^\s*===\s*FILE\s*:\s*(.+?)\s*=*\s*$", re.IGNORECASE)),
    # Headings start at column 0 with at least two hashes; "# file: ..." is a code comment.
    RegexHeader("heading", re.compile(r"^#{2,6}\s*FILE\b[^:\n]*:\s*(.+)$", re.IGNORECASE)),
    RegexHeader("bold-label", re.compile(r"^\*\*\s*FILE\b[^:\n]*:\s*(?:\*\*)?\s*(.+)$", re.IGNORECASE)),
    RegexHeader("plain-label", re.compile(r"^FILE(?:\s+\d+)?\s*:\s*(.+)$", re.IGNORECASE)),
)

_END_MARKER = re.compile(r"^===\s*END\s*FILE\s*===$", re.IGNORECASE)


def is_end_marker(line: str) -> bool:
    return _END_MARKER.match(line.strip()) is not None


def is_bare_fence(line: str) -> bool:
    return line.strip() == _FENCE


FOOTER_MATCHERS: tuple[FooterMatcher, ...] = (is_end_marker, is_bare_fence)


def match_header(line: str, matchers: Sequence[HeaderMatcher] = HEADER_MATCHERS) -> str | None:
    for matcher in matchers:
        path = matcher(line)
        if path:
            return path
    return None


def match_footer(line: str, matchers: Sequence[FooterMatcher] = FOOTER_MATCHERS) -> bool:
    return any(matcher(line) for matcher in matchers)


def strip_code_fences(text: str) -> str:
    """Return the body of the first fenced block, or the trimmed text."""
    if not text:
        return ""
    match = _FENCED_BLOCK.search(text)
    if match is not None:
        return match.group(1).strip()
    return text.strip()


def _skip_preamble(lines: Sequence[str], start: int) -> int:
    index = start
    while index < len(lines):
        stripped = lines[index].strip()
        if stripped and not stripped.startswith(_FENCE):
            break
        index += 1
    return index


def parse_generated_files(
    response: str,
    *,
    headers: Sequence[HeaderMatcher] = HEADER_MATCHERS,
    footers: Sequence[FooterMatcher] = FOOTER_MATCHERS,
) -> list[ParsedFile]:
    lines = response.splitlines()
    files: list[ParsedFile] = []
    current_path: str | None = None
    buffer: list[str] = []

    def flush() -> None:
        if current_path is None:
            return
        content = strip_code_fences("\n".join(buffer))
        # A header with no body is prose that happened to look like a header.
        if content:
            files.append(ParsedFile(relative_path=current_path, content=content))

    index = 0
    while index < len(lines):
        line = lines[index]
        header_path = match_header(line, headers)
        if header_path is not None:
            flush()
            current_path = header_path
            buffer = []
            index = _skip_preamble(lines, index + 1)
            continue

        if current_path is not None:
            if match_footer(line, footers):
                flush()
                current_path = None
                buffer = []
            else:
                buffer.append(line)
        index += 1

    if current_path is not None and buffer:
        flush()
    return files
