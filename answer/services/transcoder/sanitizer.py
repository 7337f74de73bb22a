"""Clean-up of partially generated code chunk XML."""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from answer.services.transcoder.segments import for_each_segment

CHUNK_ROOT_PATTERN = re.compile(r"<(Generated|Quoted)Code>")
CODE_CHUNK_PATTERN = re.compile(r"<(Generated|Quoted)Code>\s*<Code>(.*)", re.DOTALL)
CODE_CLOSE_TAG = "</Code>"
PARTIAL_TAG_PATTERN = re.compile(r"<[^>]*\Z")
HTML_COMMENT_PATTERN = re.compile(r"<!--.*?-->")

# Order matters: `&amp;` is unescaped last and `&` escaped first, so entities
# produced by one step are never touched by a later one.
UNESCAPE_STEPS: List[Tuple[str, str]] = [("&lt;", "<"), ("&gt;", ">"), ("&amp;", "&")]
ESCAPE_STEPS: List[Tuple[str, str]] = [("&", "&amp;"), ("<", "&lt;"), (">", "&gt;")]

# Innermost first, so appended closers nest correctly.
CLOSING_ORDER = [
    "Code",
    "Language",
    "Path",
    "StartLine",
    "EndLine",
    "QuotedCode",
    "GeneratedCode",
]


def _apply_steps(text: str, steps: List[Tuple[str, str]]) -> str:
    for old, new in steps:
        text = text.replace(old, new)
    return text


def escape_code(code: str) -> str:
    """Escape ``&``, ``<`` and ``>`` exactly once, whatever the input escaping."""
    return _apply_steps(_apply_steps(code, UNESCAPE_STEPS), ESCAPE_STEPS)


def _split_payload(segment: str) -> Optional[Tuple[str, str, str]]:
    if not segment.strip().startswith("<"):
        return None
    match = CODE_CHUNK_PATTERN.search(segment)
    if match is None:
        return None
    body = match.group(2)
    code_len = body.find(CODE_CLOSE_TAG)
    if code_len < 0:
        code_len = len(body)
    return segment[: match.start(2)], body[:code_len], body[code_len:]


def normalize_escaping(segment: str) -> str:
    """Re-escape the ``<Code>`` payload of a code chunk segment.

    Segments that are not code chunks are returned unchanged, as is everything
    outside the payload.
    """
    parts = _split_payload(segment)
    if parts is None:
        return segment
    head, payload, tail = parts
    return head + escape_code(payload) + tail


def repair_tags(segment: str) -> str:
    """Drop a trailing half-written tag and append missing closing tags."""
    repaired = PARTIAL_TAG_PATTERN.sub("", segment)
    for tag in CLOSING_ORDER:
        if f"<{tag}>" in repaired and f"</{tag}>" not in repaired:
            repaired += f"</{tag}>"
    return repaired


def is_code_chunk(segment: str) -> bool:
    """Return True if ``segment`` looks like the start of a code chunk."""
    return segment.strip().startswith("<") and CHUNK_ROOT_PATTERN.search(segment) is not None


def fixup_segment(segment: str) -> str:
    """Normalize escaping and repair tags of a single code chunk segment."""
    if not is_code_chunk(segment):
        return segment
    return repair_tags(normalize_escaping(segment))


def _fixup_chunk(segment: str) -> Optional[str]:
    if not is_code_chunk(segment):
        return None
    return fixup_segment(segment)


def sanitize(article: str) -> str:
    """Fix up every code chunk segment and drop single-line HTML comments."""
    sanitized = for_each_segment(article, _fixup_chunk)
    return HTML_COMMENT_PATTERN.sub("", sanitized)
