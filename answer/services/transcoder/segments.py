"""Heuristic extraction of tagged XML segments from LLM output.

The generator writes code chunks as XML blocks inside a Markdown article, token by
token. Those blocks are frequently malformed: payloads are not escaped, closing tags
are missing, and blank lines appear inside the XML. Instead of parsing XML, we scan
for an opening tag at the beginning of a line and take everything up to the first
closing tag with the same name, or up to the end of the document when the generator
has not written it yet.

This forgiving scan is ambiguous for input like::

    <Code>
        println!("code ends with </Code>");
    </Code>

where the segment ends halfway through the string literal. There is no way around
that without rejecting unescaped input, which the generator produces routinely.
"""

from __future__ import annotations

import re
from typing import Callable, Iterator, Optional, Tuple

OPENING_TAG_PATTERN = re.compile(r"(?:\A|\n)[^\S\n]*(<(\w+)>)")

SegmentTransform = Callable[[str], Optional[str]]


def _find_segment(article: str, pos: int) -> Optional[Tuple[int, int]]:
    match = OPENING_TAG_PATTERN.search(article, pos)
    if match is None:
        return None
    start = match.start(1)
    closing_tag = f"</{match.group(2)}>"
    close_at = article.find(closing_tag, match.end(1))
    if close_at < 0:
        return start, len(article)
    return start, close_at + len(closing_tag)


def iter_segments(article: str) -> Iterator[Tuple[int, int]]:
    """Yield ``(start, end)`` offsets of every tagged segment, left to right."""
    pos = 0
    while pos < len(article):
        found = _find_segment(article, pos)
        if found is None:
            return
        yield found
        pos = found[1]


def _drop_indent(prefix: str) -> str:
    # Everything after the last newline before a segment is its indentation.
    head, sep, indent = prefix.rpartition("\n")
    if indent and not indent.isspace():
        return prefix
    return head + sep


def for_each_segment(article: str, transform: SegmentTransform) -> str:
    """Rewrite every tagged segment of ``article``.

    ``transform`` receives the raw segment text and returns a replacement, or
    ``None`` to keep the segment as it is. A replacement starts at the beginning
    of its line, so the indentation in front of the opening tag is dropped with
    it. Other text around segments is copied verbatim and replacements are not
    scanned again.
    """
    parts = []
    pos = 0
    for start, end in iter_segments(article):
        prefix = article[pos:start]
        segment = article[start:end]
        update = transform(segment)
        if update is None:
            parts.extend([prefix, segment])
        else:
            parts.extend([_drop_indent(prefix), update])
        pos = end
    parts.append(article[pos:])
    return "".join(parts)
