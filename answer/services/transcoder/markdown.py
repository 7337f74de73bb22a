"""Markdown parse trees with detach/replace and CommonMark output.

markdown-it-py only renders HTML, so text is produced from the source map of each
top-level block: untouched blocks are copied from the lines they were parsed from,
replaced blocks are written from their new content. Lines that produce no block
(link reference definitions, footnote definitions) are copied in place unless the
node they belong to has been detached.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from markdown_it import MarkdownIt
from markdown_it.token import Token
from markdown_it.tree import SyntaxTreeNode
from mdit_py_plugins.footnote import footnote_plugin

Span = Tuple[int, int]

# Footnote definitions are gathered here by the footnote plugin; their text is
# emitted where it was written instead.
FOOTNOTE_BLOCK = "footnote_block"


def create_parser(*, footnotes: bool = False) -> MarkdownIt:
    """Return a CommonMark parser, optionally with footnote support."""
    md = MarkdownIt("commonmark")
    if footnotes:
        md.use(footnote_plugin)
    return md


def normalize_source(text: str) -> str:
    """Apply the same line-ending normalization as the parser."""
    return text.replace("\r\n", "\n").replace("\r", "\n").replace("\0", "\ufffd")


def node_span(node: SyntaxTreeNode) -> Optional[Span]:
    """Return the ``[start, end)`` source lines covered by a node and its children."""
    starts: List[int] = []
    ends: List[int] = []
    for item in node.walk():
        if item.is_root or item.map is None:
            continue
        starts.append(item.map[0])
        ends.append(item.map[1])
    if not starts:
        return None
    return min(starts), max(ends)


def inline_text(paragraph: SyntaxTreeNode) -> str:
    """Return the Markdown source of a paragraph's inline content."""
    for child in paragraph.children:
        if child.type == "inline":
            return child.content.strip()
    return ""


@dataclass
class MarkdownTree:
    """A parsed document together with the lines it was parsed from."""

    lines: List[str]
    root: SyntaxTreeNode
    removed: List[Span] = field(default_factory=list)

    def detach(self, node: SyntaxTreeNode) -> None:
        """Unlink ``node`` from its parent so it is left out of the output."""
        parent = node.parent
        if parent is None:
            return
        parent.children = [child for child in parent.children if child is not node]
        node.parent = None
        span = node_span(node)
        if span is not None:
            self.removed.append(span)

    def replace_with_html(self, node: SyntaxTreeNode, literal: str) -> SyntaxTreeNode:
        """Swap ``node`` for an opaque HTML block holding ``literal``."""
        token = Token(
            "html_block",
            "",
            0,
            map=list(node.map) if node.map else None,
            content=literal.rstrip("\n") + "\n",
            block=True,
        )
        replacement = SyntaxTreeNode([token], create_root=False)
        parent = node.parent
        if parent is not None:
            replacement.parent = parent
            parent.children = [replacement if child is node else child for child in parent.children]
            node.parent = None
        return replacement

    def source(self, span: Span) -> str:
        start, end = span
        return "\n".join(self.lines[start:end]).rstrip()

    def _render_block(self, node: SyntaxTreeNode) -> str:
        if node.type == "html_block":
            return node.content.rstrip()
        span = node.map
        return self.source(span) if span else ""

    def _loose_blocks(self, covered: List[Span]) -> Iterator[Tuple[int, str]]:
        taken = [False] * len(self.lines)
        for start, end in covered:
            for idx in range(start, min(end, len(self.lines))):
                taken[idx] = True
        run: List[str] = []
        run_start = 0
        for idx, line in enumerate(self.lines + [""]):
            if idx < len(self.lines) and not taken[idx] and line.strip():
                if not run:
                    run_start = idx
                run.append(line)
                continue
            if run:
                yield run_start, "\n".join(run).rstrip()
                run = []

    def render(self) -> str:
        """Serialize the current top-level blocks, one blank line apart."""
        blocks: List[Tuple[int, str]] = []
        covered = list(self.removed)
        for node in self.root.children:
            if node.type == FOOTNOTE_BLOCK or node.map is None:
                continue
            covered.append(node.map)
            blocks.append((node.map[0], self._render_block(node)))
        blocks.extend(self._loose_blocks(covered))
        blocks.sort(key=lambda item: item[0])
        return "\n\n".join(text for _, text in blocks if text)


def parse_tree(text: str, *, footnotes: bool = False) -> MarkdownTree:
    """Parse ``text`` into a :class:`MarkdownTree`."""
    source = normalize_source(text)
    md = create_parser(footnotes=footnotes)
    root = SyntaxTreeNode(md.parse(source))
    return MarkdownTree(lines=source.split("\n"), root=root)
