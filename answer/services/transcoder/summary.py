"""Conclusion transport through a reserved Markdown footnote.

The generator ends its answer with ``[^summary]: <conclusion>``. Nothing references
that footnote, and the footnote extension drops definitions that are never
referenced, so a synthetic reference is prepended before parsing and removed again
right after.
"""

from __future__ import annotations

import logging
from typing import Optional

from markdown_it.tree import SyntaxTreeNode

from answer.services.transcoder.markdown import FOOTNOTE_BLOCK, MarkdownTree, inline_text, parse_tree
from answer.services.transcoder.models import Article

logger = logging.getLogger(__name__)

SUMMARY_LABEL = "summary"
SUMMARY_REFERENCE = f"[^{SUMMARY_LABEL}]"


def _find_summary(tree: MarkdownTree) -> Optional[SyntaxTreeNode]:
    for child in tree.root.children:
        if child.type != FOOTNOTE_BLOCK:
            continue
        for footnote in child.children:
            if footnote.type == "footnote" and footnote.meta.get("label") == SUMMARY_LABEL:
                return footnote
    return None


def split_summary(markdown: str) -> Article:
    """Separate the ``summary`` footnote from the rest of the article."""
    tree = parse_tree(f"{SUMMARY_REFERENCE}\n\n{markdown}", footnotes=True)

    children = tree.root.children
    if children and children[0].type == "paragraph":
        tree.detach(children[0])

    footnote = _find_summary(tree)
    if footnote is not None and footnote.children and footnote.children[0].type == "paragraph":
        paragraph = footnote.children[0]
        tree.detach(footnote)
        return Article(body=tree.render(), conclusion=inline_text(paragraph))

    logger.debug("no summary footnote found")
    return Article(body=tree.render(), conclusion=None)


def append_summary(body: str, conclusion: Optional[str]) -> str:
    """Attach ``conclusion`` to ``body`` as the ``summary`` footnote definition."""
    if conclusion is None:
        return body
    return f"{body}\n\n{SUMMARY_REFERENCE}: {conclusion}"
