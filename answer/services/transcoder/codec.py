"""Transcoder for articles generated by the LLM.

The LLM writes code blocks as XML (``<QuotedCode>`` / ``<GeneratedCode>``) rather
than Markdown fences, and carries its conclusion in a ``[^summary]`` footnote. This
module decodes that format into Markdown plus a conclusion, and encodes it back.
"""

from __future__ import annotations

import logging
from typing import Optional

from answer.config import get_settings
from answer.services.transcoder import tokens
from answer.services.transcoder.markdown import parse_tree
from answer.services.transcoder.models import (
    Article,
    DeserializationError,
    chunk_from_fence,
    parse_code_chunk,
)
from answer.services.transcoder.sanitizer import fixup_segment, sanitize
from answer.services.transcoder.segments import for_each_segment
from answer.services.transcoder.summary import append_summary, split_summary
from answer.services.transcoder.tokens import ModelLookupError

__all__ = [
    "Article",
    "DeserializationError",
    "ModelLookupError",
    "decode",
    "encode",
    "encode_summarized",
]

logger = logging.getLogger(__name__)


def xml_to_markdown(xml: str) -> Optional[str]:
    """Convert one code chunk segment to a fenced block, ``None`` if it is not one."""
    try:
        return parse_code_chunk(xml).to_markdown()
    except DeserializationError as exc:
        logger.debug("keeping segment verbatim: %s", exc)
        return None


def redact_xml(xml: str) -> Optional[str]:
    """Replace the code of one code chunk segment with the redaction marker."""
    try:
        return parse_code_chunk(fixup_segment(xml)).to_redacted_xml()
    except DeserializationError as exc:
        logger.debug("not redacting segment: %s", exc)
        return None


def decode(llm_message: str) -> Article:
    """Decode an article into ``(body, conclusion)``.

    Works on partial output: unparseable segments are left as they are.
    """
    markdown = for_each_segment(sanitize(llm_message), xml_to_markdown)
    return split_summary(markdown)


def encode(markdown: str, conclusion: Optional[str] = None) -> str:
    """Encode a Markdown article and optional conclusion into the LLM format."""
    tree = parse_tree(markdown)
    for node in list(tree.root.children):
        if node.type != "fence":
            continue
        chunk = chunk_from_fence(node.info, node.content)
        if chunk is None:
            continue
        tree.replace_with_html(node, chunk.to_xml())
    return append_summary(tree.render(), conclusion)


def encode_summarized(
    markdown: str,
    conclusion: Optional[str],
    model_id: str,
    max_tokens: Optional[int] = None,
) -> str:
    """Encode an article with redacted code, capped to the summary token budget.

    Raises ``ModelLookupError`` if ``model_id`` has no known tokenizer.
    """
    budget = max_tokens if max_tokens is not None else get_settings().summary_token_budget
    article = for_each_segment(encode(markdown, conclusion), redact_xml)
    encoding = tokens.get_encoding(model_id)
    return tokens.limit_tokens(article, encoding, budget)
