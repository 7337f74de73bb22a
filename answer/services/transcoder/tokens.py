"""Token budget helpers backed by tiktoken."""

from __future__ import annotations

import logging

import tiktoken

logger = logging.getLogger(__name__)


class ModelLookupError(LookupError):
    """Raised when no tokenizer is known for a model id."""


def get_encoding(model_id: str) -> tiktoken.Encoding:
    """Return the tiktoken encoding used by ``model_id``."""
    try:
        return tiktoken.encoding_for_model(model_id)
    except KeyError as exc:
        raise ModelLookupError(f"no tokenizer known for model {model_id!r}") from exc


def limit_tokens(text: str, encoding: tiktoken.Encoding, max_tokens: int) -> str:
    """Return the longest prefix of ``text`` that fits in ``max_tokens`` tokens."""
    tokens = encoding.encode(text, disallowed_special=())
    if len(tokens) <= max_tokens:
        return text
    # A token boundary can split a multi-byte character; drop the partial tail.
    prefix = encoding.decode_bytes(tokens[:max_tokens]).decode("utf-8", errors="ignore")
    logger.debug("truncated article from %d to %d tokens", len(tokens), max_tokens)
    return text[: len(prefix)]
