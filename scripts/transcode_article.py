"""CLI for decoding and encoding LLM answer articles."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from answer.config import get_settings
from answer.services.transcoder.codec import ModelLookupError, decode, encode, encode_summarized

SUMMARY_SEPARATOR = "---"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Transcode LLM answer articles.")
    parser.add_argument("command", choices=["decode", "encode", "summarize"])
    parser.add_argument("--in", dest="inp", default=None, help="Input file (default: stdin).")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--conclusion", default=None, help="Conclusion text for encoding.")
    group.add_argument("--conclusion-file", default=None, help="File holding the conclusion.")
    parser.add_argument(
        "--model", default=settings.summary_model, help="Tokenizer model for summarize."
    )
    parser.add_argument(
        "--max-tokens",
        type=int,
        default=settings.summary_token_budget,
        help="Token budget for summarize.",
    )
    parser.add_argument("--json", action="store_true", help="Print decode output as JSON.")
    return parser.parse_args(argv)


def read_input(path: Optional[str]) -> str:
    if path is None:
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def read_conclusion(args: argparse.Namespace) -> Optional[str]:
    if args.conclusion_file:
        return Path(args.conclusion_file).read_text(encoding="utf-8").strip()
    return args.conclusion


def format_decoded(body: str, conclusion: Optional[str], as_json: bool) -> str:
    if as_json:
        return json.dumps({"body": body, "conclusion": conclusion}, ensure_ascii=False, indent=2)
    if conclusion is None:
        return body
    return f"{body}\n\n{SUMMARY_SEPARATOR}\n\n{conclusion}"


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=get_settings().log_level.upper(), format="%(levelname)s: %(message)s")
    text = read_input(args.inp)

    if args.command == "decode":
        body, conclusion = decode(text)
        print(format_decoded(body, conclusion, args.json))
        return 0

    conclusion = read_conclusion(args)
    if args.command == "encode":
        print(encode(text, conclusion))
        return 0

    try:
        print(encode_summarized(text, conclusion, args.model, max_tokens=args.max_tokens))
    except ModelLookupError as exc:
        print(f"Tokenizer error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
