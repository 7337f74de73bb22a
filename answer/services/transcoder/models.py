"""Typed models for code chunks and transcoded articles."""

from __future__ import annotations

import logging
import re
from typing import Any, ClassVar, Dict, NamedTuple, Optional, Type, Union
from xml.etree import ElementTree
from xml.sax.saxutils import escape

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from answer.services.transcoder.sanitizer import escape_code

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"
LINE_NUMBER_PATTERN = re.compile(r"[0-9]+")
BACKTICK_RUN_PATTERN = re.compile(r"`+")

# XML 1.0 forbids most C0 controls, but generated code (ANSI colors, form feeds)
# carries them. They cross the XML parser as private-use placeholders.
CONTROL_CHAR_PATTERN = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")
PLACEHOLDER_PATTERN = re.compile("[\ue000-\ue008\ue00b\ue00c\ue00e-\ue01f]")
PLACEHOLDER_BASE = 0xE000


class DeserializationError(ValueError):
    """Raised when a segment cannot be mapped onto a code chunk."""


class Article(NamedTuple):
    body: str
    conclusion: Optional[str] = None


def _fence_for(code: str) -> str:
    longest = max((len(run) for run in BACKTICK_RUN_PATTERN.findall(code)), default=0)
    return "`" * max(3, longest + 1)


class _CodeChunkBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    tag: ClassVar[str]
    kind: ClassVar[str]

    code: str = Field("", alias="Code")
    language: str = Field("", alias="Language")

    def _header(self) -> Dict[str, str]:
        return {"type": self.kind, "lang": self.language, "path": "", "lines": "0-0"}

    def _fields_xml(self, *, redacted: bool) -> str:
        return f"<Language>{escape(self.language)}</Language>\n"

    def to_markdown(self) -> str:
        """Render the chunk as a fenced block with an attribute header."""
        header = ",".join(f"{key}:{value}" for key, value in self._header().items())
        fence = _fence_for(self.code)
        return f"{fence}{header}\n{self.code}\n{fence}"

    def to_xml(self) -> str:
        """Render the chunk in the generator's XML dialect."""
        code_xml = f"<Code>\n{escape_code(self.code)}\n</Code>\n"
        return f"<{self.tag}>\n{code_xml}{self._fields_xml(redacted=False)}</{self.tag}>"

    def to_redacted_xml(self) -> str:
        """Render the chunk as XML with the code replaced by a marker."""
        code_xml = f"<Code>{REDACTED}</Code>\n"
        return f"<{self.tag}>\n{code_xml}{self._fields_xml(redacted=True)}</{self.tag}>"


class QuotedCode(_CodeChunkBase):
    """Excerpt of an existing file."""

    tag: ClassVar[str] = "QuotedCode"
    kind: ClassVar[str] = "Quoted"

    path: str = Field("", alias="Path")
    start_line: Optional[int] = Field(None, alias="StartLine")
    end_line: Optional[int] = Field(None, alias="EndLine")

    @field_validator("start_line", "end_line", mode="before")
    @classmethod
    def _parse_line_number(cls, value: Any) -> Optional[int]:
        # Present but empty means zero; anything unparseable is treated as absent.
        if value is None:
            return None
        if isinstance(value, int):
            return value if value >= 0 else None
        text = str(value).strip()
        if not text:
            return 0
        if LINE_NUMBER_PATTERN.fullmatch(text):
            return int(text)
        return None

    def _header(self) -> Dict[str, str]:
        header = super()._header()
        header["path"] = self.path
        header["lines"] = f"{self.start_line or 0}-{self.end_line or 0}"
        return header

    def _fields_xml(self, *, redacted: bool) -> str:
        out = super()._fields_xml(redacted=redacted)
        out += f"<Path>{escape(self.path)}</Path>\n"
        for tag, value in (("StartLine", self.start_line), ("EndLine", self.end_line)):
            if value is None and redacted:
                continue
            out += f"<{tag}>{value or 0}</{tag}>\n"
        return out


class GeneratedCode(_CodeChunkBase):
    """Code written by the model, with no source location."""

    tag: ClassVar[str] = "GeneratedCode"
    kind: ClassVar[str] = "Generated"


CodeChunk = Union[QuotedCode, GeneratedCode]

CHUNK_TYPES: Dict[str, Type[_CodeChunkBase]] = {
    QuotedCode.tag: QuotedCode,
    GeneratedCode.tag: GeneratedCode,
}


def _shield_control_chars(xml: str) -> str:
    return CONTROL_CHAR_PATTERN.sub(lambda match: chr(PLACEHOLDER_BASE + ord(match.group())), xml)


def _restore_control_chars(text: str) -> str:
    return PLACEHOLDER_PATTERN.sub(lambda match: chr(ord(match.group()) - PLACEHOLDER_BASE), text)


def parse_code_chunk(xml: str) -> CodeChunk:
    """Deserialize a repaired XML segment into a code chunk."""
    try:
        root = ElementTree.fromstring(_shield_control_chars(xml))
    except ElementTree.ParseError as exc:
        raise DeserializationError(f"malformed code chunk XML: {exc}") from exc

    chunk_type = CHUNK_TYPES.get(root.tag)
    if chunk_type is None:
        raise DeserializationError(f"unknown code chunk tag: {root.tag}")

    fields: Dict[str, str] = {}
    for child in root:
        if child.tag in fields:
            continue
        text = _restore_control_chars("".join(child.itertext()))
        fields[child.tag] = text.strip("\r\n") if child.tag == "Code" else text.strip()

    try:
        return chunk_type.model_validate(fields)  # type: ignore[return-value]
    except ValidationError as exc:
        raise DeserializationError(f"invalid {root.tag} fields: {exc}") from exc


def parse_fence_info(info: str) -> Dict[str, str]:
    """Parse a ``key:value,key:value`` fence header.

    The value is everything after the first colon; pairs without a colon are
    skipped.
    """
    attributes: Dict[str, str] = {}
    for param in info.split(","):
        key, sep, value = param.strip().partition(":")
        if sep:
            attributes[key] = value
    return attributes


def chunk_from_fence(info: str, literal: str) -> Optional[CodeChunk]:
    """Rebuild a code chunk from a fenced block, or ``None`` if it is not one."""
    attributes = parse_fence_info(info.strip())
    code = literal.strip("\r\n")
    chunk_type = attributes.get("type")

    if chunk_type == QuotedCode.kind:
        try:
            path = attributes["path"]
            lang = attributes["lang"]
            lines = attributes["lines"]
        except KeyError:
            logger.debug("quoted fence is missing attributes: %r", info)
            return None
        start, sep, end = lines.partition("-")
        if not sep:
            logger.debug("quoted fence has no line range: %r", info)
            return None
        return QuotedCode(code=code, language=lang, path=path, start_line=start, end_line=end)

    if chunk_type == GeneratedCode.kind:
        if "lang" not in attributes:
            logger.debug("generated fence is missing a language: %r", info)
            return None
        return GeneratedCode(code=code, language=attributes["lang"])

    return None
