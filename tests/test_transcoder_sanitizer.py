from pathlib import Path

import pytest

from answer.services.transcoder import sanitizer
from answer.services.transcoder.models import parse_code_chunk
from answer.services.transcoder.sanitizer import (
    escape_code,
    fixup_segment,
    normalize_escaping,
    repair_tags,
    sanitize,
)

FIXTURES = Path(__file__).parent / "fixtures" / "transcoder"

MIXED_CODE = "fn foo<T>(t: T) -> bool {\n    &amp;foo < &bar&lt;i32&gt;(t)\n}"
ESCAPED_CODE = "fn foo&lt;T&gt;(t: T) -&gt; bool {\n    &amp;foo &lt; &amp;bar&lt;i32&gt;(t)\n}"

WELL_FORMED_QUOTED = """<QuotedCode>
<Code>
fn foo<T>(t: T) -> bool {
    &amp;foo < &bar&lt;i32&gt;(t)
}
</Code>
<Language>Rust</Language>
<Path>src/main.rs</Path>
<StartLine>10</StartLine>
<EndLine>12</EndLine>
</QuotedCode>"""


def test_escape_and_closing_orders_are_pinned() -> None:
    assert sanitizer.UNESCAPE_STEPS == [("&lt;", "<"), ("&gt;", ">"), ("&amp;", "&")]
    assert sanitizer.ESCAPE_STEPS == [("&", "&amp;"), ("<", "&lt;"), (">", "&gt;")]
    assert sanitizer.CLOSING_ORDER == [
        "Code",
        "Language",
        "Path",
        "StartLine",
        "EndLine",
        "QuotedCode",
        "GeneratedCode",
    ]


def test_escape_code_escapes_exactly_once() -> None:
    assert escape_code(MIXED_CODE) == ESCAPED_CODE
    assert escape_code("a && b") == "a &amp;&amp; b"
    # `&amp;` is unescaped last, so an escaped entity name survives as text.
    assert escape_code("&amp;lt;") == "&amp;lt;"


@pytest.mark.parametrize(
    "code",
    [
        MIXED_CODE,
        "a < b > c & d",
        "&lt;&gt;&amp;",
        "&amp;amp; &&lt; <&gt;>",
        "Vec<Option<&str>>",
        "",
    ],
)
def test_normalize_escaping_is_idempotent(code: str) -> None:
    segment = f"<GeneratedCode>\n<Code>\n{code}\n</Code>\n<Language>X</Language>\n</GeneratedCode>"
    once = normalize_escaping(segment)
    assert normalize_escaping(once) == once


def test_fixup_quoted_code() -> None:
    expected = WELL_FORMED_QUOTED.replace(MIXED_CODE, ESCAPED_CODE)
    assert fixup_segment(WELL_FORMED_QUOTED) == expected


def test_fixup_generated_code() -> None:
    segment = (
        f"<GeneratedCode>\n<Code>\n{MIXED_CODE}\n</Code>\n<Language>Rust</Language>\n</GeneratedCode>"
    )
    expected = (
        f"<GeneratedCode>\n<Code>\n{ESCAPED_CODE}\n</Code>\n<Language>Rust</Language>\n</GeneratedCode>"
    )
    assert fixup_segment(segment) == expected


def test_normalize_leaves_text_outside_payload() -> None:
    segment = "<GeneratedCode>\n<Code>a<b</Code>\n<Language>C&C</Language>\n</GeneratedCode>"
    out = normalize_escaping(segment)
    assert out == "<GeneratedCode>\n<Code>a&lt;b</Code>\n<Language>C&C</Language>\n</GeneratedCode>"


def test_non_code_segments_are_untouched() -> None:
    assert fixup_segment("<Foo>a < b</Foo>") == "<Foo>a < b</Foo>"
    assert normalize_escaping("text <QuotedCode><Code>a<b") == "text <QuotedCode><Code>a<b"


def test_repair_drops_partial_tag() -> None:
    segment = "<QuotedCode>\n<Code>\nx\n</Code>\n<Lang"
    assert repair_tags(segment) == "<QuotedCode>\n<Code>\nx\n</Code>\n</QuotedCode>"


def test_repair_appends_closers_innermost_first() -> None:
    segment = (
        "<QuotedCode>\n<Code>\nx\n</Code>\n<Language>Rust</Language>\n"
        "<Path>src/a.rs</Path>\n<StartLine>3"
    )
    assert repair_tags(segment).endswith("<StartLine>3</StartLine></QuotedCode>")
    assert repair_tags("<GeneratedCode>\n<Code>\nx") == (
        "<GeneratedCode>\n<Code>\nx</Code></GeneratedCode>"
    )


def test_every_truncation_repairs_to_parseable_xml() -> None:
    start = len("<QuotedCode>")
    for cut in range(start, len(WELL_FORMED_QUOTED) + 1):
        prefix = WELL_FORMED_QUOTED[:cut]
        chunk = parse_code_chunk(fixup_segment(prefix))
        assert chunk.tag == "QuotedCode", prefix


def test_sanitize_article() -> None:
    article = (FIXTURES / "mixed_escaping.txt").read_text(encoding="utf-8")
    expected = article.replace(MIXED_CODE, ESCAPED_CODE)
    assert sanitize(article) == expected


def test_sanitize_partial_generation() -> None:
    article = (
        "First, we test some **partially** *generated code* below:\n\n"
        "<GeneratedCode>\n<Code>\nfn foo<T>(t: T) -> bool {\n    &amp;foo <\n"
    )
    expected = (
        "First, we test some **partially** *generated code* below:\n\n"
        "<GeneratedCode>\n<Code>\nfn foo&lt;T&gt;(t: T) -&gt; bool {\n    &amp;foo &lt;\n"
        "</Code></GeneratedCode>"
    )
    assert sanitize(article) == expected


def test_sanitize_strips_html_comments() -> None:
    article = "Intro <!-- thinking --> text\n\n<!-- hidden -->\nOutro"
    assert sanitize(article) == "Intro  text\n\n\nOutro"


def test_sanitize_keeps_indentation_of_other_segments() -> None:
    article = "Intro\n  <Note>a < b</Note>\nOutro"
    assert sanitize(article) == article
