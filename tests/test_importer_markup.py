import pytest

from forum_migrator.importer.pipeline import ConverterLoadError, MarkupTransformer, fancy_title, load_converter
from forum_migrator.importer.pipeline.markup import (
    EMPTY_POST_PLACEHOLDER,
    DisplayUser,
    QuoteRewriter,
    escape_angle_brackets,
    rewrite_code_blocks,
    rewrite_lists,
    rewrite_media,
    unwrap_containers,
)


class StaticDirectory:
    def __init__(self, users):
        self.users = users

    def find_by_username(self, username):
        return self.users.get(username)


class UpperConverter:
    def convert(self, text):
        return text.upper()


class FailingConverter:
    def convert(self, text):
        raise RuntimeError("converter exploded")


def shout(text):
    return text + "!"


def test_bold_and_italic_render_as_markdown():
    result = MarkupTransformer().transform("[b]bold[/b] and [i]soft[/i]")

    assert result.raw == "**bold** and *soft*"
    assert "<strong>bold</strong>" in result.cooked
    assert "<em>soft</em>" in result.cooked
    assert result.word_count == 3


def test_empty_body_gets_placeholder():
    result = MarkupTransformer().transform("   ")
    assert result.raw == EMPTY_POST_PLACEHOLDER


def test_angle_brackets_are_escaped_outside_code_spans():
    assert escape_angle_brackets("a < b and `<tag>`") == "a &lt; b and `<tag>`"

    result = MarkupTransformer().transform("[SAMP]<br>[/SAMP]")
    assert "<code>&lt;br&gt;</code>" in result.cooked


def test_code_blocks_are_fenced():
    assert rewrite_code_blocks("[CODE]x = 1[/CODE]") == "\n\n```\n\nx = 1\n\n```\n\n"
    assert rewrite_code_blocks('[HIGHLIGHT="Python"]') == "\n\n```python\n"


def test_media_rules():
    assert rewrite_media("[URL=http://example.com] site [/URL]") == "[site](http://example.com)"
    assert rewrite_media("[IMG]http://example.com/a.png[/IMG]") == "\n\nhttp://example.com/a.png\n\n"
    assert rewrite_media("[YOUTUBE]abc[/YOUTUBE]") == "\nhttps://www.youtube.com/watch?v=abc\n"
    assert "[spoiler]hidden[/spoiler]" in rewrite_media('[SPOILER="Plot"]hidden[/SPOILER]')


def test_containers_are_unwrapped():
    assert unwrap_containers("[COLOR=red]hot[/COLOR] [STRIKE]old[/STRIKE]") == "hot <s>old</s>"


def test_lists_are_rewritten():
    assert rewrite_lists("[list][*]one\n[*]two\n[/list]") == "[ul][li]one[/li][li]two[/li][/ul]"


def test_youtube_becomes_lazy_embed():
    result = MarkupTransformer().transform("Look:[YOUTUBE]dQw4w9WgXcQ[/YOUTUBE]")
    assert 'data-youtube-id="dQw4w9WgXcQ"' in result.cooked
    assert 'class="lazyYT"' in result.cooked


def test_resolved_quote_renders_post_aside():
    directory = StaticDirectory({"alice": DisplayUser("alice", "/avatars/alice/{size}.png")})
    transformer = MarkupTransformer(
        username_for=lambda name: {"old_alice": "alice"}.get(name, name),
        resolve_post=lambda post_id: (3, 7) if post_id == "12" else None,
        users=directory,
    )

    result = transformer.transform("[QUOTE=old_alice;12]hello there[/QUOTE]reply")

    assert '[quote="alice, post:3, topic:7"]' in result.raw
    assert '<aside class="quote" data-post="3" data-topic="7">' in result.cooked
    assert 'src="/avatars/alice/45.png"' in result.cooked
    assert "hello there" in result.cooked


def test_unresolved_quote_renders_username_aside():
    transformer = MarkupTransformer(resolve_post=lambda post_id: None)

    result = transformer.transform("[QUOTE=bob;99]text[/QUOTE]")

    assert '[quote="bob"]' in result.raw
    assert '<aside class="quote no-group" data-username="bob">' in result.cooked
    assert "<blockquote>" in result.cooked


def test_quote_author_in_double_quotes_is_normalized():
    assert QuoteRewriter()('[QUOTE="carol"]x[/QUOTE]') == "\n[QUOTE=carol]\nx\n[/QUOTE]\n"


def test_converter_runs_and_enables_list_rewrite():
    transformer = MarkupTransformer(converter=UpperConverter())

    assert [rule.name for rule in transformer.rules][-1] == "lists"
    assert transformer.transform("hello").raw == "HELLO"
    assert "lists" not in [rule.name for rule in MarkupTransformer().rules]


def test_converter_failure_keeps_rewritten_text(caplog):
    transformer = MarkupTransformer(converter=FailingConverter())

    with caplog.at_level("WARNING"):
        result = transformer.transform("[b]safe[/b]")

    assert result.raw == "**safe**"
    assert "Markup converter failed" in caplog.text


def test_load_converter_accepts_classes_and_callables():
    assert load_converter(f"{__name__}:UpperConverter").convert("a") == "A"
    assert load_converter(f"{__name__}:shout").convert("a") == "a!"

    with pytest.raises(ConverterLoadError):
        load_converter("no_colon_here")
    with pytest.raises(ConverterLoadError):
        load_converter(f"{__name__}:missing_attribute")


def test_fancy_title_escapes_and_smartens():
    assert fancy_title('"Hello" -- <world>') == "“Hello” – &lt;world&gt;"
    assert fancy_title(None) == ""


def test_null_bytes_are_stripped_from_cooked():
    result = MarkupTransformer().transform("a\x00b")
    assert "\x00" not in result.cooked
    assert result.has_null_bytes
