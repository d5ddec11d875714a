"""
Legacy BBCode/markup to Markdown and HTML.

Post bodies go through three stages:

1. An ordered list of regex rewrite rules turns legacy tags into Markdown.
   Earlier rules shape the text later rules see, so order matters: code blocks
   are fenced before angle brackets are escaped, and angle brackets are
   escaped before quotes are rewritten.
2. An optional converter plugin (for full BBCode support) runs next; if it
   fails the text from stage 1 is kept.
3. The text is charset-normalised and entity-decoded, then rendered to HTML
   with markdown-it. Quote markers in the rendered HTML become quote asides.
"""

from __future__ import annotations

import importlib
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence

from markdown_it import MarkdownIt

from .charset import normalize_text, scrub
from .errors import ConverterLoadError

logger = logging.getLogger(__name__)

EMPTY_POST_PLACEHOLDER = "<Empty imported post>"
AVATAR_SIZE = "45"

# Private-use sentinel protecting angle brackets inside code spans.
_SENTINEL = "\ue000"

_WORD = re.compile(r"\w+")

QuoteResolver = Callable[[str], Optional[tuple[int, int]]]
UsernameResolver = Callable[[str], str]


class MarkupConverter(Protocol):
    def convert(self, text: str) -> str: ...


@dataclass(frozen=True)
class DisplayUser:
    username: str
    avatar_template: str


class UserDirectory(Protocol):
    def find_by_username(self, username: str) -> DisplayUser | None: ...


@dataclass(frozen=True)
class RewriteRule:
    name: str
    apply: Callable[[str], str]


@dataclass(frozen=True)
class TransformResult:
    raw: str
    cooked: str
    word_count: int

    @property
    def has_null_bytes(self) -> bool:
        return "\x00" in self.raw or "\x00" in self.cooked


def _compile(pattern: str, flags: int = 0) -> re.Pattern[str]:
    return re.compile(pattern, flags)


_I = re.IGNORECASE
_IS = re.IGNORECASE | re.DOTALL


# ----------------------------------------------------------------------
# Rewrite rules
# ----------------------------------------------------------------------
_ESCAPED_NEWLINE = _compile(r"(\\r)?\\n")


def normalize_whitespace(text: str) -> str:
    text = _ESCAPED_NEWLINE.sub("\n", text)
    return text.replace("\\t", "\t")


_CODE_RULES: Sequence[tuple[re.Pattern[str], object]] = (
    (_compile(r"\[HTML\]", _I), "\n\n```html\n"),
    (_compile(r"\[/HTML\]", _I), "\n```\n\n"),
    (_compile(r"\[PHP\]", _I), "\n\n```php\n"),
    (_compile(r"\[/PHP\]", _I), "\n```\n\n"),
    (_compile(r'\[HIGHLIGHT="?(\w+)"?\]', _I), lambda match: f"\n\n```{match.group(1).lower()}\n"),
    (_compile(r"\[/?CODE\]", _I), "\n\n```\n\n"),
    (_compile(r"\[/?HIGHLIGHT\]", _I), "\n\n```\n\n"),
    (_compile(r"\[/?SAMP\]", _I), "`"),
)


def rewrite_code_blocks(text: str) -> str:
    for pattern, replacement in _CODE_RULES:
        text = pattern.sub(replacement, text)
    return text


_CODE_SPAN = _compile(r"`([^`]+?)`", _IS)


def escape_angle_brackets(text: str) -> str:
    """Entity-escape ``<`` and ``>`` everywhere except inside code spans."""

    for char, entity in (("<", "&lt;"), (">", "&gt;")):
        text = _CODE_SPAN.sub(lambda match: "`" + match.group(1).replace(char, _SENTINEL) + "`", text)
        text = text.replace(char, entity).replace(_SENTINEL, char)
    return text


_STYLE_RULES: Sequence[tuple[re.Pattern[str], str]] = (
    (_compile(r"\[/?I\]", _I), "*"),
    (_compile(r"\[/?B\]", _I), "**"),
    (_compile(r"\[/?U\]", _I), ""),
    (_compile(r"\[/?RED\]", _I), ""),
    (_compile(r"\[/?BLUE\]", _I), ""),
    (_compile(r"\[AUTEUR\].+?\[/AUTEUR\]", _IS), ""),
    (_compile(r"\[VOIRMSG\].+?\[/VOIRMSG\]", _IS), ""),
    (_compile(r"\[PSEUDOID\].+?\[/PSEUDOID\]", _IS), ""),
)


def rewrite_inline_styles(text: str) -> str:
    for pattern, replacement in _STYLE_RULES:
        text = pattern.sub(replacement, text)
    return text


_MEDIA_RULES: Sequence[tuple[re.Pattern[str], object]] = (
    (_compile(r"(?:\s*\[IMG\]\s*)+(.+?)(?:\s*\[/IMG\]\s*)+", _IS), lambda match: f"\n\n{match.group(1)}\n\n"),
    (_compile(r"\[IMG=([^\]]*)\]", _IS), lambda match: f"\n\n{match.group(1)}\n\n"),
    (
        _compile(r'\[URL="?(.+?)"?\](.+?)\[/URL\]', _IS),
        lambda match: f"[{match.group(2).strip()}]({match.group(1)})",
    ),
    (_compile(r"\[/?URL\]", _I), ""),
    (_compile(r"\[/?MP3\]", _I), ""),
    (_compile(r"\[/?EMAIL\]", _I), ""),
    (_compile(r"\[/?LEFT\]", _I), ""),
    (
        _compile(r"\[YOUTUBE\](.+?)\[/YOUTUBE\]", _I),
        lambda match: f"\nhttps://www.youtube.com/watch?v={match.group(1)}\n",
    ),
    (
        _compile(r"\[DAILYMOTION\](.+?)\[/DAILYMOTION\]", _I),
        lambda match: f"\nhttps://www.dailymotion.com/video/{match.group(1)}\n",
    ),
    (
        _compile(r"\[VIDEO=YOUTUBE;([^\]]+)\].*?\[/VIDEO\]", _I),
        lambda match: f"\nhttps://www.youtube.com/watch?v={match.group(1)}\n",
    ),
    (
        _compile(r"\[VIDEO=DAILYMOTION;([^\]]+)\].*?\[/VIDEO\]", _I),
        lambda match: f"\nhttps://www.dailymotion.com/video/{match.group(1)}\n",
    ),
    (
        _compile(r'\[SPOILER="?(.+?)"?\](.+?)\[/SPOILER\]', _IS),
        lambda match: f"\n{match.group(1)}\n[spoiler]{match.group(2)}[/spoiler]\n",
    ),
)


def rewrite_media(text: str) -> str:
    for pattern, replacement in _MEDIA_RULES:
        text = pattern.sub(replacement, text)
    return text


_CONTAINER_RULES: Sequence[tuple[re.Pattern[str], str]] = (
    (_compile(r"\[FONT=.*?\](.*?)\[/FONT\]", _IS), r"\1"),
    (_compile(r"\[COLOR=.*?\](.*?)\[/COLOR\]", _IS), r"\1"),
    (_compile(r"\[SIZE=.*?\](.*?)\[/SIZE\]", _IS), r"\1"),
    (_compile(r"\[H=.*?\](.*?)\[/H\]", _IS), r"\1"),
    (_compile(r"\[CENTER\](.*?)\[/CENTER\]", _IS), r"\1"),
    (_compile(r"\[INDENT\](.*?)\[/INDENT\]", _IS), r"\1"),
    (_compile(r"\[TABLE\](.*?)\[/TABLE\]", _IS), r"\1"),
    (_compile(r"\[TR\](.*?)\[/TR\]", _IS), r"\1"),
    (_compile(r"\[TD\](.*?)\[/TD\]", _IS), r"\1"),
    (_compile(r'\[TD="?.*?"?\](.*?)\[/TD\]', _IS), r"\1"),
    (_compile(r"\[STRIKE\]", _I), "<s>"),
    (_compile(r"\[/STRIKE\]", _I), "</s>"),
)


def unwrap_containers(text: str) -> str:
    for pattern, replacement in _CONTAINER_RULES:
        text = pattern.sub(replacement, text)
    return text


_LIST_RULES: Sequence[tuple[re.Pattern[str], str]] = (
    (_compile(r"\[list\](.*?)\[/list\]", _IS), r"[ul]\1[/ul]"),
    (_compile(r"\[list=1\|?[^\]]*\](.*?)\[/list\]", _IS), r"[ol]\1[/ol]"),
    (_compile(r"\[list\](.*?)\[/list:u\]", _IS), r"[ul]\1[/ul]"),
    (_compile(r"\[list=1\|?[^\]]*\](.*?)\[/list:o\]", _IS), r"[ol]\1[/ol]"),
    (_compile(r"\[\*\]\n"), ""),
    (_compile(r"\[\*\](.*?)\[/\*:m\]"), r"[li]\1[/li]"),
    (_compile(r"\[\*\](.*?)\n"), r"[li]\1[/li]"),
    (_compile(r"\[\*=1\]"), ""),
)


def rewrite_lists(text: str) -> str:
    """Rewrite list markup into the ``[ul]``/``[ol]``/``[li]`` form converters expect."""

    for pattern, replacement in _LIST_RULES:
        text = pattern.sub(replacement, text)
    return text


_QUOTED_QUOTE_AUTHOR = _compile(r'\[QUOTE="([^\]]+)"\]', _I)
_QUOTE_TAG = _compile(r"(\[/?QUOTE.*?\])", _IS)
_QUOTE_WITH_POST = _compile(r"\[QUOTE=([^;\]]+);(\d+)\]", _I)


class QuoteRewriter:
    """Put quote tags on their own lines and resolve ``[QUOTE=user;postid]`` references."""

    def __init__(self, username_for: UsernameResolver | None = None, resolve_post: QuoteResolver | None = None):
        self.username_for = username_for
        self.resolve_post = resolve_post

    def __call__(self, text: str) -> str:
        text = _QUOTED_QUOTE_AUTHOR.sub(lambda match: f"[QUOTE={match.group(1)}]", text)
        text = _QUOTE_TAG.sub(lambda match: f"\n{match.group(1)}\n", text)
        return _QUOTE_WITH_POST.sub(self._rewrite_reference, text)

    def _rewrite_reference(self, match: re.Match[str]) -> str:
        imported_username, imported_post_id = match.group(1), match.group(2)
        username = self.username_for(imported_username) if self.username_for else imported_username
        resolved = self.resolve_post(imported_post_id) if self.resolve_post else None
        if resolved:
            post_number, topic_id = resolved
            return f'\n[quote="{username}, post:{post_number}, topic:{topic_id}"]\n'
        return f'\n[quote="{username}"]\n'


# ----------------------------------------------------------------------
# Rendering
# ----------------------------------------------------------------------
_YOUTUBE_LINE = _compile(r"\nhttps://www\.youtube\.com/watch\?v=([\w-]+)\n")
_LAZY_YOUTUBE = (
    '<div class="lazyYT" data-youtube-id="{video_id}" data-width="480" data-height="270" '
    'data-parameters="feature=oembed&amp;wmode=opaque"></div>'
)
_COOKED_QUOTE = _compile(
    r"\[quote=(?:&quot;|\")?((?:(?!&quot;)[^,\"\]])+?)(?:, post:(\d+), topic:(\d+))?(?:&quot;|\")?\](.+?)\[/quote\]",
    _IS,
)
_LEADING_BREAKS = _compile(r"^(<br>\n?)+", re.MULTILINE)
_TRAILING_BREAKS = _compile(r"(<br>\n?)+$", re.MULTILINE)


def build_markdown() -> MarkdownIt:
    return MarkdownIt(
        "commonmark",
        {
            "html": True,
            "linkify": True,
            "breaks": True,
            "xhtmlOut": False,
        },
    ).enable(["linkify", "strikethrough", "table"])


_TYPOGRAPHER = MarkdownIt("zero", {"typographer": True}).enable(["replacements", "smartquotes"])


def fancy_title(title: str | None) -> str:
    """HTML-escaped title with typographic quotes and dashes."""

    if not title:
        return ""
    return _TYPOGRAPHER.renderInline(scrub(title)).strip()


def count_words(text: str) -> int:
    return len(_WORD.findall(text))


def load_converter(path: str) -> MarkupConverter:
    """
    Import a converter from a ``package.module:attribute`` path.

    Classes are instantiated; plain callables are wrapped so they expose
    ``convert``.
    """

    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise ConverterLoadError(f"Converter path '{path}' must look like 'package.module:attribute'.")
    try:
        module = importlib.import_module(module_name)
        target = getattr(module, attribute)
    except (ImportError, AttributeError) as exc:
        raise ConverterLoadError(f"Unable to load markup converter '{path}': {exc}") from exc

    if isinstance(target, type):
        target = target()
    if hasattr(target, "convert"):
        return target
    if callable(target):
        return _CallableConverter(target)
    raise ConverterLoadError(f"Markup converter '{path}' is neither callable nor exposes convert().")


class _CallableConverter:
    def __init__(self, func: Callable[[str], str]):
        self.func = func

    def convert(self, text: str) -> str:
        return self.func(text)


class MarkupTransformer:
    def __init__(
        self,
        *,
        codec: str | None = None,
        converter: MarkupConverter | None = None,
        username_for: UsernameResolver | None = None,
        resolve_post: QuoteResolver | None = None,
        users: UserDirectory | None = None,
    ):
        self.codec = codec
        self.converter = converter
        self.users = users
        self.quotes = QuoteRewriter(username_for, resolve_post)
        self.markdown = build_markdown()
        self.rules = self._build_rules()

    def _build_rules(self) -> list[RewriteRule]:
        rules = [
            RewriteRule("whitespace", normalize_whitespace),
            RewriteRule("code_blocks", rewrite_code_blocks),
            RewriteRule("angle_brackets", escape_angle_brackets),
            RewriteRule("inline_styles", rewrite_inline_styles),
            RewriteRule("media", rewrite_media),
            RewriteRule("containers", unwrap_containers),
            RewriteRule("quotes", self.quotes),
        ]
        if self.converter is not None:
            rules.append(RewriteRule("lists", rewrite_lists))
        return rules

    def rewrite(self, text: str) -> str:
        for rule in self.rules:
            text = rule.apply(text)
        return text

    def transform(self, raw: str | None) -> TransformResult:
        text = scrub(raw or "").strip() or EMPTY_POST_PLACEHOLDER
        text = self.rewrite(text)
        text = self._convert(text)
        text = normalize_text(text, self.codec) or EMPTY_POST_PLACEHOLDER
        cooked = self.cook(text)
        return TransformResult(raw=text, cooked=cooked, word_count=count_words(text))

    def _convert(self, text: str) -> str:
        if self.converter is None:
            return text
        try:
            return self.converter.convert(text)
        except Exception:
            logger.warning("Markup converter failed; keeping rewritten text", exc_info=True)
            return text

    def cook(self, raw: str) -> str:
        """Render ``raw`` Markdown to HTML, including lazy video embeds and quote asides."""

        text = _YOUTUBE_LINE.sub(lambda match: _LAZY_YOUTUBE.format(video_id=match.group(1)), raw)
        cooked = scrub(self.markdown.render(text)).strip()
        cooked = _COOKED_QUOTE.sub(self._render_quote, cooked)
        return cooked.strip().replace("\x00", "")

    def _render_quote(self, match: re.Match[str]) -> str:
        username, post_number, topic_id, quote = match.groups()
        quote = scrub(quote).strip()
        quote = _LEADING_BREAKS.sub("", quote)
        quote = _TRAILING_BREAKS.sub("", quote)

        user = self.users.find_by_username(username) if self.users else None
        title = user_avatar(user) if user else username
        if post_number and topic_id:
            opening = f'<aside class="quote" data-post="{post_number}" data-topic="{topic_id}">'
        else:
            opening = f'<aside class="quote no-group" data-username="{username}">'
        return (
            f"{opening}\n"
            f'<div class="title">\n<div class="quote-controls"></div>\n{title}:\n</div>\n'
            f"<blockquote>{quote}</blockquote>\n"
            "</aside>"
        )


def user_avatar(user: DisplayUser) -> str:
    url = user.avatar_template.replace("{size}", AVATAR_SIZE)
    return f'<img alt="" width="20" height="20" src="{url}" class="avatar"> {user.username}'
