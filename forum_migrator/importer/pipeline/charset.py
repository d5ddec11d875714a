"""
Source charset handling for legacy forum text.

Legacy databases frequently store text in a single-byte or legacy multi-byte
charset while the driver hands it over as UTF-8. Normalising re-encodes the
text to the declared source charset and re-reads the bytes as UTF-8.
"""

from __future__ import annotations

import html
import logging

logger = logging.getLogger(__name__)

DEFAULT_CHARSET = "utf8"

# MySQL charset names mapped to Python codecs. ``None`` marks charsets Python
# ships no codec for; text in those charsets passes through untouched.
CHARSET_MAP: dict[str, str | None] = {
    "armscii8": None,
    "ascii": "ascii",
    "big5": "big5",
    "binary": "latin-1",
    "cp1250": "cp1250",
    "cp1251": "cp1251",
    "cp1256": "cp1256",
    "cp1257": "cp1257",
    "cp850": "cp850",
    "cp852": "cp852",
    "cp866": "cp866",
    "cp932": "cp932",
    "dec8": None,
    "eucjpms": "euc_jp",
    "euckr": "euc_kr",
    "gb2312": "gb2312",
    "gbk": "gbk",
    "geostd8": None,
    "greek": "iso8859_7",
    "hebrew": "iso8859_8",
    "hp8": None,
    "keybcs2": None,
    "koi8r": "koi8_r",
    "koi8u": "koi8_u",
    "latin1": "latin-1",
    "latin2": "iso8859_2",
    "latin5": "iso8859_9",
    "latin7": "iso8859_13",
    "macce": "mac_latin2",
    "macroman": "mac_roman",
    "sjis": "shift_jis",
    "swe7": None,
    "tis620": "tis_620",
    "ucs2": "utf_16_be",
    "ujis": "euc_jp",
    "utf8": "utf-8",
    "utf8mb4": "utf-8",
}


def resolve_charset(name: str | None) -> str | None:
    """
    Return the Python codec for a MySQL charset name.

    Raises:
        ValueError: when the name is not a known charset.
    """

    key = (name or DEFAULT_CHARSET).strip().lower()
    if key not in CHARSET_MAP:
        raise ValueError(f"Unknown source charset '{name}'. Expected one of: {', '.join(sorted(CHARSET_MAP))}")
    codec = CHARSET_MAP[key]
    if codec is None:
        logger.warning("Charset '%s' has no Python codec; text will not be re-encoded.", key)
    return codec


def scrub(text: str) -> str:
    """Replace anything that cannot round-trip through UTF-8."""

    return text.encode("utf-8", errors="replace").decode("utf-8")


def normalize_charset(text: str, codec: str | None) -> str:
    if codec is None or codec == "utf-8":
        return text
    return text.encode(codec).decode("utf-8", errors="replace")


def normalize_text(text: str | None, codec: str | None) -> str | None:
    """Re-encode ``text`` from the source charset and decode HTML entities."""

    if not text or not text.strip():
        return None
    return html.unescape(scrub(normalize_charset(text, codec)))
