"""
Username, group-name and category-name normalisation.

Usernames and group names share one case-insensitive namespace on the target
site. Category names are only unique among siblings, so they are reserved per
parent category.
"""

from __future__ import annotations

import re
import secrets
import unicodedata
from collections import defaultdict
from typing import Iterable

from .charset import scrub

USERNAME_NAMESPACE = "usernames"
MAX_NAME_LENGTH = 60
MAX_CATEGORY_NAME_LENGTH = 50
DEFAULT_CATEGORY_NAME = "Category"

_INVALID_NAME_CHARS = re.compile(r"[^\w.-]+", re.ASCII)
_LEADING_NON_WORD = re.compile(r"^\W+", re.ASCII)
_TRAILING_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+$")
_REPEATED_SEPARATORS = re.compile(r"([-_.]{2,})")
_SLUG_INVALID = re.compile(r"[^a-z0-9]+")


def transliterate(value: str) -> str:
    """Fold accented characters to ASCII and drop what has no ASCII form."""

    decomposed = unicodedata.normalize("NFKD", value)
    return decomposed.encode("ascii", errors="ignore").decode("ascii")


def fix_name(name: str | None) -> str | None:
    """
    Reduce ``name`` to the characters allowed in usernames and group names.

    Returns ``None`` when nothing usable is left.
    """

    if name is None:
        return None
    name = scrub(name)
    if not name.strip():
        return None

    name = transliterate(name)
    name = _INVALID_NAME_CHARS.sub("_", name)
    name = _LEADING_NON_WORD.sub("", name)
    name = _TRAILING_NON_ALNUM.sub("", name)
    name = _REPEATED_SEPARATORS.sub(lambda match: match.group(1)[0], name)
    name = name.strip()[:MAX_NAME_LENGTH]
    name = _TRAILING_NON_ALNUM.sub("", name)
    return name or None


def next_string(value: str) -> str:
    """
    Return the successor of ``value``.

    The rightmost alphanumeric character is incremented, carrying leftwards
    across alphanumerics: ``name_1`` -> ``name_2``, ``ab_9`` -> ``ac_0``,
    ``az`` -> ``ba``, ``zz`` -> ``aaa``.
    """

    if not value:
        return ""
    chars = list(value)
    positions = [index for index, char in enumerate(chars) if char.isascii() and char.isalnum()]
    if not positions:
        chars[-1] = chr(ord(chars[-1]) + 1)
        return "".join(chars)

    carry = ""
    for index in reversed(positions):
        char = chars[index]
        if char == "9":
            chars[index], carry = "0", "1"
        elif char == "z":
            chars[index], carry = "a", "a"
        elif char == "Z":
            chars[index], carry = "A", "A"
        else:
            chars[index] = chr(ord(char) + 1)
            return "".join(chars)
    chars.insert(positions[0], carry)
    return "".join(chars)


def random_username() -> str:
    return f"Anonymous_{secrets.token_hex(16)}"


def random_email() -> str:
    return f"{secrets.token_hex(16)}@email.invalid"


def slugify(value: str | None) -> str:
    """ASCII slug: lower-case alphanumerics joined by single hyphens."""

    if not value:
        return ""
    return _SLUG_INVALID.sub("-", transliterate(value).lower()).strip("-")


class NameDeduplicator:
    """
    Reserve unique names within case-insensitive namespaces.

    Reservations only grow for the lifetime of a run; nothing is released.
    """

    def __init__(self) -> None:
        self._namespaces: dict[str, set[str]] = defaultdict(set)

    def seed(self, names: Iterable[str | None], namespace: str = USERNAME_NAMESPACE) -> None:
        reserved = self._namespaces[namespace]
        reserved.update(name.lower() for name in names if name)

    def is_reserved(self, name: str, namespace: str = USERNAME_NAMESPACE) -> bool:
        return name.lower() in self._namespaces[namespace]

    def reserve(self, candidate: str | None, namespace: str = USERNAME_NAMESPACE) -> str:
        """
        Normalise ``candidate`` and reserve a unique form of it.

        Unusable candidates get a random ``Anonymous_`` placeholder. Collisions
        append ``_1`` and then walk successors (``_2``, ``_3``, ...), trimming
        the base so the result stays within ``MAX_NAME_LENGTH``.
        """

        name = fix_name(candidate)
        if not name:
            name = random_username()
            self._claim(name, namespace)
            return name
        if self._claim(name, namespace):
            return name

        suffix = "1"
        while True:
            suffixed = f"{name[:MAX_NAME_LENGTH - len(suffix) - 1]}_{suffix}"
            if self._claim(suffixed, namespace):
                return suffixed
            suffix = next_string(suffix)

    def seed_categories(self, rows: Iterable[tuple[int | None, str]]) -> None:
        for parent_id, name in rows:
            if name:
                self._namespaces[_category_namespace(parent_id)].add(name.lower())

    def reserve_category_name(self, name: str | None, parent_id: int | None) -> str:
        """
        Reserve a category name unique among the children of ``parent_id``.

        Collisions append 1, 2, 3, ... while keeping the result within the
        category name length limit.
        """

        original = scrub(name or "")[:MAX_CATEGORY_NAME_LENGTH].strip() or DEFAULT_CATEGORY_NAME
        namespace = _category_namespace(parent_id)
        candidate = original
        next_number = 1
        while not self._claim(candidate, namespace):
            suffix = str(next_number)
            candidate = f"{original[: MAX_CATEGORY_NAME_LENGTH - len(suffix)]}{suffix}"
            next_number += 1
        return candidate

    def _claim(self, name: str, namespace: str) -> bool:
        reserved = self._namespaces[namespace]
        key = name.lower()
        if key in reserved:
            return False
        reserved.add(key)
        return True


def _category_namespace(parent_id: int | None) -> str:
    return f"categories:{'' if parent_id is None else parent_id}"
