import pytest

from forum_migrator.importer.pipeline import NameDeduplicator, fix_name, next_string, random_email, slugify
from forum_migrator.importer.pipeline.names import MAX_CATEGORY_NAME_LENGTH, MAX_NAME_LENGTH


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("John Doe", "John_Doe"),
        ("bob!!", "bob"),
        ("__leading", "_leading"),
        ("...dots", "dots"),
        ("Zoë", "Zoe"),
        ("a--b__c", "a-b_c"),
        ("  ", None),
        (None, None),
        ("!!!", None),
    ],
)
def test_fix_name(raw, expected):
    assert fix_name(raw) == expected


def test_fix_name_truncates_and_restrips():
    name = fix_name("a" * (MAX_NAME_LENGTH - 1) + "_bcd")
    assert len(name) <= MAX_NAME_LENGTH
    assert name[-1].isalnum()


@pytest.mark.parametrize(
    "value, expected",
    [
        ("name_1", "name_2"),
        ("az", "ba"),
        ("zz", "aaa"),
        ("a9", "b0"),
        ("Zz", "AAa"),
        ("9", "10"),
    ],
)
def test_next_string(value, expected):
    assert next_string(value) == expected


def test_reserve_is_case_insensitive_and_appends_suffix():
    names = NameDeduplicator()
    names.seed(["Admin", None])

    assert names.reserve("admin") == "admin_1"
    assert names.reserve("ADMIN") == "ADMIN_2"
    assert names.reserve("Someone") == "Someone"
    assert names.is_reserved("someone")


def test_reserve_unusable_name_gets_anonymous_placeholder():
    names = NameDeduplicator()
    name = names.reserve("???")

    assert name.startswith("Anonymous_")
    assert names.is_reserved(name)


def test_namespaces_are_independent():
    names = NameDeduplicator()
    assert names.reserve("shared", namespace="a") == "shared"
    assert names.reserve("shared", namespace="b") == "shared"


def test_category_names_are_unique_per_parent():
    names = NameDeduplicator()
    names.seed_categories([(None, "General"), (1, "Help")])

    assert names.reserve_category_name("general", None) == "general1"
    assert names.reserve_category_name("General", None) == "General2"
    assert names.reserve_category_name("General", 1) == "General"
    assert names.reserve_category_name("Help", 2) == "Help"
    assert names.reserve_category_name("", None) == "Category"


def test_category_suffix_stays_within_length_limit():
    names = NameDeduplicator()
    long_name = "x" * (MAX_CATEGORY_NAME_LENGTH + 10)

    first = names.reserve_category_name(long_name, None)
    second = names.reserve_category_name(long_name, None)

    assert len(first) == MAX_CATEGORY_NAME_LENGTH
    assert len(second) == MAX_CATEGORY_NAME_LENGTH
    assert second.endswith("1")


def test_username_suffix_stays_within_length_limit():
    names = NameDeduplicator()
    long_name = "a" * MAX_NAME_LENGTH

    assert names.reserve(long_name) == long_name
    second = names.reserve(long_name)
    third = names.reserve(long_name)

    assert second == "a" * (MAX_NAME_LENGTH - 2) + "_1"
    assert third == "a" * (MAX_NAME_LENGTH - 2) + "_2"
    assert len(second) == len(third) == MAX_NAME_LENGTH


def test_slugify_and_random_email():
    assert slugify("Hello, Wörld!") == "hello-world"
    assert slugify(None) == ""
    assert random_email().endswith("@email.invalid")
