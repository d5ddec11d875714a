import pytest

from forum_migrator.importer.pipeline import SiteDefaultsError
from forum_migrator.importer.site_defaults import DEFAULT_SITE_DEFAULTS_PATH, get_site_defaults, load_site_defaults


def test_bundled_profile_loads():
    defaults = load_site_defaults()

    assert defaults.path == DEFAULT_SITE_DEFAULTS_PATH
    assert defaults.system_user_id == -1
    assert defaults.default_archetype == "regular"
    assert defaults.private_message_archetype == "private_message"
    assert defaults.group_levels["visibility_level"] == 0
    assert defaults.user_options["email_level"] == 1


def test_custom_profile_overrides_values(tmp_path):
    profile = tmp_path / "site.yaml"
    profile.write_text(
        "system_user_id: 5\n"
        "default_trust_level: 2\n"
        "archetypes:\n  default: discussion\n"
        "groups:\n  mentionable_level: 3\n",
        encoding="utf-8",
    )

    defaults = load_site_defaults(profile)

    assert defaults.system_user_id == 5
    assert defaults.default_trust_level == 2
    assert defaults.default_archetype == "discussion"
    assert defaults.group_levels["mentionable_level"] == 3
    assert defaults.group_levels["visibility_level"] == 0
    assert defaults.user_options == {}


def test_missing_profile_raises(tmp_path):
    with pytest.raises(SiteDefaultsError):
        load_site_defaults(tmp_path / "absent.yaml")


@pytest.mark.parametrize(
    "content",
    [
        "- just\n- a list\n",
        "groups: [1, 2]\n",
        "system_user_id: not-a-number\n",
    ],
)
def test_invalid_profiles_raise(tmp_path, content):
    profile = tmp_path / "broken.yaml"
    profile.write_text(content, encoding="utf-8")

    with pytest.raises(SiteDefaultsError):
        load_site_defaults(profile)


def test_get_site_defaults_is_cached_per_app(app, tmp_path):
    profile = tmp_path / "site.yaml"
    profile.write_text("system_user_id: 9\n", encoding="utf-8")
    app.config["IMPORTER_SITE_DEFAULTS_PATH"] = str(profile)

    first = get_site_defaults()
    profile.write_text("system_user_id: 10\n", encoding="utf-8")

    assert first.system_user_id == 9
    assert get_site_defaults() is first
