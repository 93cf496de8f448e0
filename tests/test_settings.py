from panindex import conf, settings
from panindex.conf import SettingsMap
from panindex.settings import Access, Group, SettingItem


def _by_key(items):
    return {item.key: item for item in items}


def test_default_settings_keys_unique_and_cover_runtime_keys():
    items = settings.default_settings("v1")
    keys = [item.key for item in items]
    assert len(keys) == len(set(keys))
    for key in conf.LOAD_SETTINGS:
        assert key in keys
    assert all(item.version == "v1" for item in items)


def test_default_settings_values():
    items = _by_key(settings.default_settings())
    assert items["text types"].value == ",".join(conf.TEXT_TYPES)
    assert items["d_proxy types"].value == "m3u8"
    assert items["default page size"].value == "30"
    assert items["load type"].values == "all,load more,auto load more,pagination"
    assert items["password"].access is Access.PRIVATE
    assert items["password"].group is Group.BACK
    assert items["title"].access is Access.PUBLIC
    assert items["version" if False else "title"].version == conf.GIT_TAG


def test_passwords_are_random_alnum():
    items = _by_key(settings.default_settings())
    for key in ("password", "WebDAV password"):
        value = items[key].value
        assert len(value) == 8
        assert value.isalnum() and value.isascii()


def test_random_str():
    first = settings.random_str(32)
    assert len(first) == 32
    assert first.isalnum() and first.isascii()
    assert first != settings.random_str(32)
    assert settings.random_str(0) == ""


def test_merge_keeps_stored_values():
    merged = _by_key(settings.merge_settings({"title": "Mine", "password": "password"}, "v2"))
    assert merged["title"].value == "Mine"
    assert merged["password"].value == "password"
    assert merged["title"].version == "v2"
    assert merged["title"].description == "title"
    assert merged["WebDAV username"].value == "admin"


def test_merge_with_nothing_stored_matches_defaults_shape():
    merged = settings.merge_settings({})
    defaults = settings.default_settings()
    assert [i.key for i in merged] == [i.key for i in defaults]


def test_load_settings_copies_runtime_keys_only():
    items = settings.merge_settings({"check down link": "true"})
    loaded = settings.load_settings(items)
    assert len(loaded) == len(conf.LOAD_SETTINGS)
    assert "title" not in loaded
    assert loaded.get_bool("check down link") is True
    assert loaded.get_int("default page size", 0) == 30
    assert loaded.get_str("load type") == "all"


def test_load_settings_into_existing_map():
    existing = SettingsMap({"extra": "1"})
    result = settings.load_settings([SettingItem("favicon", "/f.svg"), SettingItem("title", "t")], existing)
    assert result is existing
    assert existing.get_str("favicon") == "/f.svg"
    assert existing.get_str("extra") == "1"
    assert "title" not in existing