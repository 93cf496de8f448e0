"""Built-in site settings and their merging with stored values."""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Iterable, Mapping

from panindex.conf import (
    AUDIO_TYPES,
    D_PROXY_TYPES,
    GIT_TAG,
    LOAD_SETTINGS,
    TEXT_TYPES,
    VIDEO_TYPES,
    SettingsMap,
)

_ALPHABET = string.ascii_letters + string.digits


class Access(IntEnum):
    PUBLIC = 0
    PRIVATE = 1


class Group(IntEnum):
    FRONT = 0
    BACK = 1


@dataclass
class SettingItem:
    key: str
    value: str = ""
    description: str = ""
    type: str = ""
    group: Group = Group.FRONT
    access: Access = Access.PUBLIC
    values: str = ""
    version: str = ""


def random_str(length: int) -> str:
    """Return a random string of ASCII letters and digits."""
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def _defaults() -> list[SettingItem]:
    pub, priv = Access.PUBLIC, Access.PRIVATE
    front, back = Group.FRONT, Group.BACK
    return [
        SettingItem("title", "PanIndex", "title", "string", front, pub),
        SettingItem("password", random_str(8), "password", "string", back, priv),
        SettingItem("logo", "/logo.svg", "logo", "string", front, pub),
        SettingItem("favicon", "/favicon.svg", "favicon", "string", front, pub),
        SettingItem("icon color", "#1890ff", "icon's color", "string", front, pub),
        SettingItem("announcement", "This is a test announcement.",
                    "announcement message (support markdown)", "text", front, pub),
        SettingItem("text types", ",".join(TEXT_TYPES), "text type extensions", "string", front),
        SettingItem("audio types", ",".join(AUDIO_TYPES), "audio type extensions", "string", front),
        SettingItem("video types", ",".join(VIDEO_TYPES), "video type extensions", "string", front),
        SettingItem("d_proxy types", ",".join(D_PROXY_TYPES), "/d but proxy", "string", back, priv),
        SettingItem("hide files", "/\\/README.md/i", "hide files, support RegExp, one per line", "text", front),
        SettingItem("music cover", "/music_cover.svg", "music cover image", "string", front, pub),
        SettingItem("site beian", "", "chinese beian info", "string", front, pub),
        SettingItem("home readme url", "", "when have multiple, the readme file to show", "string", front, pub),
        SettingItem("autoplay video", "false", "", "bool", front, pub),
        SettingItem("autoplay audio", "false", "", "bool", front, pub),
        SettingItem("check parent folder", "false", "check parent folder password", "bool", back, priv),
        SettingItem("customize head", "", "Customize head, placed at the beginning of the head",
                    "text", front, priv),
        SettingItem("customize body", "", "Customize script, placed at the end of the body",
                    "text", front, priv),
        SettingItem("home emoji", "🏠", "emoji in front of home in nav", "string", front, pub),
        SettingItem("animation", "true",
                    "when there are a lot of files, the animation will freeze when opening", "bool", front, pub),
        SettingItem("check down link", "false",
                    "check down link password, your link will be "
                    "'https://example.com/d/filename?pw=xxx'", "bool", back, pub),
        SettingItem("WebDAV username", "admin", "WebDAV username", "string", back, priv),
        SettingItem("WebDAV password", random_str(8), "WebDAV password", "string", back, priv),
        SettingItem("artplayer whitelist", "*", "player whitelist option", "string", front, pub),
        SettingItem("artplayer autoSize", "true", "player autoSize option", "bool", front, pub),
        SettingItem("Visitor WebDAV username", "guest", "Visitor WebDAV username", "string", back, priv),
        SettingItem("Visitor WebDAV password", "guest", "Visitor WebDAV password", "string", back, priv),
        SettingItem("load type", "all", "Not recommended to choose to auto load more, it has bugs now",
                    "select", front, pub, values="all,load more,auto load more,pagination"),
        SettingItem("default page size", "30", "", "number", front, pub),
        SettingItem("ocr api", "", "Used to identify verification codes", "string", back, priv),
    ]


def default_settings(version: str = GIT_TAG) -> list[SettingItem]:
    """Return the built-in settings stamped with ``version``; passwords are fresh."""
    return [replace(item, version=version) for item in _defaults()]


def merge_settings(stored: Mapping[str, str], version: str = GIT_TAG) -> list[SettingItem]:
    """Return the built-in settings, keeping any value already stored under the same key."""
    merged = []
    for item in default_settings(version):
        if item.key in stored:
            item = replace(item, value=stored[item.key])
        merged.append(item)
    return merged


def load_settings(items: Iterable[SettingItem], settings_map: SettingsMap | None = None) -> SettingsMap:
    """Copy the settings the server reads at runtime into a settings map."""
    settings_map = SettingsMap() if settings_map is None else settings_map
    for item in items:
        if item.key in LOAD_SETTINGS:
            settings_map.set(item.key, item.value)
    return settings_map