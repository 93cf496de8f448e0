"""Request signing, field helpers and listing records for the 139 cloud."""

from __future__ import annotations

import base64
import hashlib
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping
from urllib.parse import quote

from panindex.drivers import Account

_TIME_FORMAT = "%Y%m%d%H%M%S"
_TIME_SHAPE = re.compile(r"[0-9]{14}")

_CONTROL_ESCAPES = {
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
}


@dataclass
class Catalog:
    """A folder in a personal-cloud listing."""

    catalog_id: str = ""
    catalog_name: str = ""
    update_time: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Catalog":
        return cls(
            catalog_id=data.get("catalogID", ""),
            catalog_name=data.get("catalogName", ""),
            update_time=data.get("updateTime", ""),
        )


@dataclass
class Content:
    """A file in a personal-cloud listing."""

    content_id: str = ""
    content_name: str = ""
    content_size: int = 0
    update_time: str = ""
    thumbnail_url: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Content":
        return cls(
            content_id=data.get("contentID", ""),
            content_name=data.get("contentName", ""),
            content_size=int(data.get("contentSize") or 0),
            update_time=data.get("updateTime", ""),
            thumbnail_url=data.get("thumbnailURL", ""),
        )


@dataclass
class CloudCatalog:
    """A folder in a family-cloud listing."""

    catalog_id: str = ""
    catalog_name: str = ""
    last_update_time: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CloudCatalog":
        return cls(
            catalog_id=data.get("catalogID", ""),
            catalog_name=data.get("catalogName", ""),
            last_update_time=data.get("lastUpdateTime", ""),
        )


@dataclass
class CloudContent:
    """A file in a family-cloud listing."""

    content_id: str = ""
    content_name: str = ""
    content_size: int = 0
    last_update_time: str = ""
    thumbnail_url: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CloudContent":
        return cls(
            content_id=data.get("contentID", ""),
            content_name=data.get("contentName", ""),
            content_size=int(data.get("contentSize") or 0),
            last_update_time=data.get("lastUpdateTime", ""),
            thumbnail_url=data.get("thumbnailURL", ""),
        )


def _md5_hex(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def encode_uri_component(text: str) -> str:
    """Percent-encode everything but unreserved characters; spaces become %20."""
    return quote(text, safe="")


def cal_sign(body: str, ts: str, rand_str: str) -> str:
    """Compute the mcloud-sign digest of a JSON body, timestamp and nonce."""
    body = body.replace("\n", "").replace(" ", "")
    encoded = "".join(sorted(encode_uri_component(body)))
    encoded = base64.b64encode(encoded.encode("utf-8")).decode("ascii")
    combined = _md5_hex(encoded) + _md5_hex(f"{ts}:{rand_str}")
    return _md5_hex(combined).upper()


def parse_time(text: str) -> datetime | None:
    """Parse a compact ``YYYYMMDDhhmmss`` local time; None when malformed."""
    if not _TIME_SHAPE.fullmatch(text or ""):
        return None
    try:
        return datetime.strptime(text, _TIME_FORMAT)
    except ValueError:
        return None


def is_family(account: Account) -> bool:
    return account.internal_type == "Family"


def unicode_escape(text: str) -> str:
    """Escape ``text`` to printable ASCII the way a quoted literal would be written."""
    parts = []
    for ch in text:
        cp = ord(ch)
        if ch in ('"', "\\"):
            parts.append("\\" + ch)
        elif 0x20 <= cp < 0x7F:
            parts.append(ch)
        elif ch in _CONTROL_ESCAPES:
            parts.append(_CONTROL_ESCAPES[ch])
        elif cp < 0x80:
            parts.append(f"\\x{cp:02x}")
        elif cp < 0x10000:
            parts.append(f"\\u{cp:04x}")
        else:
            parts.append(f"\\U{cp:08x}")
    return "".join(parts)


def merge_maps(*args: Mapping[str, Any]) -> dict[str, Any]:
    """Merge mappings left to right; later keys win."""
    merged: dict[str, Any] = {}
    for mapping in args:
        merged.update(mapping)
    return merged


def family_body(data: Mapping[str, Any], account: Account) -> dict[str, Any]:
    """Add the common family-cloud request fields to ``data``."""
    common = {
        "catalogType": 3,
        "cloudID": account.site_id,
        "cloudType": 1,
        "commonAccountInfo": {
            "account": account.username,
            "accountType": 1,
        },
    }
    return merge_maps(data, common)