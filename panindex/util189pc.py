"""Signing, encryption helpers and API records for the 189 cloud PC client."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import random
import re
import time
from dataclasses import dataclass
from email.utils import formatdate
from typing import Any, Mapping
from urllib.parse import unquote_plus, urlparse

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from panindex.drivers import Account

APP_ID = "8025431004"
CLIENT_TYPE = "10020"
VERSION = "6.2"

WEB_URL = "https://cloud.189.cn"
AUTH_URL = "https://open.e.189.cn"
API_URL = "https://api.cloud.189.cn"
UPLOAD_URL = "https://upload.cloud.189.cn"

RETURN_URL = "https://m.cloud.189.cn/zhuanti/2020/loginErrorPc/index.html"

PC = "TELEPC"
MAC = "TELEMAC"

CHANNEL_ID = "web_cloud.189.cn"

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")

_FAMILY_ORDER = {"filename": "1", "filesize": "2", "lastOpTime": "3"}


@dataclass
class BatchTaskInfo:
    """One entry of a batch move/copy/delete task."""

    file_id: str
    file_name: str
    is_folder: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"fileId": self.file_id, "fileName": self.file_name, "isFolder": self.is_folder}


@dataclass
class FamilyInfo:
    count: int = 0
    create_time: str = ""
    family_id: int = 0
    remark_name: str = ""
    type: int = 0
    use_flag: int = 0
    user_role: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FamilyInfo":
        return cls(
            count=int(data.get("count") or 0),
            create_time=data.get("createTime", ""),
            family_id=int(data.get("familyId") or 0),
            remark_name=data.get("remarkName", ""),
            type=int(data.get("type") or 0),
            use_flag=int(data.get("useFlag") or 0),
            user_role=int(data.get("userRole") or 0),
        )


@dataclass
class Cloud189PCFile:
    id: int = 0
    name: str = ""
    size: int = 0
    md5: str = ""
    media_type: int = 0
    create_date: str = ""
    last_op_time: str = ""
    small_url: str = ""
    large_url: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Cloud189PCFile":
        icon = data.get("icon") or {}
        return cls(
            id=int(data.get("id") or 0),
            name=data.get("name", ""),
            size=int(data.get("size") or 0),
            md5=data.get("md5", ""),
            media_type=int(data.get("mediaType") or 0),
            create_date=data.get("createDate", ""),
            last_op_time=data.get("lastOpTime", ""),
            small_url=icon.get("smallUrl", ""),
            large_url=icon.get("largeUrl", ""),
        )


@dataclass
class Cloud189PCFolder:
    id: int = 0
    parent_id: int = 0
    name: str = ""
    file_count: int = 0
    create_date: str = ""
    last_op_time: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Cloud189PCFolder":
        return cls(
            id=int(data.get("id") or 0),
            parent_id=int(data.get("parentId") or 0),
            name=data.get("name", ""),
            file_count=int(data.get("fileCount") or 0),
            create_date=data.get("createDate", ""),
            last_op_time=data.get("lastOpTime", ""),
        )


@dataclass
class CreateUploadFileResult:
    upload_file_id: int = 0
    file_upload_url: str = ""
    file_commit_url: str = ""
    file_data_exists: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CreateUploadFileResult":
        return cls(
            upload_file_id=int(data.get("uploadFileId") or 0),
            file_upload_url=data.get("fileUploadUrl", ""),
            file_commit_url=data.get("fileCommitUrl", ""),
            file_data_exists=int(data.get("fileDataExists") or 0),
        )


@dataclass
class UploadFileStatusResult:
    upload_file_id: int = 0
    data_size: int = 0
    file_upload_url: str = ""
    file_commit_url: str = ""
    file_data_exists: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UploadFileStatusResult":
        return cls(
            upload_file_id=int(data.get("uploadFileId") or 0),
            data_size=int(data.get("dataSize") or 0),
            file_upload_url=data.get("fileUploadUrl", ""),
            file_commit_url=data.get("fileCommitUrl", ""),
            file_data_exists=int(data.get("fileDataExists") or 0),
        )


def client_suffix() -> dict[str, str]:
    """Return the client identification parameters sent with every request."""
    return {
        "clientType": PC,
        "version": VERSION,
        "channelId": CHANNEL_ID,
        "rand": f"{random.randrange(10**5)}_{random.randrange(10**10)}",
    }


def signature_of_hmac(
    session_secret: str,
    session_key: str,
    operate: str,
    full_url: str,
    date_of_gmt: str,
    param: str = "",
) -> str:
    """HMAC-SHA1 request signature over the URL path, in upper-case hex."""
    path = urlparse(full_url).path
    data = f"SessionKey={session_key}&Operate={operate}&RequestURI={path}&Date={date_of_gmt}"
    if param:
        data += f"&params={param}"
    mac = hmac.new(session_secret.encode("utf-8"), data.encode("utf-8"), hashlib.sha1)
    return mac.hexdigest().upper()


def http_date() -> str:
    """Current time in the HTTP date format."""
    return formatdate(usegmt=True)


def rsa_encrypt(public_key: str, data: str) -> str:
    """Encrypt ``data`` with a PEM public key (PKCS#1 v1.5); upper-case hex."""
    key = serialization.load_pem_public_key(public_key.encode("ascii"))
    encrypted = key.encrypt(data.encode("utf-8"), padding.PKCS1v15())
    return base64_to_hex(base64.b64encode(encrypted).decode("ascii"))


def pkcs7_padding(data: bytes, block_size: int) -> bytes:
    pad = block_size - len(data) % block_size
    return data + bytes([pad]) * pad


def aes_ecb_encrypt(data: str, key: str) -> str:
    """AES-ECB encrypt ``data`` with PKCS#7 padding; upper-case hex."""
    cipher = Cipher(algorithms.AES(key.encode("utf-8")), modes.ECB())
    encryptor = cipher.encryptor()
    padded = pkcs7_padding(data.encode("utf-8"), algorithms.AES.block_size // 8)
    return (encryptor.update(padded) + encryptor.finalize()).hex().upper()


def timestamp() -> int:
    """Milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def base64_to_hex(text: str) -> str:
    """Decode standard base64 and return the bytes as upper-case hex."""
    try:
        raw = base64.b64decode(text, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"invalid base64: {text!r}") from exc
    return raw.hex().upper()


def is_family(account: Account) -> bool:
    return account.internal_type == "Family"


def to_family_order_by(order: str) -> str:
    """Map a personal-cloud sort field to the family-cloud numeric code."""
    return _FAMILY_ORDER.get(order, "1")


def decode_uri_component(text: str) -> str:
    """Query-unescape ``text``; an empty string when it holds a bad escape."""
    if _BAD_ESCAPE.search(text):
        return ""
    return unquote_plus(text)


def bool_to_number(value: Any) -> int:
    """Return 1 for a truthy value and 0 otherwise, as the API's flag fields expect."""
    return int(bool(value))