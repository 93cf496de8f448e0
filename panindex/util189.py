"""Encoding, encryption and signing helpers and API records for the 189 cloud."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import random
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping
from urllib.parse import quote_plus, unquote

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

B64_MAP = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
BI_RM = "0123456789abcdefghijklmnopqrstuvwxyz"

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_PATTERN = re.compile(r"[xy]")
_AES_KEY_SIZES = (16, 24, 32)


@dataclass
class Cloud189File:
    """A file entry of a listing; folders carry a size of -1."""

    id: int = 0
    last_op_time: str = ""
    name: str = ""
    size: int = 0
    small_url: str = ""
    url: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Cloud189File":
        icon = data.get("icon") or {}
        return cls(
            id=int(data.get("id") or 0),
            last_op_time=data.get("lastOpTime", ""),
            name=data.get("name", ""),
            size=int(data.get("size") or 0),
            small_url=icon.get("smallUrl", ""),
            url=data.get("url", ""),
        )


@dataclass
class Cloud189Folder:
    id: int = 0
    last_op_time: str = ""
    name: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Cloud189Folder":
        return cls(
            id=int(data.get("id") or 0),
            last_op_time=data.get("lastOpTime", ""),
            name=data.get("name", ""),
        )

    def as_file(self) -> Cloud189File:
        """Return the folder as a file entry with the folder size marker."""
        return Cloud189File(id=self.id, last_op_time=self.last_op_time, name=self.name, size=-1)


@dataclass
class UploadPart:
    """Where and with which headers one part of an upload is sent."""

    request_url: str = ""
    request_header: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UploadPart":
        return cls(
            request_url=data.get("requestURL", ""),
            request_header=data.get("requestHeader", ""),
        )


@dataclass
class RsaKey:
    """A server-issued public key with its id and expiry in milliseconds."""

    expire: int = 0
    pk_id: str = ""
    pub_key: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RsaKey":
        return cls(
            expire=int(data.get("expire") or 0),
            pk_id=data.get("pkId", ""),
            pub_key=data.get("pubKey", ""),
        )


def random_token() -> str:
    """Return a cache-busting value: ``0.`` and a number right-aligned to 17 places."""
    return "0." + str(random.randrange(10**17)).rjust(17)


def rsa_encode(data: bytes, key: str, as_hex: bool = True) -> str:
    """Encrypt ``data`` (PKCS#1 v1.5) with a bare base64 public key body.

    The result is base64, or lower-case hex when ``as_hex`` is true.
    """
    try:
        der = base64.b64decode("".join(key.split()), validate=True)
    except binascii.Error as exc:
        raise ValueError("invalid public key encoding") from exc
    public_key = serialization.load_der_public_key(der)
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise ValueError("public key is not an RSA key")
    encrypted = public_key.encrypt(bytes(data), padding.PKCS1v15())
    encoded = base64.b64encode(encrypted).decode("ascii")
    return b64tohex(encoded) if as_hex else encoded


def int2char(value: int) -> str:
    """Return the base-36 digit for ``value``."""
    if not 0 <= value < len(BI_RM):
        raise ValueError(f"digit out of range: {value}")
    return BI_RM[value]


def b64tohex(text: str) -> str:
    """Convert standard base64 text to lower-case hex."""
    out: list[str] = []
    state = 0
    carry = 0
    for ch in text:
        if ch == "=":
            continue
        v = B64_MAP.find(ch)
        if v < 0:
            raise ValueError(f"invalid base64 character: {ch!r}")
        if state == 0:
            state = 1
            out.append(int2char(v >> 2))
            carry = 3 & v
        elif state == 1:
            state = 2
            out.append(int2char(carry << 2 | v >> 4))
            carry = 15 & v
        elif state == 2:
            state = 3
            out.append(int2char(carry))
            out.append(int2char(v >> 2))
            carry = 3 & v
        else:
            state = 0
            out.append(int2char(carry << 2 | v >> 4))
            out.append(int2char(15 & v))
    if state == 1:
        out.append(int2char(carry << 2))
    return "".join(out)


def encode_param(values: Mapping[str, str | Iterable[str]] | None) -> str:
    """Join ``key=value`` pairs with ``&``; values are not escaped."""
    if values is None:
        return ""
    pairs = []
    for key, vs in values.items():
        for v in [vs] if isinstance(vs, str) else vs:
            pairs.append(f"{key}={v}")
    return "&".join(pairs)


def qs(form: Mapping[str, str]) -> str:
    """Build an unescaped query string from a form."""
    return encode_param({k: [v] for k, v in form.items()})


def encode(text: str) -> str:
    """Query-escape ``text``: unreserved characters kept, spaces as ``+``."""
    return quote_plus(text, safe="")


def pkcs7_padding(data: bytes, block_size: int) -> bytes:
    pad = block_size - len(data) % block_size
    return bytes(data) + bytes([pad]) * pad


def aes_encrypt(data: bytes, key: bytes) -> bytes:
    """AES-ECB encrypt with PKCS#7 padding; empty bytes for an unusable key."""
    if len(key) not in _AES_KEY_SIZES:
        return b""
    encryptor = Cipher(algorithms.AES(bytes(key)), modes.ECB()).encryptor()
    padded = pkcs7_padding(data, algorithms.AES.block_size // 8)
    return encryptor.update(padded) + encryptor.finalize()


def hmac_sha1(data: str, secret: str) -> str:
    """HMAC-SHA1 of ``data`` keyed with ``secret``, as lower-case hex."""
    return hmac.new(secret.encode("utf-8"), data.encode("utf-8"), hashlib.sha1).hexdigest()


def md5_digest(data: bytes) -> bytes:
    return hashlib.md5(data).digest()


def decode_uri_component(text: str) -> str:
    """Path-unescape ``text`` (``+`` kept); an empty string on a bad escape."""
    if _BAD_ESCAPE.search(text):
        return ""
    return unquote(text, errors="replace")


def random_pattern(template: str) -> str:
    """Fill ``x`` with random hex digits and ``y`` with one of ``89ab``."""

    def fill(match: re.Match[str]) -> str:
        t = int(16 * random.random())
        value = t if match.group(0) == "x" else (3 & t) | 8
        return format(value, "x")

    return _PATTERN.sub(fill, template)