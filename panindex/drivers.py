"""Storage driver interface, shared data types, registry and directory cache."""

from __future__ import annotations

import posixpath
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, BinaryIO, Callable, NoReturn

from panindex.conf import FileType


class DriverError(Exception):
    """Base class of storage driver errors."""


class PathNotFoundError(DriverError):
    def __init__(self, message: str = "path not found") -> None:
        super().__init__(message)


class NotFileError(DriverError):
    def __init__(self, message: str = "not file") -> None:
        super().__init__(message)


class NotFolderError(DriverError):
    def __init__(self, message: str = "not a folder") -> None:
        super().__init__(message)


class NotSupportedError(DriverError):
    def __init__(self, message: str = "not support") -> None:
        super().__init__(message)


class EmptyFileError(DriverError):
    def __init__(self, message: str = "empty file") -> None:
        super().__init__(message)


def parse_path(path: str) -> str:
    """Normalise a path to an absolute form without a trailing slash."""
    cleaned = posixpath.normpath("/" + path.strip("/"))
    return "/" + cleaned.lstrip("/")


@dataclass
class Item:
    """One field of a driver's account form."""

    name: str
    label: str
    type: str = "string"
    default: str = ""
    values: str = ""
    required: bool = False
    description: str = ""


@dataclass
class DriverConfig:
    name: str
    local_sort: bool = False
    only_proxy: bool = False
    no_cors: bool = False
    no_need_set_link: bool = False


@dataclass
class Account:
    name: str = ""
    type: str = ""
    username: str = ""
    password: str = ""
    access_token: str = ""
    refresh_token: str = ""
    root_folder: str = ""
    order_by: str = ""
    order_direction: str = ""
    status: str = ""
    drive_id: str = ""
    site_id: str = ""
    site_url: str = ""
    internal_type: str = ""
    api_proxy_url: str = ""
    limit: int = 0
    cron_id: int = 0
    updated_at: datetime | None = None


@dataclass
class File:
    id: str = ""
    name: str = ""
    size: int = 0
    type: FileType = FileType.UNKNOWN
    driver: str = ""
    updated_at: datetime | None = None
    thumbnail: str = ""
    url: str = ""

    def is_dir(self) -> bool:
        return self.type == FileType.FOLDER


@dataclass
class FileStream:
    """An upload: a readable binary stream with its target location."""

    stream: BinaryIO
    size: int
    parent_path: str
    name: str
    mime_type: str = "application/octet-stream"

    def read(self, size: int = -1) -> bytes:
        return self.stream.read(size)


@dataclass
class Link:
    url: str = ""
    headers: dict[str, str] = field(default_factory=dict)


class DirectoryCache:
    """Directory listings per account and path, expiring after a fixed time."""

    def __init__(self, expiration: float = 3600.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._expiration = expiration
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    @staticmethod
    def _key(path: str, account: Account) -> str:
        return f"{account.name}{path}"

    def get(self, path: str, account: Account) -> Any:
        """Return the cached value, or None when absent or expired."""
        key = self._key(path, account)
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires, value = entry
        if self._clock() >= expires:
            del self._entries[key]
            return None
        return value

    def set(self, path: str, value: Any, account: Account) -> None:
        now = self._clock()
        self._entries = {k: v for k, v in self._entries.items() if v[0] > now}
        self._entries[self._key(path, account)] = (now + self._expiration, value)

    def clear(self) -> None:
        self._entries.clear()


cache = DirectoryCache()


class Driver(ABC):
    """A storage backend that lists, links and manages files for an account."""

    @abstractmethod
    def config(self) -> DriverConfig:
        """Describe the driver."""

    @abstractmethod
    def items(self) -> list[Item]:
        """Return the account form fields the driver needs."""

    def _unsupported(self, operation: str) -> NoReturn:
        raise NotSupportedError(f"{self.config().name}: {operation} not support")

    def save(self, account: Account | None, old: Account | None = None) -> None:
        """Prepare an account after it was created or changed; marks it working by default."""
        if account is not None:
            account.status = "work"

    @abstractmethod
    def file(self, path: str, account: Account) -> File:
        """Return the entry at ``path``."""

    @abstractmethod
    def files(self, path: str, account: Account) -> list[File]:
        """Return the entries of the folder at ``path``."""

    @abstractmethod
    def link(self, path: str, account: Account, ip: str = "") -> Link:
        """Return a download link for the file at ``path``."""

    def path(self, path: str, account: Account) -> tuple[File | None, list[File] | None]:
        """Return ``(file, None)`` for a file or ``(None, entries)`` for a folder."""
        path = parse_path(path)
        entry = self.file(path, account)
        if not entry.is_dir():
            return entry, None
        return None, self.files(path, account)

    def preview(self, path: str, account: Account) -> Any:
        self._unsupported("preview")

    def make_dir(self, path: str, account: Account) -> None:
        self._unsupported("make dir")

    def move(self, src: str, dst: str, account: Account) -> None:
        self._unsupported("move")

    def rename(self, src: str, dst: str, account: Account) -> None:
        self._unsupported("rename")

    def copy(self, src: str, dst: str, account: Account) -> None:
        self._unsupported("copy")

    def delete(self, path: str, account: Account) -> None:
        self._unsupported("delete")

    def upload(self, stream: FileStream | None, account: Account) -> None:
        self._unsupported("upload")


_REGISTRY: dict[str, Driver] = {}


def register_driver(driver: Driver) -> None:
    _REGISTRY[driver.config().name] = driver


def get_driver(name: str) -> Driver | None:
    return _REGISTRY.get(name)


def drivers_map() -> dict[str, Driver]:
    return dict(_REGISTRY)


def _supports_upload(driver: Driver) -> bool:
    try:
        driver.upload(None, None)  # type: ignore[arg-type]
    except EmptyFileError:
        return True
    except Exception:
        return False
    return False


def capabilities() -> tuple[str, str]:
    """Return comma lists of drivers without CORS and of targets without upload."""
    names = sorted(_REGISTRY)
    no_cors = ",".join(n for n in names if _REGISTRY[n].config().no_cors)
    no_upload = [n for n in names if not _supports_upload(_REGISTRY[n])]
    return no_cors, ",".join([*no_upload, "root"])