"""Driver that browses another PanIndex-compatible server through its public API."""

from __future__ import annotations

import posixpath
import re
from datetime import datetime
from typing import Any, Callable, Mapping

import requests

from panindex.conf import FileType, file_type_of
from panindex.drivers import (
    Account,
    DirectoryCache,
    Driver,
    DriverConfig,
    DriverError,
    File,
    Item,
    Link,
    NotFolderError,
    PathNotFoundError,
    cache as shared_cache,
    parse_path,
    register_driver,
)

_FRACTION = re.compile(r"(\.\d{6})\d+")


def _parse_datetime(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    text = _FRACTION.sub(r"\1", value.replace("Z", "+00:00"))
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _file_type(value: Any) -> FileType:
    try:
        return FileType(int(value))
    except (TypeError, ValueError):
        return FileType.UNKNOWN


def _file_from_dict(data: Mapping[str, Any]) -> File:
    return File(
        id=str(data.get("id") or ""),
        name=data.get("name", ""),
        size=int(data.get("size") or 0),
        type=_file_type(data.get("type")),
        driver=data.get("driver", ""),
        updated_at=_parse_datetime(data.get("updated_at")),
        thumbnail=data.get("thumbnail", ""),
        url=data.get("url", ""),
    )


def _join(root: str, path: str) -> str:
    joined = "/".join(p for p in (root, path) if p)
    if not joined:
        return ""
    cleaned = posixpath.normpath(joined)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


class AlistDriver(Driver):
    """Reads listings and links from a remote server with an admin token."""

    def __init__(
        self,
        session: requests.Session | None = None,
        cache: DirectoryCache | None = None,
        signer: Callable[[str], str] | None = None,
    ) -> None:
        self._session = session or requests.Session()
        self._cache = cache if cache is not None else shared_cache
        self._signer = signer or (lambda name: "")

    def _call(self, method: str, url: str, account: Account, body: Any = None) -> dict[str, Any]:
        try:
            response = self._session.request(
                method, url, headers={"Authorization": account.access_token}, json=body
            )
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise DriverError(str(exc)) from exc
        if not isinstance(payload, dict):
            raise DriverError(f"unexpected response: {payload!r}")
        if payload.get("code") != 200:
            raise DriverError(str(payload.get("message", "")))
        return payload

    def login(self, account: Account) -> None:
        """Check that the account's token is accepted by the remote server."""
        self._call("GET", account.site_url + "/api/admin/login", account)

    def config(self) -> DriverConfig:
        return DriverConfig(name="Alist", no_need_set_link=True, no_cors=True)

    def items(self) -> list[Item]:
        return [
            Item(name="site_url", label="alist site url", type="string", required=True),
            Item(name="access_token", label="token", type="string",
                 description="admin token", required=True),
            Item(name="root_folder", label="root folder path", type="string", required=False),
        ]

    def save(self, account: Account | None, old: Account | None = None) -> None:
        if account is None:
            return
        account.site_url = account.site_url.rstrip("/")
        if account.root_folder == "":
            account.root_folder = "/"
        try:
            self.login(account)
        except DriverError as exc:
            account.status = str(exc)
            raise
        account.status = "work"

    def file(self, path: str, account: Account) -> File:
        if path == "/":
            return File(
                id="root",
                name="root",
                size=0,
                type=FileType.FOLDER,
                driver=self.config().name,
                updated_at=datetime.now(),
            )
        cleaned = parse_path(path)
        _, files = self.path(posixpath.dirname(cleaned), account)
        if files is None:
            raise PathNotFoundError()
        name = posixpath.basename(cleaned)
        for entry in files:
            if entry.name == name:
                return entry
        raise PathNotFoundError()

    def files(self, path: str, account: Account) -> list[File]:
        _, files = self.path(path, account)
        if files is None:
            raise NotFolderError()
        return files

    def link(self, path: str, account: Account, ip: str = "") -> Link:
        path = parse_path(path)
        name = posixpath.basename(path)
        flag = "p" if file_type_of(posixpath.splitext(path)[1]) == FileType.TEXT else "d"
        return Link(url=f"{account.site_url}/{flag}{path}?sign={self._signer(name)}")

    def path(self, path: str, account: Account) -> tuple[File | None, list[File] | None]:
        path = _join(account.root_folder, parse_path(path)).replace("\\", "/")
        cached = self._cache.get(path, account)
        if cached is not None:
            return None, cached
        payload = self._call("POST", account.site_url + "/api/public/path", account, {"path": path})
        data = payload.get("data") or {}
        files = [_file_from_dict(f) for f in data.get("files") or []]
        if data.get("type") == "file":
            if not files:
                raise PathNotFoundError()
            return files[0], None
        if files:
            self._cache.set(path, files, account)
        return None, files

    def preview(self, path: str, account: Account) -> Any:
        payload = self._call("POST", account.site_url + "/api/public/preview", account, {"path": path})
        return payload.get("data")


register_driver(AlistDriver())