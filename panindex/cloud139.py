"""Driver for the 139 cloud (personal and family spaces)."""

from __future__ import annotations

import json
import math
import posixpath
from datetime import datetime
from typing import Any, Mapping

import requests

from panindex.conf import FileType, file_type_of
from panindex.drivers import (
    Account,
    DirectoryCache,
    Driver,
    DriverConfig,
    DriverError,
    EmptyFileError,
    File,
    FileStream,
    Item,
    Link,
    NotFolderError,
    NotSupportedError,
    PathNotFoundError,
    cache as shared_cache,
    parse_path,
    register_driver,
)
from panindex.settings import random_str
from panindex.sign139 import (
    Catalog,
    CloudCatalog,
    CloudContent,
    Content,
    cal_sign,
    family_body,
    is_family,
    parse_time,
    unicode_escape,
)

BASE_URL = "https://yun.139.com"
PART_SIZE = 10485760
PAGE_SIZE = 100

GET_DISK = "/orchestration/personalCloud/catalog/v1.0/getDisk"
DOWNLOAD_REQUEST = "/orchestration/personalCloud/uploadAndDownload/v1.0/downloadRequest"
USER_INFO = "/orchestration/personalCloud/user/v1.0/qryUserExternInfo"
CREATE_CATALOG = "/orchestration/personalCloud/catalog/v1.0/createCatalogExt"
BATCH_TASK = "/orchestration/personalCloud/batchOprTask/v1.0/createBatchOprTask"
UPDATE_CATALOG = "/orchestration/personalCloud/catalog/v1.0/updateCatalogInfo"
UPDATE_CONTENT = "/orchestration/personalCloud/catalog/v1.0/updateContentInfo"
UPLOAD_REQUEST = "/orchestration/personalCloud/uploadAndDownload/v1.0/pcUploadFileRequest"
FAMILY_LIST = "/orchestration/familyCloud/content/v1.0/queryContentList"
FAMILY_LINK = "/orchestration/familyCloud/content/v1.0/getFileDownLoadURL"
FAMILY_CREATE = "/orchestration/familyCloud/cloudCatalog/v1.0/createCloudDoc"
FAMILY_BATCH_TASK = "/orchestration/familyCloud/batchOprTask/v1.0/createBatchOprTask"
FAMILY_UPLOAD = "/orchestration/familyCloud/content/v1.0/getFileUploadURL"

_METHODS = ("GET", "POST", "DELETE", "PATCH", "PUT")

_JSON_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}

_UPLOAD_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_2) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/95.0.4638.69 Safari/537.36 Edg/95.0.1020.44"
)


def _encode_body(data: Any) -> str:
    text = json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    for raw, escaped in _JSON_ESCAPES.items():
        text = text.replace(raw, escaped)
    return text


def _common_account(account: Account) -> dict[str, Any]:
    return {"account": account.username, "accountType": 1}


def _id_lists(entry: File) -> tuple[list[str] | None, list[str] | None]:
    """Return (content ids, catalog ids); an empty side is None, sent as null."""
    if entry.is_dir():
        return None, [entry.id]
    return [entry.id], None


def _read_full(stream: Any, size: int) -> bytes:
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            raise DriverError("unexpected end of upload stream")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


class Cloud139(Driver):
    """Lists, links and manages files of a 139 cloud account."""

    def __init__(
        self,
        session: requests.Session | None = None,
        cache: DirectoryCache | None = None,
    ) -> None:
        self._session = session or requests.Session()
        self._cache = cache if cache is not None else shared_cache

    def request(
        self,
        pathname: str,
        method: str,
        account: Account,
        headers: Mapping[str, str] | None = None,
        query: Mapping[str, str] | None = None,
        form: Mapping[str, str] | None = None,
        data: Any = None,
    ) -> dict[str, Any]:
        """Send a signed API request and return the decoded response."""
        method = method.upper()
        if method not in _METHODS:
            raise NotSupportedError()
        url = BASE_URL + pathname
        rand_str = random_str(16)
        ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        body = _encode_body(data)
        sign = cal_sign(body, ts, rand_str)
        all_headers = {
            "Accept": "application/json, text/plain, */*",
            "CMS-DEVICE": "default",
            "Cookie": account.access_token,
            "mcloud-channel": "1000101",
            "mcloud-client": "10701",
            "mcloud-sign": f"{ts},{rand_str},{sign}",
            "mcloud-version": "6.6.0",
            "Origin": "https://yun.139.com",
            "Referer": "https://yun.139.com/w/",
            "x-DeviceInfo": "||9|6.6.0|chrome|95.0.4638.69|uwIy75obnsRPIwlJSd7D9GhUvFwG96ce||macos 10.15.2||zh-CN|||",
            "x-huawei-channelSrc": "10000034",
            "x-inner-ntwk": "2",
            "x-m4c-caller": "PC",
            "x-m4c-src": "10002",
            "x-SvcType": "2" if is_family(account) else "1",
        }
        all_headers.update(headers or {})
        payload_body: Any = None
        if data is not None:
            all_headers["Content-Type"] = "application/json"
            payload_body = body.encode("utf-8")
        elif form is not None:
            payload_body = dict(form)
        try:
            response = self._session.request(
                method, url, headers=all_headers, params=query, data=payload_body
            )
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise DriverError(str(exc)) from exc
        if not isinstance(payload, dict):
            raise DriverError(f"unexpected response: {payload!r}")
        if not payload.get("success"):
            raise DriverError(str(payload.get("message") or ""))
        return payload

    def post(self, pathname: str, data: Any, account: Account) -> dict[str, Any]:
        return self.request(pathname, "POST", account, data=data)

    def _folder(self, catalog_id: str, name: str, updated: str) -> File:
        return File(
            id=catalog_id,
            name=name,
            size=0,
            type=FileType.FOLDER,
            driver=self.config().name,
            updated_at=parse_time(updated),
        )

    def _content(self, content_id: str, name: str, size: int, updated: str, thumbnail: str) -> File:
        return File(
            id=content_id,
            name=name,
            size=size,
            type=file_type_of(posixpath.splitext(name)[1]),
            driver=self.config().name,
            updated_at=parse_time(updated),
            thumbnail=thumbnail,
        )

    def get_files(self, catalog_id: str, account: Account) -> list[File]:
        """List a personal-cloud folder page by page."""
        start = 0
        result: list[File] = []
        while True:
            data = {
                "catalogID": catalog_id,
                "sortDirection": 1,
                "startNumber": start + 1,
                "endNumber": start + PAGE_SIZE,
                "filterType": 0,
                "catalogSortType": 0,
                "contentSortType": 0,
                "commonAccountInfo": _common_account(account),
            }
            payload = self.post(GET_DISK, data, account)
            disk = (payload.get("data") or {}).get("getDiskResult") or {}
            for raw in disk.get("catalogList") or []:
                c = Catalog.from_dict(raw)
                result.append(self._folder(c.catalog_id, c.catalog_name, c.update_time))
            for raw in disk.get("contentList") or []:
                c = Content.from_dict(raw)
                result.append(self._content(
                    c.content_id, c.content_name, c.content_size, c.update_time, c.thumbnail_url
                ))
            if start + PAGE_SIZE >= int(disk.get("nodeCount") or 0):
                break
            start += PAGE_SIZE
        return result

    def family_get_files(self, catalog_id: str, account: Account) -> list[File]:
        """List a family-cloud folder page by page."""
        page = 1
        result: list[File] = []
        while True:
            data = family_body({
                "catalogID": catalog_id,
                "contentSortType": 0,
                "pageInfo": {"pageNum": page, "pageSize": PAGE_SIZE},
                "sortDirection": 1,
            }, account)
            payload = self.post(FAMILY_LIST, data, account)
            body = payload.get("data") or {}
            for raw in body.get("cloudCatalogList") or []:
                c = CloudCatalog.from_dict(raw)
                result.append(self._folder(c.catalog_id, c.catalog_name, c.last_update_time))
            for raw in body.get("cloudContentList") or []:
                c = CloudContent.from_dict(raw)
                result.append(self._content(
                    c.content_id, c.content_name, c.content_size, c.last_update_time, c.thumbnail_url
                ))
            if PAGE_SIZE * page > int(body.get("totalCount") or 0):
                break
            page += 1
        return result

    def get_link(self, content_id: str, account: Account) -> str:
        data = {
            "appName": "",
            "contentID": content_id,
            "commonAccountInfo": _common_account(account),
        }
        payload = self.post(DOWNLOAD_REQUEST, data, account)
        return str((payload.get("data") or {}).get("downloadURL") or "")

    def family_link(self, content_id: str, account: Account) -> str:
        data = family_body({"contentID": content_id}, account)
        payload = self.post(FAMILY_LINK, data, account)
        return str((payload.get("data") or {}).get("downloadURL") or "")

    def config(self) -> DriverConfig:
        return DriverConfig(name="139Yun", local_sort=True)

    def items(self) -> list[Item]:
        return [
            Item(name="username", label="phone", type="string", required=True,
                 description="phone number"),
            Item(name="access_token", label="Cookie", type="string", required=True,
                 description="Unknown expiration time"),
            Item(name="internal_type", label="139yun type", type="select", required=True,
                 values="Personal,Family"),
            Item(name="root_folder", label="root folder file_id", type="string", required=True),
            Item(name="site_id", label="cloud_id", type="string", required=False),
        ]

    def save(self, account: Account | None, old: Account | None = None) -> None:
        if account is None:
            return
        self.post(USER_INFO, {
            "qryUserExternInfoReq": {"commonAccountInfo": _common_account(account)},
        }, account)

    def file(self, path: str, account: Account) -> File:
        path = parse_path(path)
        if path == "/":
            return File(
                id=account.root_folder,
                name=account.name,
                size=0,
                type=FileType.FOLDER,
                driver=self.config().name,
                updated_at=account.updated_at,
            )
        directory, name = posixpath.split(path)
        for entry in self.files(directory, account):
            if entry.name == name:
                return entry
        raise PathNotFoundError()

    def files(self, path: str, account: Account) -> list[File]:
        path = parse_path(path)
        cached = self._cache.get(path, account)
        if cached is not None:
            return cached
        folder = self.file(path, account)
        if is_family(account):
            entries = self.family_get_files(folder.id, account)
        else:
            entries = self.get_files(folder.id, account)
        if entries:
            self._cache.set(path, entries, account)
        return entries

    def link(self, path: str, account: Account, ip: str = "") -> Link:
        entry = self.file(path, account)
        return Link(url=self.get_link(entry.id, account))

    def path(self, path: str, account: Account) -> tuple[File | None, list[File] | None]:
        return super().path(path, account)

    def preview(self, path: str, account: Account) -> Any:
        raise NotSupportedError()

    def make_dir(self, path: str, account: Account) -> None:
        path = parse_path(path)
        parent = self.file(posixpath.dirname(path), account)
        name = posixpath.basename(path)
        if is_family(account):
            data: dict[str, Any] = {
                "cloudID": account.site_id,
                "commonAccountInfo": _common_account(account),
                "docLibName": name,
            }
            pathname = FAMILY_CREATE
        else:
            data = {
                "createCatalogExtReq": {
                    "parentCatalogID": parent.id,
                    "newCatalogName": name,
                    "commonAccountInfo": _common_account(account),
                },
            }
            pathname = CREATE_CATALOG
        self.post(pathname, data, account)

    def _batch(self, src: str, dst: str, action: Any, account: Account) -> None:
        if is_family(account):
            raise NotSupportedError()
        source = self.file(src, account)
        target = self.file(posixpath.dirname(parse_path(dst)), account)
        contents, catalogs = _id_lists(source)
        data = {
            "createBatchOprTaskReq": {
                "taskType": 3,
                "actionType": action,
                "taskInfo": {
                    "contentInfoList": contents,
                    "catalogInfoList": catalogs,
                    "newCatalogID": target.id,
                },
                "commonAccountInfo": _common_account(account),
            },
        }
        self.post(BATCH_TASK, data, account)

    def move(self, src: str, dst: str, account: Account) -> None:
        self._batch(src, dst, "304", account)

    def rename(self, src: str, dst: str, account: Account) -> None:
        if is_family(account):
            raise NotSupportedError()
        source = self.file(src, account)
        new_name = posixpath.basename(parse_path(dst))
        if source.is_dir():
            data = {
                "catalogID": source.id,
                "catalogName": new_name,
                "commonAccountInfo": _common_account(account),
            }
            pathname = UPDATE_CATALOG
        else:
            data = {
                "contentID": source.id,
                "contentName": new_name,
                "commonAccountInfo": _common_account(account),
            }
            pathname = UPDATE_CONTENT
        self.post(pathname, data, account)

    def copy(self, src: str, dst: str, account: Account) -> None:
        self._batch(src, dst, 309, account)

    def delete(self, path: str, account: Account) -> None:
        entry = self.file(path, account)
        contents, catalogs = _id_lists(entry)
        if is_family(account):
            data: dict[str, Any] = {
                "catalogList": catalogs,
                "contentList": contents,
                "commonAccountInfo": _common_account(account),
                "sourceCatalogType": 1002,
                "taskType": 2,
            }
            pathname = FAMILY_BATCH_TASK
        else:
            data = {
                "createBatchOprTaskReq": {
                    "taskType": 2,
                    "actionType": 201,
                    "taskInfo": {
                        "newCatalogID": "",
                        "contentInfoList": contents,
                        "catalogInfoList": catalogs,
                    },
                    "commonAccountInfo": _common_account(account),
                },
            }
            pathname = BATCH_TASK
        self.post(pathname, data, account)

    def upload(self, stream: FileStream | None, account: Account) -> None:
        if stream is None:
            raise EmptyFileError()
        parent = self.file(stream.parent_path, account)
        if not parent.is_dir():
            raise NotFolderError()
        if is_family(account):
            raise NotSupportedError()
        data = {
            "manualRename": 2,
            "operation": 0,
            "fileCount": 1,
            "totalSize": stream.size,
            "uploadContentList": [{"contentName": stream.name, "contentSize": stream.size}],
            "parentCatalogID": parent.id,
            "newCatalogName": "",
            "commonAccountInfo": _common_account(account),
        }
        payload = self.post(UPLOAD_REQUEST, data, account)
        result = (payload.get("data") or {}).get("uploadResult") or {}
        redirect_url = str(result.get("redirectionUrl") or "")
        task_id = str(result.get("uploadTaskID") or "")
        parts = math.ceil(stream.size / PART_SIZE)
        start = 0
        for _ in range(parts):
            byte_size = min(stream.size - start, PART_SIZE)
            chunk = _read_full(stream, byte_size)
            headers = {
                "Accept": "*/*",
                "Content-Type": "text/plain;name=" + unicode_escape(stream.name),
                "contentSize": str(stream.size),
                "range": f"bytes={start}-{start + byte_size - 1}",
                "content-length": str(byte_size),
                "uploadtaskID": task_id,
                "rangeType": "0",
                "Referer": "https://yun.139.com/",
                "User-Agent": _UPLOAD_USER_AGENT,
                "x-SvcType": "1",
            }
            try:
                self._session.post(redirect_url, data=chunk, headers=headers)
            except requests.RequestException as exc:
                raise DriverError(str(exc)) from exc
            start += byte_size


register_driver(Cloud139())