import io
import json
from dataclasses import dataclass

import pytest
import responses

from panindex.cloud139 import (
    BASE_URL,
    BATCH_TASK,
    DOWNLOAD_REQUEST,
    FAMILY_LIST,
    GET_DISK,
    UPLOAD_REQUEST,
    Cloud139,
)
from panindex.conf import FileType
from panindex.drivers import (
    Account,
    DriverError,
    EmptyFileError,
    NotSupportedError,
    PathNotFoundError,
    cache as shared_cache,
)
from panindex.sign139 import cal_sign


@dataclass
class _Stream:
    parent_path: str
    name: str
    size: int
    data: io.BytesIO

    def read(self, n=-1):
        return self.data.read(n)


@pytest.fixture(autouse=True)
def _clean_cache():
    shared_cache.clear()
    yield
    shared_cache.clear()


@pytest.fixture
def rsps():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as mock:
        yield mock


def _account(kind="Personal", name="yun"):
    return Account(
        name=name,
        username="user",
        access_token="token",
        root_folder="rootid",
        internal_type=kind,
        site_id="cloud1",
    )


def _disk(catalogs=(), contents=(), count=0):
    return {
        "success": True,
        "data": {
            "getDiskResult": {
                "nodeCount": count,
                "catalogList": list(catalogs),
                "contentList": list(contents),
            }
        },
    }


def _body(call):
    return json.loads(call.request.body)


def test_request_signs_body(rsps):
    rsps.add(responses.POST, BASE_URL + "/x", json={"success": True, "data": {"a": 1}})
    payload = Cloud139().request("/x", "POST", _account(), data={"b": 2})
    assert payload["data"] == {"a": 1}
    req = rsps.calls[0].request
    ts, rand, sign = req.headers["mcloud-sign"].split(",")
    assert len(rand) == 16
    assert cal_sign(req.body.decode("utf-8"), ts, rand) == sign
    assert req.headers["x-SvcType"] == "1"
    assert req.headers["Cookie"] == "token"


def test_request_family_service_type(rsps):
    rsps.add(responses.POST, BASE_URL + "/x", json={"success": True, "data": {"ok": 1}})
    payload = Cloud139().request("/x", "POST", _account("Family"), data={})
    assert payload["data"] == {"ok": 1}
    assert rsps.calls[0].request.headers["x-SvcType"] == "2"


def test_request_failure_raises_message(rsps):
    rsps.add(responses.POST, BASE_URL + "/x", json={"success": False, "message": "denied"})
    with pytest.raises(DriverError, match="denied"):
        Cloud139().post("/x", {}, _account())


def test_request_unsupported_method():
    with pytest.raises(NotSupportedError):
        Cloud139().request("/x", "TRACE", _account())


def test_get_files_pages(rsps):
    rsps.add(responses.POST, BASE_URL + GET_DISK, json=_disk(
        catalogs=[{"catalogID": "c1", "catalogName": "docs", "updateTime": "20220101120000"}],
        contents=[{"contentID": "f1", "contentName": "song.mp3", "contentSize": 5}],
        count=150,
    ))
    rsps.add(responses.POST, BASE_URL + GET_DISK, json=_disk(
        contents=[{"contentID": "f2", "contentName": "a.txt", "contentSize": 7}], count=150,
    ))
    files = Cloud139().get_files("rootid", _account())
    assert [f.name for f in files] == ["docs", "song.mp3", "a.txt"]
    assert files[0].type == FileType.FOLDER
    assert files[0].updated_at.year == 2022
    assert files[1].type == FileType.AUDIO
    assert files[2].size == 7
    assert len(rsps.calls) == 2
    assert _body(rsps.calls[1])["startNumber"] == 101


def test_family_get_files_single_page(rsps):
    rsps.add(responses.POST, BASE_URL + FAMILY_LIST, json={
        "success": True,
        "data": {
            "totalCount": 2,
            "cloudCatalogList": [{"catalogID": "c9", "catalogName": "album"}],
            "cloudContentList": [{"contentID": "p1", "contentName": "pic.png", "contentSize": 3}],
        },
    })
    files = Cloud139().family_get_files("rootid", _account("Family"))
    assert [f.id for f in files] == ["c9", "p1"]
    assert files[1].type == FileType.IMAGE
    body = _body(rsps.calls[0])
    assert body["cloudID"] == "cloud1"
    assert body["pageInfo"]["pageNum"] == 1


def test_file_root():
    root = Cloud139().file("/", _account())
    assert root.id == "rootid"
    assert root.is_dir()


def test_file_lookup_and_missing(rsps):
    rsps.add(responses.POST, BASE_URL + GET_DISK, json=_disk(
        contents=[{"contentID": "f1", "contentName": "a.txt", "contentSize": 1}], count=1,
    ))
    driver = Cloud139()
    assert driver.file("/a.txt", _account()).id == "f1"
    with pytest.raises(PathNotFoundError):
        driver.file("/b.txt", _account())
    assert len(rsps.calls) == 1


def test_link_returns_download_url(rsps):
    rsps.add(responses.POST, BASE_URL + GET_DISK, json=_disk(
        contents=[{"contentID": "f1", "contentName": "a.txt", "contentSize": 1}], count=1,
    ))
    rsps.add(responses.POST, BASE_URL + DOWNLOAD_REQUEST,
             json={"success": True, "data": {"downloadURL": "https://dl.example.com/a"}})
    link = Cloud139().link("/a.txt", _account())
    assert link.url == "https://dl.example.com/a"
    assert _body(rsps.calls[1])["contentID"] == "f1"


def test_move_family_not_supported():
    with pytest.raises(NotSupportedError):
        Cloud139().move("/a", "/b/a", _account("Family"))


def test_delete_folder_body(rsps):
    rsps.add(responses.POST, BASE_URL + GET_DISK, json=_disk(
        catalogs=[{"catalogID": "c1", "catalogName": "docs"}], count=1,
    ))
    rsps.add(responses.POST, BASE_URL + BATCH_TASK, json={"success": True})
    driver = Cloud139()
    account = _account()
    target = driver.file("/docs", account)
    assert target.id == "c1"
    assert target.is_dir()
    assert driver.delete("/docs", account) is None
    task = _body(rsps.calls[-1])["createBatchOprTaskReq"]
    assert task["taskInfo"]["catalogInfoList"] == ["c1"]
    assert task["taskInfo"]["contentInfoList"] is None
    assert task["actionType"] == 201


def test_upload_none():
    with pytest.raises(EmptyFileError):
        Cloud139().upload(None, _account())


def test_upload_family_not_supported():
    stream = _Stream("/", "a.txt", 5, io.BytesIO(b"hello"))
    with pytest.raises(NotSupportedError):
        Cloud139().upload(stream, _account("Family"))


def test_upload_sends_chunk(rsps):
    rsps.add(responses.POST, BASE_URL + UPLOAD_REQUEST, json={
        "success": True,
        "data": {"uploadResult": {"uploadTaskID": "t1", "redirectionUrl": "https://up.example.com/put"}},
    })
    rsps.add(responses.POST, "https://up.example.com/put", body="ok")
    stream = _Stream("/", "a.txt", 5, io.BytesIO(b"hello"))
    assert Cloud139().upload(stream, _account()) is None
    put = rsps.calls[1].request
    assert put.body == b"hello"
    assert put.headers["range"] == "bytes=0-4"
    assert put.headers["uploadtaskID"] == "t1"
    assert _body(rsps.calls[0])["parentCatalogID"] == "rootid"


def test_config_name():
    assert Cloud139().config().name == "139Yun"