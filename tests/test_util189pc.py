import base64
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import pytest
from cryptography.hazmat.primitives import padding as sym_padding
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from panindex.drivers import Account
from panindex.util189pc import (
    BatchTaskInfo,
    CreateUploadFileResult,
    Cloud189PCFile,
    FamilyInfo,
    UploadFileStatusResult,
    aes_ecb_encrypt,
    base64_to_hex,
    bool_to_number,
    client_suffix,
    decode_uri_component,
    http_date,
    is_family,
    pkcs7_padding,
    rsa_encrypt,
    signature_of_hmac,
    timestamp,
    to_family_order_by,
)


def test_decode_uri_component_source_case():
    encoded = (
        "/ali/%E7%8C%AA%E5%A4%B4%E7%9A%84%E6%96%87%E4%BB%B6%5B%E5%98%BF%E5%98%BF%5D/"
        "%E9%82%B9%E9%82%B9%E7%9A%84%E6%96%87%E4%BB%B6/%E6%A1%8C%E9%9D%A2%E5%A3%81%E7%BA%B8/"
        "v2-e8f266ba17ae387eefed1cb22b2b5e4e_r.jpg"
    )
    assert decode_uri_component(encoded) == (
        "/ali/猪头的文件[嘿嘿]/邹邹的文件/桌面壁纸/v2-e8f266ba17ae387eefed1cb22b2b5e4e_r.jpg"
    )


def test_decode_uri_component_plus_is_space():
    assert decode_uri_component("a+b%26c") == "a b&c"


@pytest.mark.parametrize("text", ["%zz", "abc%", "%4"])
def test_decode_uri_component_bad_escape(text):
    assert decode_uri_component(text) == ""


def test_client_suffix():
    suffix = client_suffix()
    assert suffix["clientType"] == "TELEPC"
    assert suffix["version"] == "6.2"
    assert suffix["channelId"] == "web_cloud.189.cn"
    assert re.fullmatch(r"[0-9]+_[0-9]+", suffix["rand"])


def test_signature_shape():
    sig = signature_of_hmac("secret", "key", "GET", "https://api.cloud.189.cn/listFiles.action", "date")
    assert len(sig) == 40
    assert set(sig) <= set("0123456789ABCDEF")


def test_signature_uses_path_only():
    a = signature_of_hmac("secret", "key", "GET", "https://api.cloud.189.cn/a?x=1", "date")
    b = signature_of_hmac("secret", "key", "GET", "https://other.example.com/a", "date")
    assert a == b


def test_signature_depends_on_param_and_secret():
    base = signature_of_hmac("secret", "key", "GET", "https://h/a", "date")
    assert signature_of_hmac("secret", "key", "GET", "https://h/a", "date", "p") != base
    assert signature_of_hmac("token", "key", "GET", "https://h/a", "date") != base


def test_http_date_format():
    text = http_date()
    assert text.endswith(" GMT")
    parsed = parsedate_to_datetime(text)
    assert abs((datetime.now(timezone.utc) - parsed).total_seconds()) < 60


def test_pkcs7_padding():
    assert pkcs7_padding(b"abc", 4) == b"abc\x01"
    assert pkcs7_padding(b"", 16) == b"\x10" * 16
    assert pkcs7_padding(b"abcd", 4) == b"abcd\x04\x04\x04\x04"


def test_aes_ecb_round_trip():
    key = "0123456789abcdef"
    out = aes_ecb_encrypt("fileName=a.txt&size=3", key)
    assert out == out.upper()
    decryptor = Cipher(algorithms.AES(key.encode()), modes.ECB()).decryptor()
    padded = decryptor.update(bytes.fromhex(out)) + decryptor.finalize()
    unpadder = sym_padding.PKCS7(128).unpadder()
    assert unpadder.update(padded) + unpadder.finalize() == b"fileName=a.txt&size=3"


def test_aes_ecb_bad_key():
    with pytest.raises(ValueError):
        aes_ecb_encrypt("data", "short")


def test_rsa_encrypt_round_trip():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    pem = private_key.public_key().public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode()
    out = rsa_encrypt(pem, "user")
    assert re.fullmatch(r"[0-9A-F]{512}", out)
    assert private_key.decrypt(bytes.fromhex(out), padding.PKCS1v15()) == b"user"


def test_base64_to_hex():
    assert base64_to_hex("AQID") == "010203"
    assert base64_to_hex(base64.b64encode(b"\xff\xee").decode()) == "FFEE"


def test_base64_to_hex_invalid():
    with pytest.raises(ValueError):
        base64_to_hex("!!!")


def test_timestamp_is_milliseconds():
    assert timestamp() > 1_600_000_000_000


def test_is_family():
    assert is_family(Account(internal_type="Family"))
    assert not is_family(Account(internal_type="Personal"))


@pytest.mark.parametrize(
    "order,code",
    [("filename", "1"), ("filesize", "2"), ("lastOpTime", "3"), ("other", "1"), ("", "1")],
)
def test_to_family_order_by(order, code):
    assert to_family_order_by(order) == code


def test_bool_to_number():
    assert bool_to_number(True) == 1
    assert bool_to_number(False) == 0


def test_batch_task_info_to_dict():
    info = BatchTaskInfo("42", "a.txt", bool_to_number(True))
    assert info.to_dict() == {"fileId": "42", "fileName": "a.txt", "isFolder": 1}


def test_records_from_dict():
    family = FamilyInfo.from_dict({"familyId": 7, "remarkName": "home"})
    assert (family.family_id, family.remark_name) == (7, "home")
    f = Cloud189PCFile.from_dict({"id": 3, "name": "a.mp4", "size": 9, "icon": {"smallUrl": "s"}})
    assert (f.id, f.name, f.size, f.small_url) == (3, "a.mp4", 9, "s")
    created = CreateUploadFileResult.from_dict({"uploadFileId": 5, "fileDataExists": 1})
    assert (created.upload_file_id, created.file_data_exists) == (5, 1)
    status = UploadFileStatusResult.from_dict({"uploadFileId": 5, "dataSize": 100})
    assert status.data_size == 100
    assert status.file_commit_url == ""