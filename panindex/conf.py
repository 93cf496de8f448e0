"""Server configuration, file-type tables and the runtime settings map."""

from __future__ import annotations

import copy
import json
import os
import re
from dataclasses import dataclass, field, fields, is_dataclass
from enum import IntEnum
from pathlib import Path
from typing import Any, Mapping

ENV_PREFIX = "PANINDEX_"
GIT_TAG = "dev"
DEFAULT_CONFIG_FILE = "data/config.json"


class FileType(IntEnum):
    """Kind of an entry as shown to clients."""

    UNKNOWN = 0
    FOLDER = 1
    OFFICE = 2
    VIDEO = 3
    AUDIO = 4
    TEXT = 5
    IMAGE = 6


TEXT_TYPES = (
    "txt", "htm", "html", "xml", "java", "properties", "sql",
    "js", "md", "json", "conf", "ini", "vue", "php", "py", "bat", "gitignore", "yml",
    "go", "sh", "c", "cpp", "h", "hpp", "tsx", "vtt", "srt", "ass",
)
D_PROXY_TYPES = ("m3u8",)
OFFICE_TYPES = ("doc", "docx", "xls", "xlsx", "ppt", "pptx", "pdf")
VIDEO_TYPES = ("mp4", "mkv", "avi", "mov", "rmvb", "webm", "flv")
AUDIO_TYPES = ("mp3", "flac", "ogg", "m4a", "wav", "opus")
IMAGE_TYPES = ("jpg", "tiff", "jpeg", "png", "gif", "bmp", "svg", "ico", "swf", "webp")

LOAD_SETTINGS = (
    "check parent folder", "check down link", "WebDAV username", "WebDAV password",
    "Visitor WebDAV username", "Visitor WebDAV password",
    "default page size", "load type",
    "ocr api", "favicon",
)

_TYPE_TABLES = (
    (FileType.OFFICE, OFFICE_TYPES),
    (FileType.VIDEO, VIDEO_TYPES),
    (FileType.AUDIO, AUDIO_TYPES),
    (FileType.TEXT, TEXT_TYPES),
    (FileType.IMAGE, IMAGE_TYPES),
)


def file_type_of(ext: str) -> FileType:
    """Classify a file by its extension, with or without the leading dot."""
    ext = ext.lower().lstrip(".")
    for kind, table in _TYPE_TABLES:
        if ext in table:
            return kind
    return FileType.UNKNOWN


def _meta(json_name: str, env: str | None = None) -> dict[str, str | None]:
    return {"json": json_name, "env": env}


_LOGIN_META = _meta("password", "DB_PASS")


@dataclass
class DatabaseConfig:
    type: str = field(default="sqlite3", metadata=_meta("type", "DB_TYPE"))
    host: str = field(default="", metadata=_meta("host", "DB_HOST"))
    port: int = field(default=0, metadata=_meta("port", "DB_PORT"))
    user: str = field(default="", metadata=_meta("user", "DB_USER"))
    password: str = field(default_factory=str, metadata=_LOGIN_META)
    name: str = field(default="", metadata=_meta("name", "DB_NAME"))
    db_file: str = field(default="data/data.db", metadata=_meta("db_file", "DB_FILE"))
    table_prefix: str = field(default="x_", metadata=_meta("table_prefix", "DB_TABLE_PREFIX"))
    ssl_mode: str = field(default="", metadata=_meta("ssl_mode", "DB_SLL_MODE"))


@dataclass
class SchemeConfig:
    https: bool = field(default=False, metadata=_meta("https", "HTTPS"))
    cert_file: str = field(default="", metadata=_meta("cert_file", "CERT_FILE"))
    key_file: str = field(default="", metadata=_meta("key_file", "KEY_FILE"))


@dataclass
class CacheConfig:
    expiration: int = field(default=60, metadata=_meta("expiration", "CACHE_EXPIRATION"))
    cleanup_interval: int = field(default=120, metadata=_meta("cleanup_interval", "CLEANUP_INTERVAL"))


@dataclass
class Config:
    force: bool = field(default=False, metadata=_meta("force"))
    address: str = field(default="0.0.0.0", metadata=_meta("address", "ADDR"))
    port: int = field(default=5244, metadata=_meta("port", "PORT"))
    assets: str = field(default="/", metadata=_meta("assets", "ASSETS"))
    database: DatabaseConfig = field(default_factory=DatabaseConfig, metadata=_meta("database"))
    scheme: SchemeConfig = field(default_factory=SchemeConfig, metadata=_meta("scheme"))
    cache: CacheConfig = field(default_factory=CacheConfig, metadata=_meta("cache"))
    temp_dir: str = field(default="data/temp", metadata=_meta("temp_dir", "TEMP_DIR"))

    def to_dict(self) -> dict[str, Any]:
        """Return the configuration as JSON-ready data, in declaration order."""
        return _to_dict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Config":
        """Build a configuration from defaults overlaid with ``data``."""
        config = cls()
        _overlay(config, data, "")
        return config


def default_config() -> Config:
    """Return a configuration holding the built-in defaults."""
    return Config()


def _to_dict(obj: Any) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        out[f.metadata["json"]] = _to_dict(value) if is_dataclass(value) else value
    return out


def _coerce(value: Any, current: Any, where: str) -> Any:
    if isinstance(current, bool):
        ok = isinstance(value, bool)
    elif isinstance(current, int):
        ok = isinstance(value, int) and not isinstance(value, bool)
    else:
        ok = isinstance(value, str)
    if not ok:
        raise ValueError(f"cannot load {value!r} into field {where}")
    return value


def _overlay(obj: Any, data: Any, prefix: str) -> None:
    if not isinstance(data, Mapping):
        raise ValueError(f"expected an object for {prefix or 'config'}")
    for f in fields(obj):
        key = f.metadata["json"]
        if key not in data or data[key] is None:
            continue
        current = getattr(obj, f.name)
        where = prefix + key
        if is_dataclass(current):
            _overlay(current, data[key], where + ".")
        else:
            setattr(obj, f.name, _coerce(data[key], current, where))


_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}
_INT = re.compile(r"[+-]?[0-9]+")


def _parse_bool(raw: str, name: str) -> bool:
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ValueError(f"env {name}: invalid bool {raw!r}")


def _parse_int(raw: str, name: str) -> int:
    if not _INT.fullmatch(raw):
        raise ValueError(f"env {name}: invalid integer {raw!r}")
    return int(raw)


def _apply_env(obj: Any, prefix: str, environ: Mapping[str, str]) -> None:
    for f in fields(obj):
        current = getattr(obj, f.name)
        if is_dataclass(current):
            _apply_env(current, prefix, environ)
            continue
        env = f.metadata.get("env")
        if not env:
            continue
        name = prefix + env
        raw = environ.get(name, "")
        if raw == "":
            continue
        if isinstance(current, bool):
            setattr(obj, f.name, _parse_bool(raw, name))
        elif isinstance(current, int):
            setattr(obj, f.name, _parse_int(raw, name))
        else:
            setattr(obj, f.name, raw)


def apply_env(config: Config, prefix: str = ENV_PREFIX, environ: Mapping[str, str] | None = None) -> Config:
    """Return a copy of ``config`` with values taken from environment variables."""
    result = copy.deepcopy(config)
    _apply_env(result, prefix, os.environ if environ is None else environ)
    return result


def load_config(
    path: str | os.PathLike[str] = DEFAULT_CONFIG_FILE,
    docker: bool = False,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """Read (or create) the config file, rewrite it in full and apply the environment."""
    path = Path(path)
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        config = default_config()
    else:
        config = Config.from_dict(json.loads(path.read_text(encoding="utf-8")))
    path.write_text(json.dumps(config.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    if not config.force:
        config = apply_env(config, "" if docker else ENV_PREFIX, environ)
    Path(config.temp_dir).mkdir(mode=0o700, parents=True, exist_ok=True)
    return config


class SettingsMap:
    """String settings loaded at runtime, with typed accessors."""

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(values or {})

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def get_str(self, key: str) -> str:
        return self._values.get(key, "")

    def get_bool(self, key: str) -> bool:
        return self._values.get(key) == "true"

    def get_int(self, key: str, default: int) -> int:
        value = self._values.get(key)
        if value is None or not _INT.fullmatch(value):
            return default
        return int(value)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)