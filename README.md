# panindex

`panindex` provides the parts of a file index that sits in front of cloud
drives. It includes the server configuration, the site settings, a common
storage driver interface, two drivers and the signing and encryption helpers
those services need.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Configuration (`panindex.conf`)

`load_config(path, docker=False, environ=None)` reads a JSON configuration
file. It works in these steps:

1. If the file does not exist, it creates the parent directories and starts
   from `default_config()`.
2. It writes the file back in full, so the file holds every current field.
3. Unless `force` is true, it overrides values from environment variables.
   The names start with `PANINDEX_`, or have no prefix when `docker` is true.
   Examples are `PANINDEX_PORT`, `PANINDEX_DB_TYPE` and
   `PANINDEX_CACHE_EXPIRATION`. `environ` defaults to `os.environ`.
4. It creates the temporary directory, `temp_dir`.

If a value has the wrong type, either in the file or in an environment
variable, it raises `ValueError`.

```python
from panindex.conf import default_config, load_config

config = load_config("data/config.json", environ={"PANINDEX_PORT": "8080"})
print(config.port, config.database.type)      # 8080 sqlite3
print(default_config().to_dict()["temp_dir"])  # data/temp
```

`Config` holds the nested `DatabaseConfig`, `SchemeConfig` and `CacheConfig`.
It round-trips through `to_dict()` and `Config.from_dict(data)`.
`apply_env(config, prefix, environ)` returns an updated copy of a config.

`file_type_of(".mp4")` maps an extension to a `FileType`. The types are
`OFFICE`, `VIDEO`, `AUDIO`, `TEXT`, `IMAGE` and `UNKNOWN`, and the match
ignores case and a leading dot.

`SettingsMap` stores string settings and reads them back typed:

- `get_str(key)` returns `""` when the key is missing.
- `get_bool(key)` is true only for `"true"`.
- `get_int(key, default)` returns `default` when the key is missing or the value is not an integer.

## Settings (`panindex.settings`)

- `default_settings(version)` returns the built-in `SettingItem` list: title, logo, file-type lists, WebDAV users and so on. Each call generates new random passwords with `random_str(8)`.
- `merge_settings(stored, version)` keeps every value already present in the `stored` mapping.
- `load_settings(items, settings_map=None)` copies the settings read at run time into a `SettingsMap`.

## Drivers (`panindex.drivers`)

Every driver subclasses `Driver` and registers itself by name when its module
is imported:

| Driver name | Module               |
|-------------|----------------------|
| `Alist`     | `panindex.alist`     |
| `139Yun`    | `panindex.cloud139`  |

```python
import panindex.alist  # registers "Alist"
from panindex.drivers import Account, get_driver

account = Account(name="mirror", type="Alist",
                  site_url="https://alist.example.com", access_token="token")
driver = get_driver("Alist")
driver.save(account, None)           # checks the token; sets account.status
file, listing = driver.path("/", account)
link = driver.link("/docs/readme.txt", account, "127.0.0.1")
```

### Operations

Drivers provide `file`, `files`, `path`, `link`, `preview`, `make_dir`,
`move`, `rename`, `copy`, `delete` and `upload`. `path` returns
`(file, None)` for a file and `(None, entries)` for a folder.

### Errors

The errors derive from `DriverError`:

- `NotSupportedError` is raised for an operation the service does not offer.
- `PathNotFoundError` is raised for a path that cannot be resolved.
- `NotFolderError` and `NotFileError` are raised when an entry has the wrong kind.
- `EmptyFileError` is raised when `upload` gets no stream.

### Caching and capabilities

Listings are cached per account and path in a `DirectoryCache`, which expires
entries after one hour by default. `capabilities()` returns two
comma-separated lists: the drivers that do not allow CORS, and the upload
targets that do not support uploading. The second list ends with `root`.

### Alist driver

`AlistDriver` reads from a remote server's public API with an admin token. It
only reads and creates links; the other operations raise `NotSupportedError`.
The `sign` parameter of a link comes from an optional `signer` callable, and is
empty when no signer is given.

### 139Yun driver

`Cloud139` signs its requests with a cookie and covers personal and family
spaces. It supports the following operations:

- Personal spaces: listing, links, folder creation, move, rename, copy, delete and chunked upload.
- Family spaces: listing, folder creation and delete.

Move, rename, copy and upload raise `NotSupportedError` in a family space.

### Helpers

The request signing and encryption helpers are in `panindex.sign139`,
`panindex.util189` and `panindex.util189pc`. There is no driver in the package
that uses the two 189 helper modules.

## What the package does not do

- It has no HTTP server, no web front end and no command-line program.
- It has no database. Accounts, stored settings and driver state are plain objects that the caller keeps and saves.
- It includes only the two drivers listed above.