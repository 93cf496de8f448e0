"""Configuration, settings, storage drivers and service helpers for a cloud drive file index."""

__version__ = "0.1.0"

__all__ = [
    "conf",
    "settings",
    "drivers",
    "sign139",
    "util189pc",
    "util189",
    "alist",
    "cloud139",
]