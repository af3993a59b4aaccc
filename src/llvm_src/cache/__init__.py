"""Content-addressed cache layout, keys, and locking."""

from .keys import config_key, config_payload, short_key
from .layout import CacheLayout, revision_dirname
from .lock import CacheLock

__all__ = [
    "CacheLayout",
    "CacheLock",
    "config_key",
    "config_payload",
    "revision_dirname",
    "short_key",
]
