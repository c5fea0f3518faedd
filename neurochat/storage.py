"""Key-value persistence for the conversation store. One small file per key."""

import os
from typing import Protocol

from neurochat.globals import CACHE_DIR


class KeyValueCache(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class FileCache:
    """Stores each key as <directory>/<key>.json"""

    def __init__(self, directory: str = CACHE_DIR):
        self.directory = directory
        os.makedirs(self.directory, exist_ok=True)

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.json")

    def get(self, key: str) -> str | None:
        try:
            with open(self._path(key), "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None

    def set(self, key: str, value: str):
        # Write then rename, so a crash mid-write leaves the old value intact
        path = self._path(key)
        tmp = f"{path}.tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(value)
        os.replace(tmp, path)

    def remove(self, key: str):
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass


class MemoryCache:
    """Dict-backed cache, for tests and throwaway runs."""

    def __init__(self, data: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(data or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str):
        self.data[key] = value

    def remove(self, key: str):
        self.data.pop(key, None)
