"""
Durable key-value storage for client state.

Works like a browser's localStorage: string keys, string (JSON) values, one
file per key under a directory. A write replaces the file atomically, so a
reader sees either the old or the new value. Two processes writing the same
key do not merge; the last write wins.
"""
import os
import re
import tempfile
from typing import List, Optional

import structlog

logger = structlog.get_logger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")
_SUFFIX = ".json"


class LocalStorage:
    def __init__(self, directory: str):
        self.directory = directory
        os.makedirs(directory, exist_ok=True)

    def _path(self, key: str) -> str:
        if not _KEY_RE.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return os.path.join(self.directory, key + _SUFFIX)

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            with open(path, "r", encoding="utf-8") as fh:
                return fh.read()
        except FileNotFoundError:
            return None

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.debug("storage.write", key=key, size=len(value))

    def remove_item(self, key: str) -> None:
        try:
            os.unlink(self._path(key))
        except FileNotFoundError:
            pass

    def keys(self) -> List[str]:
        return sorted(
            name[: -len(_SUFFIX)]
            for name in os.listdir(self.directory)
            if name.endswith(_SUFFIX) and not name.startswith(".")
        )

    def clear(self) -> None:
        for key in self.keys():
            self.remove_item(key)
