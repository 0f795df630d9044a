"""
Local Key-Value Stores

Two backends that need no credentials:

- InMemoryKeyValueStore: a dict, used in tests and when nothing should
  outlive the process.
- JsonFileKeyValueStore: one `<key>.json` file per key in a data
  directory; the desktop counterpart of the browser's localStorage.
"""

import os
import re
import tempfile
from pathlib import Path
from typing import Optional

from finance_tracker.services.storage.interface import (
    KeyValueStoreInterface,
    StorageError,
)


_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class InMemoryKeyValueStore(KeyValueStoreInterface):
    """Dict-backed store."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileKeyValueStore(KeyValueStoreInterface):
    """
    File-backed store, one file per key.

    Writes go to a temporary file that is renamed over the target,
    so a crash mid-write leaves the previous value intact.
    """

    def __init__(self, data_dir: Path):
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _path_for(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self._data_dir / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}")

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._data_dir, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                    tmp.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}")

    def delete(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}")
