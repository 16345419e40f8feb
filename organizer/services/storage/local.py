"""
Local Durable Key-Value Stores

JsonFileStore keeps one file per key inside a data directory.
Writes go to a temporary file in the same directory, are fsync'ed, then
renamed over the target with os.replace. A crash leaves either the old
file or the new one.

MemoryKeyValueStore is the in-process equivalent used by tests.
"""

import contextlib
import os
import re
import tempfile
from pathlib import Path
from typing import Optional

import structlog

from organizer.services.storage.interface import (
    KeyValueStoreInterface,
    LocalStoreError,
)


logger = structlog.get_logger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class JsonFileStore(KeyValueStoreInterface):
    """
    File-backed key-value store.

    Each key maps to <data_dir>/<sanitized key>.json.
    """

    def __init__(self, data_dir: Path, encoding: str = "utf-8"):
        self._data_dir = Path(data_dir)
        self._encoding = encoding

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def path_for(self, key: str) -> Path:
        """File path backing a key."""
        return self._data_dir / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def get(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        try:
            return path.read_text(encoding=self._encoding)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise LocalStoreError(f"Failed to read {path}: {e}")

    def set(self, key: str, value: str) -> None:
        path = self.path_for(key)
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path_str = tempfile.mkstemp(
                dir=str(self._data_dir),
                prefix=".tmp_",
                suffix=".json",
            )
        except OSError as e:
            raise LocalStoreError(f"Failed to prepare write for {path}: {e}")

        tmp_path = Path(tmp_path_str)
        try:
            with os.fdopen(fd, "w", encoding=self._encoding) as f:
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as e:
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise LocalStoreError(f"Failed to write {path}: {e}")

        logger.debug("local_store_written", key=key, bytes=len(value))

    def delete(self, key: str) -> bool:
        path = self.path_for(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise LocalStoreError(f"Failed to delete {path}: {e}")


class MemoryKeyValueStore(KeyValueStoreInterface):
    """In-memory key-value store. Survives nothing but is handy for tests."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> bool:
        return self._values.pop(key, None) is not None

    def keys(self) -> list[str]:
        return sorted(self._values)
