"""Durable, directory-backed storage adapter.

The Python-host counterpart of browser local storage: each key is one
UTF-8 file inside a directory, written atomically via a temporary file and
``os.replace`` so a crash mid-write never leaves a truncated value behind.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from urllib.parse import quote, unquote

from statesync.exceptions import StorageError

_logger = logging.getLogger(__name__)

_SUFFIX = ".state"
DEFAULT_STORAGE_DIR = Path.home() / ".statesync"


class LocalStorageAdapter:
    """Store values as files under *directory* (created on first write).

    Keys are percent-encoded into file names, so any string is a valid
    key. I/O failures surface as :class:`~statesync.exceptions.StorageError`.
    """

    def __init__(self, directory: str | os.PathLike[str] | None = None) -> None:
        self._directory = Path(directory) if directory is not None else DEFAULT_STORAGE_DIR

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, key: str) -> Path:
        return self._directory / f"{quote(key, safe='')}{_SUFFIX}"

    def get_item(self, key: str) -> str | None:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"failed to read {path}: {exc}", key=key) from exc

    def set_item(self, key: str, value: str) -> None:
        path = self._path_for(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=".tmp-", suffix=_SUFFIX)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(f"failed to write {path}: {exc}", key=key) from exc
        _logger.debug("Stored key=%s (%d chars) in %s", key, len(value), self._directory)

    def remove_item(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"failed to remove {path}: {exc}", key=key) from exc

    def keys(self) -> list[str]:
        """Return every key currently stored in the directory."""
        if not self._directory.is_dir():
            return []
        return sorted(
            unquote(entry.name[: -len(_SUFFIX)])
            for entry in self._directory.iterdir()
            if entry.is_file() and entry.name.endswith(_SUFFIX) and not entry.name.startswith(".tmp-")
        )

    def __repr__(self) -> str:
        return f"LocalStorageAdapter(directory={str(self._directory)!r})"
