"""In-memory storage adapter for tests and non-persistent hosts."""

from __future__ import annotations

from statesync.exceptions import StorageQuotaExceededError


class MemoryStorageAdapter:
    """Dictionary-backed adapter.

    Parameters
    ----------
    max_bytes : int or None
        Optional quota on the total UTF-8 size of all stored keys and
        values. A write that would exceed it raises
        :class:`~statesync.exceptions.StorageQuotaExceededError` and
        leaves the store unchanged.
    """

    def __init__(self, *, max_bytes: int | None = None) -> None:
        self._items: dict[str, str] = {}
        self._max_bytes = max_bytes

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self._max_bytes is not None:
            current = self.size_bytes() - self._entry_size(key, self._items.get(key))
            projected = current + self._entry_size(key, value)
            if projected > self._max_bytes:
                raise StorageQuotaExceededError(
                    f"storing {key!r} needs {projected} bytes, quota is {self._max_bytes}",
                    key=key,
                    limit=self._max_bytes,
                )
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)

    def size_bytes(self) -> int:
        return sum(self._entry_size(k, v) for k, v in self._items.items())

    @staticmethod
    def _entry_size(key: str, value: str | None) -> int:
        if value is None:
            return 0
        return len(key.encode("utf-8")) + len(value.encode("utf-8"))

    def __repr__(self) -> str:
        return f"MemoryStorageAdapter(keys={len(self._items)})"
