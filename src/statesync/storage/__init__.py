"""Key-value storage backends for the persistence layer.

Any object with ``get_item``/``set_item``/``remove_item`` satisfies
:class:`StorageAdapter`; the three shipped variants are interchangeable.
"""

from statesync.storage.base import StorageAdapter
from statesync.storage.local import LocalStorageAdapter
from statesync.storage.memory import MemoryStorageAdapter
from statesync.storage.session import SessionStorageAdapter

__all__ = [
    "LocalStorageAdapter",
    "MemoryStorageAdapter",
    "SessionStorageAdapter",
    "StorageAdapter",
]
