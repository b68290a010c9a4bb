"""statesync - client state container with path-scoped subscriptions and selective persistence."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("statesync")
except PackageNotFoundError:
    __version__ = "0+local"
from statesync.binding import StateBinding, StateObserver
from statesync.config import StateSyncConfig
from statesync.container import StateContainer
from statesync.events import ChangeEmitter, ChangeKind, StateChange
from statesync.exceptions import (
    InvalidCallbackError,
    StateConfigError,
    StatePathError,
    StateSyncError,
    StorageError,
    StorageQuotaExceededError,
)
from statesync.middleware import MiddlewareManager, MiddlewareStage, logging_middleware
from statesync.paths import MISSING
from statesync.persistence import PersistenceManager, default_adapter
from statesync.storage import LocalStorageAdapter, MemoryStorageAdapter, SessionStorageAdapter, StorageAdapter
from statesync.subscriptions import SubscriptionHandle, SubscriptionRegistry

__all__ = [
    "__version__",
    "MISSING",
    "ChangeEmitter",
    "ChangeKind",
    "InvalidCallbackError",
    "LocalStorageAdapter",
    "MemoryStorageAdapter",
    "MiddlewareManager",
    "MiddlewareStage",
    "PersistenceManager",
    "SessionStorageAdapter",
    "StateBinding",
    "StateChange",
    "StateConfigError",
    "StateContainer",
    "StateObserver",
    "StatePathError",
    "StateSyncConfig",
    "StateSyncError",
    "StorageAdapter",
    "StorageError",
    "StorageQuotaExceededError",
    "SubscriptionHandle",
    "SubscriptionRegistry",
    "default_adapter",
    "logging_middleware",
]
