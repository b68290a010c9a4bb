"""Dot-notation path resolution over nested state trees.

A path such as ``"todos.1.completed"`` addresses a value inside a tree of
mappings and sequences; numeric segments index into sequences. Reads never
raise: an unresolvable path yields :data:`MISSING`. Writes never mutate the
input tree; every container along the written path is copied and untouched
siblings are shared with the original.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Final

from statesync.exceptions import StatePathError

PathLike = str | Sequence[str | int]


class _Missing:
    """Sentinel type for "no value at this path"."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Final = _Missing()


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def _as_index(segment: str) -> int | None:
    if segment.isascii() and segment.isdigit():
        return int(segment)
    return None


def split_path(path: PathLike) -> tuple[str, ...]:
    """Split *path* into its segments (``""`` is the empty path)."""
    if isinstance(path, str):
        return tuple(path.split(".")) if path else ()
    return tuple(str(segment) for segment in path)


def join_path(segments: Sequence[str]) -> str:
    return ".".join(segments)


def top_level_key(path: PathLike) -> str:
    """Return the first segment of *path*: the top-level key a write touches."""
    segments = split_path(path)
    if not segments:
        raise StatePathError("empty path has no top-level key", path="")
    return segments[0]


def _step(node: Any, segment: str) -> Any:
    if isinstance(node, Mapping):
        return node[segment] if segment in node else MISSING
    if _is_sequence(node):
        index = _as_index(segment)
        if index is None or index >= len(node):
            return MISSING
        return node[index]
    return MISSING


def get_path(tree: Any, path: PathLike) -> Any:
    """Return the value at *path* inside *tree*, or :data:`MISSING`.

    The empty path returns *tree* itself. Walking through a primitive, an
    absent key or an out-of-range index is not an error.
    """
    node = tree
    for segment in split_path(path):
        node = _step(node, segment)
        if node is MISSING:
            return MISSING
    return node


def has_path(tree: Any, path: PathLike) -> bool:
    return get_path(tree, path) is not MISSING


def _assign(node: Any, segments: tuple[str, ...], value: Any, path: str) -> Any:
    head, rest = segments[0], segments[1:]

    if _is_sequence(node):
        index = _as_index(head)
        if index is None:
            raise StatePathError(f"cannot write non-numeric segment {head!r} into a sequence", path=path)
        items = list(node)
        if index >= len(items):
            # Sparse writes pad with JSON null.
            items.extend([None] * (index + 1 - len(items)))
        items[index] = _assign(items[index], rest, value, path) if rest else value
        return items

    container = dict(node) if isinstance(node, Mapping) else {}
    container[head] = _assign(container.get(head, MISSING), rest, value, path) if rest else value
    return container


def set_path(tree: Mapping[str, Any], path: PathLike, value: Any) -> dict[str, Any]:
    """Return a new tree equal to *tree* with *value* written at *path*.

    Missing or primitive intermediates are replaced by new mappings.

    Raises
    ------
    StatePathError
        If *path* is empty or routes a non-numeric segment into a sequence.
    """
    segments = split_path(path)
    label = join_path(segments)
    if not segments:
        raise StatePathError("cannot write to the empty path", path=label)
    result: dict[str, Any] = _assign(tree, segments, value, label)
    return result


def _merge_value(existing: Any, value: Any, merge_sequences: bool) -> Any:
    if isinstance(existing, Mapping) and isinstance(value, Mapping):
        return deep_merge(existing, value, merge_sequences=merge_sequences)
    if merge_sequences and _is_sequence(existing) and _is_sequence(value):
        items = list(existing)
        for index, item in enumerate(value):
            if index >= len(items):
                items.append(item)
            elif item is not None:
                # None is a hole left by a sparse selection; keep the base entry.
                items[index] = _merge_value(items[index], item, merge_sequences)
        return items
    return value


def deep_merge(
    base: Mapping[str, Any],
    overlay: Mapping[str, Any],
    *,
    merge_sequences: bool = False,
) -> dict[str, Any]:
    """Merge *overlay* into a copy of *base*.

    Nested mappings present on both sides are merged recursively; any other
    value in *overlay* replaces the one in *base*. With *merge_sequences*,
    sequences on both sides are merged index by index as well, and a
    ``None`` entry in the overlay keeps the base entry at that index.
    """
    result = dict(base)
    for key, value in overlay.items():
        result[key] = _merge_value(result.get(key, MISSING), value, merge_sequences)
    return result


def _graft(target: Any, source: Any, segments: tuple[str, ...], value: Any) -> Any:
    head, rest = segments[0], segments[1:]
    child = _step(source, head)

    if _is_sequence(source):
        index = _as_index(head)
        assert index is not None  # noqa: S101
        items = list(target) if _is_sequence(target) else []
        if index >= len(items):
            items.extend([None] * (index + 1 - len(items)))
        items[index] = _graft(items[index], child, rest, value) if rest else value
        return items

    container = dict(target) if isinstance(target, Mapping) else {}
    container[head] = _graft(container.get(head, MISSING), child, rest, value) if rest else value
    return container


def select_paths(tree: Mapping[str, Any], paths: Sequence[str]) -> dict[str, Any]:
    """Build a fresh tree holding only the values addressed by *paths*.

    Each value is written back at its nested location and nothing else is
    copied: siblings of a selected nested key are omitted, including
    entries of a sequence the path walks through. Sequences on the way stay
    sequences; indices before the selected one are padded with ``None``.
    Paths that do not resolve are skipped.
    """
    selected: dict[str, Any] = {}
    for path in paths:
        segments = split_path(path)
        if not segments:
            continue
        value = get_path(tree, segments)
        if value is MISSING:
            continue
        selected = _graft(selected, tree, segments, value)
    return selected
