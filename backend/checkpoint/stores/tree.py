"""Path helpers and a local mirror of a realtime database subtree."""

from __future__ import annotations

import copy
from typing import Any, Mapping


def split_path(path: str) -> list[str]:
    return [segment for segment in (path or "").split("/") if segment]


def join_path(*parts: str) -> str:
    segments: list[str] = []
    for part in parts:
        segments.extend(split_path(part))
    return "/".join(segments)


def get_at(root: Any, segments: list[str]) -> Any:
    node = root
    for segment in segments:
        if not isinstance(node, dict) or segment not in node:
            return None
        node = node[segment]
    return node


def set_at(root: Any, segments: list[str], value: Any) -> Any:
    """Return ``root`` with ``value`` written at ``segments``; None deletes.

    Empty mappings are pruned, matching how the realtime database drops
    childless nodes.
    """
    if not segments:
        return _prune(copy.deepcopy(value))
    node = root if isinstance(root, dict) else {}
    head, rest = segments[0], segments[1:]
    child = set_at(node.get(head), rest, value)
    if child is None:
        node.pop(head, None)
    else:
        node[head] = child
    return node or None


def merge_at(root: Any, segments: list[str], values: Mapping[str, Any]) -> Any:
    for key, value in values.items():
        root = set_at(root, segments + split_path(key), value)
    return root


def _prune(value: Any) -> Any:
    if isinstance(value, dict):
        pruned = {}
        for key, child in value.items():
            child = _prune(child)
            if child is not None:
                pruned[key] = child
        return pruned or None
    return value


class SnapshotTree:
    """Folds streamed ``put``/``patch`` events into a full snapshot of one path."""

    def __init__(self) -> None:
        self.value: Any = None

    def apply(self, event_type: str, path: str, data: Any) -> Any:
        segments = split_path(path)
        if event_type == "put":
            self.value = set_at(self.value, segments, data)
        elif event_type == "patch":
            self.value = merge_at(self.value, segments, data or {})
        else:
            raise ValueError(f"Unsupported event type: {event_type!r}")
        return self.snapshot()

    def snapshot(self) -> Any:
        return copy.deepcopy(self.value)
