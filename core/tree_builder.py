"""Path-keyed construction of a catalog tree.

Each node is written through the builder, which tracks its state so that a
placeholder is expanded or failed exactly once and nothing ever reverts.
Categories processed concurrently only touch their own paths.
"""

from __future__ import annotations

import copy
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping

from core.types import (
    LEAF_DEPTH,
    CatalogTree,
    NodePath,
    format_path,
    make_error_marker,
)
from utils.error_handling import TreeStateError


class NodeState(str, Enum):
    PLACEHOLDER = "placeholder"
    EXPANDED = "expanded"
    LEAF = "leaf"
    FAILED = "failed"


class CatalogTreeBuilder:
    def __init__(self) -> None:
        self._root: CatalogTree = {}
        self._states: Dict[NodePath, NodeState] = {}

    def seed(self, placeholders: Mapping[str, str]) -> None:
        """Install the top-level placeholders."""
        for name, url in placeholders.items():
            self._write((name,), url, parent=self._root)

    def expand(self, path: NodePath, children: Mapping[str, Any]) -> None:
        """Replace the placeholder at ``path`` with ``children``.

        Nested mappings become internal nodes; strings become placeholders
        above the leaf level and content leaves at it.
        """
        path = tuple(path)
        self._require_placeholder(path, "expand")
        if len(path) >= LEAF_DEPTH:
            raise TreeStateError(
                f"Cannot expand leaf-level node {format_path(path)}", {"path": list(path)}
            )
        parent = self._parent(path)
        node: CatalogTree = {}
        parent[path[-1]] = node
        self._states[path] = NodeState.EXPANDED
        for name, value in children.items():
            self._write(path + (name,), value, parent=node)

    def fail(self, path: NodePath, message: Any) -> None:
        """Install an error marker in place of the placeholder at ``path``."""
        path = tuple(path)
        self._require_placeholder(path, "fail")
        self._parent(path)[path[-1]] = make_error_marker(message)
        self._states[path] = NodeState.FAILED

    def state(self, path: NodePath) -> NodeState:
        try:
            return self._states[tuple(path)]
        except KeyError:
            raise TreeStateError(f"Unknown node {format_path(path)}") from None

    def get(self, path: NodePath) -> Any:
        node: Any = self._root
        for key in path:
            if not isinstance(node, dict) or key not in node:
                raise TreeStateError(f"Unknown node {format_path(path)}")
            node = node[key]
        return node

    def pending(self) -> List[NodePath]:
        return [path for path, state in self._states.items() if state is NodeState.PLACEHOLDER]

    def paths(self, state: NodeState) -> Iterator[NodePath]:
        return (path for path, node_state in self._states.items() if node_state is state)

    def build(self) -> CatalogTree:
        """Return a detached copy of the finished tree."""
        pending = self.pending()
        if pending:
            raise TreeStateError(
                f"{len(pending)} placeholders were never expanded",
                {"paths": [list(path) for path in pending]},
            )
        return copy.deepcopy(self._root)

    def _write(self, path: NodePath, value: Any, parent: CatalogTree) -> None:
        if path in self._states:
            raise TreeStateError(f"Node {format_path(path)} already written", {"path": list(path)})
        if isinstance(value, Mapping):
            if len(path) >= LEAF_DEPTH:
                raise TreeStateError(
                    f"Mapping below leaf level at {format_path(path)}", {"path": list(path)}
                )
            node: CatalogTree = {}
            parent[path[-1]] = node
            self._states[path] = NodeState.EXPANDED
            for name, child in value.items():
                self._write(path + (name,), child, parent=node)
        elif isinstance(value, str):
            parent[path[-1]] = value
            self._states[path] = (
                NodeState.LEAF if len(path) == LEAF_DEPTH else NodeState.PLACEHOLDER
            )
        else:
            raise TreeStateError(
                f"Unsupported value {type(value).__name__} at {format_path(path)}",
                {"path": list(path)},
            )

    def _require_placeholder(self, path: NodePath, action: str) -> None:
        state = self._states.get(path)
        if state is not NodeState.PLACEHOLDER:
            current = state.value if state else "missing"
            raise TreeStateError(
                f"Cannot {action} {format_path(path)}: node is {current}",
                {"path": list(path), "state": current},
            )

    def _parent(self, path: NodePath) -> CatalogTree:
        return self.get(path[:-1]) if len(path) > 1 else self._root
