"""Structural comparison of two catalog snapshots."""

from __future__ import annotations

from typing import Any, Iterator, List, Mapping, Tuple

from core.types import (
    CatalogTree,
    DiffKind,
    DiffRecord,
    NodePath,
    is_internal_node,
)


def iter_leaves(tree: Any, prefix: NodePath = ()) -> Iterator[Tuple[NodePath, Any]]:
    """Yield ``(path, value)`` for every leaf or error marker below ``tree``."""
    if not is_internal_node(tree):
        yield prefix, tree
        return
    for key, value in tree.items():
        yield from iter_leaves(value, prefix + (key,))


def _ordered_keys(old: Mapping[str, Any], new: Mapping[str, Any]) -> List[str]:
    keys = list(new.keys())
    keys.extend(key for key in old.keys() if key not in new)
    return keys


def _diff_nodes(old: Any, new: Any, path: NodePath, records: List[DiffRecord]) -> None:
    old_internal = is_internal_node(old)
    new_internal = is_internal_node(new)

    if old_internal and new_internal:
        for key in _ordered_keys(old, new):
            child_path = path + (key,)
            if key not in old:
                records.extend(
                    DiffRecord(leaf_path, DiffKind.ADDED, new_leaf=value)
                    for leaf_path, value in iter_leaves(new[key], child_path)
                )
            elif key not in new:
                records.extend(
                    DiffRecord(leaf_path, DiffKind.REMOVED, old_leaf=value)
                    for leaf_path, value in iter_leaves(old[key], child_path)
                )
            else:
                _diff_nodes(old[key], new[key], child_path, records)
        return

    # Leaf pairs, error markers and leaf/subtree mismatches are compared whole.
    if old != new:
        records.append(DiffRecord(path, DiffKind.MODIFIED, old_leaf=old, new_leaf=new))


def diff_trees(old: CatalogTree, new: CatalogTree) -> List[DiffRecord]:
    """Classify every changed leaf path between ``old`` and ``new``.

    Unchanged leaves produce no record. A key present on one side only yields
    one Added or Removed record per leaf beneath it.
    """
    records: List[DiffRecord] = []
    _diff_nodes(old, new, (), records)
    return records
