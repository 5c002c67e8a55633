"""
Shared data types for the catalog harvester and the snapshot differ.

The catalog is a plain nested mapping so that it serialises to JSON as-is:
Category -> Section -> Group -> Component. Values are either a nested mapping,
a leaf string (component markup), a placeholder URL pending expansion, or an
error marker ``{"error": "<message>"}``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, TypedDict, Union


# ============================================================================
# Catalog tree primitives
# ============================================================================

HTMLContent = str
NodePath = Tuple[str, ...]


class ErrorMarker(TypedDict):
    """Terminal marker for a node whose expansion failed."""

    error: str


CatalogValue = Union["CatalogTree", HTMLContent, ErrorMarker]
CatalogTree = Dict[str, Any]

# Depth of a component leaf below the root: Category / Section / Group / Component
LEAF_DEPTH = 4

LEVEL_CATEGORY = "category"
LEVEL_SECTION = "section"
LEVEL_GROUP = "group"
LEVEL_COMPONENT = "component"
LEVELS = (LEVEL_CATEGORY, LEVEL_SECTION, LEVEL_GROUP, LEVEL_COMPONENT)


def make_error_marker(message: Any) -> ErrorMarker:
    text = str(message) or type(message).__name__
    return {"error": text}


def is_error_marker(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and len(value) == 1
        and isinstance(value.get("error"), str)
    )


def is_internal_node(value: Any) -> bool:
    return isinstance(value, dict) and not is_error_marker(value)


def format_path(path: NodePath, separator: str = " > ") -> str:
    return separator.join(path)


def level_of(path: NodePath) -> str:
    """Name of the hierarchy level a node at ``path`` belongs to."""
    if not path or len(path) > len(LEVELS):
        raise ValueError(f"Path {path!r} is outside the catalog hierarchy")
    return LEVELS[len(path) - 1]


# ============================================================================
# Diff records
# ============================================================================


class DiffKind(str, Enum):
    """Classification of a changed path between two snapshots."""

    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


@dataclass(frozen=True)
class DiffRecord:
    """One changed leaf between an old and a new catalog snapshot."""

    path: NodePath
    kind: DiffKind
    old_leaf: Optional[CatalogValue] = None
    new_leaf: Optional[CatalogValue] = None

    @property
    def old_text(self) -> str:
        return leaf_text(self.old_leaf)

    @property
    def new_text(self) -> str:
        return leaf_text(self.new_leaf)

    def swapped(self) -> "DiffRecord":
        """The record as seen when diffing the snapshots in reverse order."""
        kind = {
            DiffKind.ADDED: DiffKind.REMOVED,
            DiffKind.REMOVED: DiffKind.ADDED,
            DiffKind.MODIFIED: DiffKind.MODIFIED,
        }[self.kind]
        return DiffRecord(self.path, kind, old_leaf=self.new_leaf, new_leaf=self.old_leaf)


def leaf_text(value: Optional[CatalogValue]) -> str:
    """Text used when rendering a leaf in a diff artifact."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, ensure_ascii=False)


# ============================================================================
# Progress reporting primitives
# ============================================================================


PHASE_DISCOVERY = "discovery"
PHASE_SCRAPING = "scraping"
PHASE_COMPLETE = "complete"


@dataclass
class ProgressEvent:
    """Represents a progress update emitted during harvesting."""

    phase: str
    current: int
    total: int
    message: Optional[str] = None


ProgressCallback = Callable[["ProgressEvent"], None]
