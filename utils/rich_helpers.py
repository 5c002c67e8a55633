"""Utility helpers built on top of Rich for consistent CLI UX."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from rich import box
from rich.console import Console, Group, RenderableType
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from rich.text import Text

from core.types import DiffKind, DiffRecord, ProgressEvent, format_path

from .rich_themes import get_console


@dataclass
class ProgressTracker:
    """Tracks named Rich progress tasks."""

    progress: Progress
    task_ids: Dict[str, TaskID] = field(default_factory=dict)

    def add_task(self, key: str, description: str, total: Optional[float] = None, **kwargs: Any) -> TaskID:
        task_id = self.progress.add_task(description, total=total, **kwargs)
        self.task_ids[key] = task_id
        return task_id

    def update(self, key: str, **kwargs: Any) -> None:
        self.progress.update(self.task_ids[key], **kwargs)

    def handle_event(self, event: ProgressEvent) -> None:
        """Progress callback for the traversal orchestrator."""
        key = "harvest"
        if key not in self.task_ids:
            self.add_task(key, "Harvesting catalog", total=event.total or None)
        self.update(
            key,
            completed=event.current,
            total=event.total or None,
            description=format_progress_status(event.phase, event.message).plain,
        )


def create_progress(
    *,
    console: Optional[Console] = None,
    transient: bool = False,
    show_completed: bool = True,
    expand: bool = True,
) -> Progress:
    columns: List[Any] = [SpinnerColumn(), TextColumn("[progress.description]{task.description}", justify="left")]
    columns.append(BarColumn(bar_width=None))
    if show_completed:
        columns.append(MofNCompleteColumn())
    columns.append(TaskProgressColumn())
    columns.append(TimeElapsedColumn())
    return Progress(*columns, console=console, transient=transient, expand=expand)


def create_tracker(*, console: Optional[Console] = None, transient: bool = False, **kwargs: Any) -> ProgressTracker:
    progress = create_progress(console=console, transient=transient, **kwargs)
    return ProgressTracker(progress=progress)


def build_table(
    columns: Sequence[Tuple[str, Dict[str, Any]]],
    rows: Iterable[Sequence[Any]],
    *,
    title: Optional[str] = None,
    caption: Optional[str] = None,
) -> Table:
    table = Table(title=title, box=box.SQUARE, caption=caption, highlight=True)
    for name, meta in columns:
        table.add_column(name, **meta)
    for row in rows:
        table.add_row(*[format_cell(cell) for cell in row])
    return table


def format_cell(value: Any) -> str:
    if isinstance(value, (int, float)):
        return f"{value:,}" if isinstance(value, int) else f"{value:.2f}"
    if value is None:
        return "-"
    return str(value)


def format_phase_indicator(phase: str) -> Text:
    mapping = {
        "discovery": "accent",
        "scraping": "table.header",
        "complete": "table.success",
    }
    return Text(phase.capitalize(), style=mapping.get(phase, "muted"))


def format_progress_status(phase: str, message: Optional[str] = None) -> Text:
    parts = Text.assemble(format_phase_indicator(phase))
    if message:
        parts.append_text(Text(f": {message}", style="muted"))
    return parts


def render_error(message: str, *, details: Optional[str] = None, console: Optional[Console] = None) -> None:
    local_console = console or get_console(stderr=True)
    body: RenderableType = Text(message, style="error")
    if details:
        body = Group(Text(message, style="error"), Text(details, style="muted"))
    local_console.print(Panel(body, title="Error", border_style="error"))


def render_harvest_summary(
    result: Any,
    output_path: str,
    size_kb: int,
    *,
    console: Optional[Console] = None,
    max_rows: int = 50,
) -> None:
    local_console = console or get_console()
    table = build_table(
        [("Metric", {"style": "table.header"}), ("Value", {"justify": "right"})],
        [
            ("Categories", result.categories),
            ("Groups", result.groups),
            ("Components", result.components),
            ("Failed nodes", result.failures),
        ],
        title="Harvest summary",
        caption=f"{size_kb}KB saved to {output_path}",
    )
    local_console.print(table)
    if not result.failed_nodes:
        return

    failed = Table(box=box.SIMPLE, show_header=True, title="Failed nodes")
    failed.add_column("Path", style="warning")
    failed.add_column("Error", style="muted")
    for path, message in result.failed_nodes[:max_rows]:
        failed.add_row(format_path(path), message)
    local_console.print(failed)
    if len(result.failed_nodes) > max_rows:
        local_console.print(Text(f"... and {len(result.failed_nodes) - max_rows} more", style="muted"))


def render_diff_summary(
    records: Sequence[DiffRecord],
    *,
    diffs_dir: str,
    console: Optional[Console] = None,
    max_rows: int = 50,
) -> None:
    local_console = console or get_console()
    counts = {kind: 0 for kind in DiffKind}
    for record in records:
        counts[record.kind] += 1

    totals = build_table(
        [("Change", {"style": "table.header"}), ("Count", {"justify": "right"})],
        [(kind.value.capitalize(), counts[kind]) for kind in DiffKind],
        title="Catalog changes",
        caption=f"Diff files saved in '{diffs_dir}'",
    )

    details = Table(box=box.SIMPLE, show_header=True)
    details.add_column("Kind")
    details.add_column("Path")
    for record in records[:max_rows]:
        details.add_row(
            Text(record.kind.value, style=f"diff.{record.kind.value}"),
            format_path(record.path),
        )
    renderables: List[RenderableType] = [totals]
    if records:
        renderables.append(details)
    if len(records) > max_rows:
        renderables.append(Text(f"... and {len(records) - max_rows} more", style="muted"))
    local_console.print(Group(*renderables))
