"""Rich theming utilities for consistent display styling."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from rich.console import Console
from rich.theme import Theme


@dataclass
class RichConsoleOptions:
    """Console configuration options used across the CLI surface."""

    highlight: bool = True
    markup: bool = True
    soft_wrap: bool = False
    record: bool = False
    width: Optional[int] = None
    color_system: Optional[str] = "auto"
    force_terminal: Optional[bool] = None
    stderr: bool = False


@dataclass
class RichThemeConfig:
    """Palette used by the harvest and diff command-line tools."""

    palette: Dict[str, str] = field(
        default_factory=lambda: {
            "success": "green",
            "error": "bold red",
            "warning": "bold yellow",
            "info": "cyan",
            "muted": "grey62",
            "accent": "magenta",
            "progress.text": "bold cyan",
            "progress.percentage": "bold green",
            "table.header": "bold cyan",
            "table.success": "green",
            "table.error": "red",
            "table.neutral": "white",
            "diff.added": "green",
            "diff.removed": "red",
            "diff.modified": "yellow",
        }
    )
    monochrome: bool = False

    def to_theme(self) -> Theme:
        palette = dict(self.palette)
        if self.monochrome:
            palette = {key: "white" for key in palette}
        styles = {key: value for key, value in palette.items() if value}
        styles.update({
            "progress.description": palette.get("progress.text", "bold cyan"),
            "progress.percentage": palette.get("progress.percentage", "bold green"),
        })
        return Theme(styles)


def get_console(
    *,
    stderr: bool = False,
    record: bool = False,
    options: Optional[RichConsoleOptions] = None,
    theme: Optional[RichThemeConfig] = None,
) -> Console:
    options = options or RichConsoleOptions()
    theme = theme or RichThemeConfig()
    return Console(
        highlight=options.highlight,
        markup=options.markup,
        soft_wrap=options.soft_wrap,
        record=record or options.record,
        width=options.width,
        color_system=options.color_system,
        force_terminal=options.force_terminal,
        stderr=stderr or options.stderr,
        theme=theme.to_theme(),
    )


__all__ = [
    "RichConsoleOptions",
    "RichThemeConfig",
    "get_console",
]
