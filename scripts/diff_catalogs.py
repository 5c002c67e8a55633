#!/usr/bin/env python3
"""Compare two catalog snapshots and write one diff file per modified component."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from core.diff_writer import DiffArtifactWriter, select_renderer
from core.tree_differ import diff_trees
from core.types import DiffRecord
from utils.config_loader import HarvestSettings, load_settings
from utils.error_handling import ConfigurationError, HarvestError
from utils.logger import setup_logger
from utils.rich_helpers import render_diff_summary, render_error
from utils.rich_themes import get_console
from utils.serialization import load_catalog

LOGGER = logging.getLogger("harvester")

DEFAULT_PATTERN = "catalog-components*.json"


def discover_snapshots(directory: Path, pattern: str = DEFAULT_PATTERN) -> List[Path]:
    """Snapshot files in ``directory`` ordered newest first."""
    candidates = [path for path in Path(directory).glob(pattern) if path.is_file()]
    return sorted(candidates, key=lambda path: path.stat().st_mtime, reverse=True)


def resolve_inputs(
    old: Optional[str],
    new: Optional[str],
    directory: Path,
    pattern: str = DEFAULT_PATTERN,
) -> Tuple[Path, Path]:
    if old and new:
        old_path, new_path = Path(old), Path(new)
    elif old or new:
        raise ConfigurationError("Pass both --old and --new, or neither to pick the two newest snapshots")
    else:
        snapshots = discover_snapshots(directory, pattern)
        if len(snapshots) < 2:
            raise ConfigurationError(
                f"Need at least 2 files matching '{pattern}' in {directory}, found {len(snapshots)}"
            )
        new_path, old_path = snapshots[0], snapshots[1]
        LOGGER.info("Comparing newest file %s with %s", new_path.name, old_path.name)

    for path in (old_path, new_path):
        if not path.is_file():
            raise ConfigurationError(f"File not found: {path}")
    return old_path, new_path


def run_diff(
    old_path: Path,
    new_path: Path,
    settings: HarvestSettings,
    diffs_dir: Optional[str] = None,
) -> List[DiffRecord]:
    old_tree = load_catalog(old_path)
    new_tree = load_catalog(new_path)
    records = diff_trees(old_tree, new_tree)

    writer = DiffArtifactWriter(
        Path(diffs_dir or settings.diffs_dir),
        renderer=select_renderer(settings.diff_renderer),
        max_identifier_length=settings.max_identifier_length,
    )
    artifacts = writer.write(records)
    LOGGER.info(
        "Compared %s and %s: %d changes, %d diff files",
        old_path.name,
        new_path.name,
        len(records),
        len(artifacts),
    )
    return records


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compare two catalog snapshots")
    parser.add_argument("--old", help="Older snapshot (default: second newest match)")
    parser.add_argument("--new", help="Newer snapshot (default: newest match)")
    parser.add_argument("--dir", default=".", help="Directory searched for snapshots (default: .)")
    parser.add_argument(
        "--pattern",
        default=DEFAULT_PATTERN,
        help=f"Glob used to discover snapshots (default: {DEFAULT_PATTERN})",
    )
    parser.add_argument("--diffs-dir", help="Where diff files are written (default from settings)")
    parser.add_argument("--config", help="Path to settings JSON (default: config/settings.json)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    console = get_console()

    try:
        settings = load_settings(args.config)
    except ConfigurationError as exc:
        render_error(str(exc))
        return 1

    setup_logger(
        None,
        level=logging.DEBUG if args.debug else logging.INFO,
        config=dict(
            settings.logging,
            log_level="DEBUG" if args.debug else settings.logging.get("log_level"),
        ),
    )

    try:
        old_path, new_path = resolve_inputs(args.old, args.new, Path(args.dir), args.pattern)
        records = run_diff(old_path, new_path, settings, args.diffs_dir)
    except HarvestError as exc:
        LOGGER.error("Diff failed: %s", exc)
        render_error(str(exc))
        return 1

    render_diff_summary(records, diffs_dir=args.diffs_dir or settings.diffs_dir, console=console)
    return 0


if __name__ == "__main__":
    sys.exit(main())
