"""Per-leaf diff artifacts for modified catalog components."""

from __future__ import annotations

import difflib
import hashlib
import itertools
import json
import logging
import os
import re
import shutil
import subprocess
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Sequence

from core.types import DiffKind, DiffRecord, format_path
from utils.config_loader import MIN_IDENTIFIER_LENGTH
from utils.error_handling import ConfigurationError, StorageError
from utils.logger import log_harvest_event

logger = logging.getLogger(__name__)

SEPARATOR = "_"
DEFAULT_MAX_LENGTH = 200
DIGEST_LENGTH = 12
UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")
SEPARATOR_RUNS = re.compile(r"_{2,}")
ONLY_SEPARATORS = re.compile(r"^[._-]*$")

_fallback_counter = itertools.count(1)


def _fallback_identifier() -> str:
    return f"component_{int(time.time())}_{os.getpid()}_{next(_fallback_counter)}"


def _digest(raw: str) -> str:
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:DIGEST_LENGTH]


def sanitize_identifier(path: Sequence[str], max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Derive a filesystem-safe, collision-free name for a catalog path.

    The readable stem keeps ``[A-Za-z0-9._-]`` and folds everything else into
    single underscores. A short digest of the raw path keeps distinct paths
    apart after folding and truncation. Paths with no usable characters get a
    time/pid based name that is unique per call.

    Raises:
        ConfigurationError: If ``max_length`` cannot hold the digest plus one
            readable character.
    """
    if max_length < MIN_IDENTIFIER_LENGTH:
        raise ConfigurationError(
            f"Identifier length {max_length} is below the minimum of {MIN_IDENTIFIER_LENGTH}"
        )
    room = max_length - DIGEST_LENGTH - 1
    joined = SEPARATOR.join(path)
    stem = SEPARATOR_RUNS.sub(SEPARATOR, UNSAFE_CHARS.sub(SEPARATOR, joined))
    stem = stem.lstrip("._").rstrip(SEPARATOR)
    if ONLY_SEPARATORS.match(stem):
        fallback = _fallback_identifier()
        if len(fallback) <= max_length:
            return fallback
        return "component"[:room] + SEPARATOR + _digest(fallback)

    raw = json.dumps(list(path), ensure_ascii=False)
    return f"{stem[:room]}{SEPARATOR}{_digest(raw)}"


class DiffRenderer(Protocol):
    name: str

    def render(self, old_text: str, new_text: str) -> str: ...


class UnifiedDiffRenderer:
    name = "unified"

    def __init__(self, context_lines: int = 3) -> None:
        self.context_lines = context_lines

    def render(self, old_text: str, new_text: str) -> str:
        return "".join(
            difflib.unified_diff(
                old_text.splitlines(keepends=True),
                new_text.splitlines(keepends=True),
                fromfile="old",
                tofile="new",
                n=self.context_lines,
            )
        )


class GitWordDiffRenderer:
    """Word-level diff through ``git diff --no-index``."""

    name = "git"

    def __init__(self, git_executable: Optional[str] = None, color: bool = True) -> None:
        self.git = git_executable or shutil.which("git")
        if not self.git:
            raise ConfigurationError("git executable not found on PATH")
        self.color = color

    def render(self, old_text: str, new_text: str) -> str:
        word_diff = "--word-diff=color" if self.color else "--word-diff=plain"
        with tempfile.TemporaryDirectory(prefix="catalog-diff-") as workdir:
            old_file = Path(workdir) / "old.html"
            new_file = Path(workdir) / "new.html"
            old_file.write_text(old_text, encoding="utf-8")
            new_file.write_text(new_text, encoding="utf-8")
            completed = subprocess.run(
                [self.git, "diff", "--no-index", word_diff, str(old_file), str(new_file)],
                capture_output=True,
                text=True,
                encoding="utf-8",
                check=False,
            )
        # git exits with 1 when the files differ
        if completed.returncode not in (0, 1):
            raise StorageError(
                f"git diff failed with status {completed.returncode}",
                {"stderr": completed.stderr.strip()},
            )
        return completed.stdout


def select_renderer(preference: str = "auto") -> DiffRenderer:
    """Pick the word-level git renderer when available, else a unified diff."""
    if preference == "unified":
        return UnifiedDiffRenderer()
    if preference == "git":
        return GitWordDiffRenderer()
    if preference != "auto":
        raise ConfigurationError(f"Unknown diff renderer: {preference}")
    if shutil.which("git"):
        return GitWordDiffRenderer()
    logger.info("git not found, diffs will use unified format")
    return UnifiedDiffRenderer()


@dataclass(frozen=True)
class DiffArtifact:
    record: DiffRecord
    identifier: str
    path: Path


class DiffArtifactWriter:
    """Writes one ``<identifier>.diff`` file per modified leaf."""

    def __init__(
        self,
        output_dir: Path,
        renderer: Optional[DiffRenderer] = None,
        max_identifier_length: int = DEFAULT_MAX_LENGTH,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if max_identifier_length < MIN_IDENTIFIER_LENGTH:
            raise ConfigurationError(
                f"max_identifier_length must be >= {MIN_IDENTIFIER_LENGTH}"
            )
        self.output_dir = Path(output_dir)
        self.renderer = renderer or select_renderer()
        self.max_identifier_length = max_identifier_length
        self.logger = logger or logging.getLogger(__name__)

    def write(self, records: Iterable[DiffRecord]) -> List[DiffArtifact]:
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(
                f"Cannot create diffs directory {self.output_dir}: {exc}"
            ) from exc

        artifacts: List[DiffArtifact] = []
        for record in records:
            if record.kind is not DiffKind.MODIFIED:
                self.logger.info(
                    "Component exists only in the %s file: %s",
                    "NEW" if record.kind is DiffKind.ADDED else "OLD",
                    format_path(record.path),
                )
                continue
            artifacts.append(self._write_one(record))
        return artifacts

    def _write_one(self, record: DiffRecord) -> DiffArtifact:
        identifier = sanitize_identifier(record.path, self.max_identifier_length)
        target = self.output_dir / f"{identifier}.diff"
        content = self.renderer.render(record.old_text, record.new_text)
        try:
            target.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Unable to write diff {target}: {exc}", {"path": str(target)}) from exc

        log_harvest_event(
            "diff",
            {"path": list(record.path), "artifact": str(target), "renderer": self.renderer.name},
            message=f"Differences found: {format_path(record.path)} -> {target.name}",
            logger=self.logger,
        )
        return DiffArtifact(record=record, identifier=identifier, path=target)
