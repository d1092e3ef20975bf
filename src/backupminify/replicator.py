from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path
import time
from typing import Callable, Iterator

from backupminify.classifier import FileClassifier
from backupminify.config import MinifyConfig
from backupminify.exclude_engine import build_exclude_engine
from backupminify.models import MinifyStats, PolicyKind, ReplicationError
from backupminify.strategies import CommandRunner, build_strategy_table, run_command
from backupminify.throughput import ThroughputTracker, format_eta


CONVERSION_LABELS = {
    PolicyKind.IMAGE: "Image",
    PolicyKind.PDF: "PDF",
    PolicyKind.PLACEHOLDER_MEDIA: "Media",
}


@dataclass(slots=True, frozen=True)
class SourceEntry:
    relative_path: Path
    is_symlink: bool


class TreeReplicator:
    """Mirrors the source tree into the target tree with minified file contents.

    Every non-directory entry is handled exactly once: skipped when its target
    already exists (and skipping is enabled), recreated as a symlink, or
    written through the substitution strategy its extension selects. Target
    directories are created on demand.
    """

    def __init__(
        self,
        config: MinifyConfig,
        tracker: ThroughputTracker | None = None,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.perf_counter,
        runner: CommandRunner = run_command,
    ) -> None:
        self.config = config
        self.tracker = tracker if tracker is not None else ThroughputTracker()
        self.stats = MinifyStats()
        self.log = logger or logging.getLogger("backupminify.replicator")
        self._clock = clock
        self._classifier = FileClassifier.from_config(config)
        self._strategies = build_strategy_table(config, runner=runner)
        self._exclude_engine = build_exclude_engine(config)
        self._total_number_of_files: int | None = None

    def _progress(self, message: str, *args: object) -> None:
        if self.config.quiet_mode:
            return
        self.log.info(message, *args)

    def _counter(self) -> str:
        return f"[{self.stats.total_files}/{self.total_number_of_files()}]"

    def _iter_entries(self, count_excluded: bool = False) -> Iterator[SourceEntry]:
        source_root = self.config.source
        for root_str, dirs, files in os.walk(source_root, topdown=True, followlinks=False):
            root = Path(root_str)
            root_rel = root.relative_to(source_root)

            kept_dirs: list[str] = []
            linked_dirs: list[str] = []
            for dir_name in sorted(dirs):
                rel_path = root_rel / dir_name
                if (root / dir_name).is_symlink():
                    linked_dirs.append(dir_name)
                    continue
                if self._exclude_engine.is_excluded(rel_path, is_dir=True):
                    continue
                kept_dirs.append(dir_name)
            dirs[:] = kept_dirs

            for file_name in sorted([*files, *linked_dirs]):
                rel_path = root_rel / file_name
                if self._exclude_engine.is_excluded(rel_path):
                    if count_excluded:
                        self.stats.excluded += 1
                    continue
                yield SourceEntry(relative_path=rel_path, is_symlink=(root / file_name).is_symlink())

    def total_number_of_files(self) -> int:
        if self._total_number_of_files is None:
            self._total_number_of_files = sum(1 for _ in self._iter_entries())
        return self._total_number_of_files

    def _ensure_parent(self, target_file: Path) -> None:
        directory = target_file.parent
        if directory.is_dir():
            return
        self._progress("Creating directory: %s", directory)
        try:
            directory.mkdir(mode=0o777, parents=True, exist_ok=True)
        except OSError as exc:
            raise ReplicationError(f"Could not create directory {directory}: {exc}") from exc
        self.stats.directories_created += 1

    def _clear_target(self, target_file: Path) -> None:
        if target_file.is_dir() and not target_file.is_symlink():
            raise ReplicationError(f"Target path is a directory, cannot replace it: {target_file}")
        try:
            target_file.unlink()
        except OSError as exc:
            raise ReplicationError(f"Could not remove existing target {target_file}: {exc}") from exc

    def _replicate_symlink(self, source_file: Path, target_file: Path) -> None:
        link_target = os.readlink(source_file)
        self._ensure_parent(target_file)
        try:
            os.symlink(link_target, target_file)
        except OSError as exc:
            self.log.warning("Symlink could not be created: %s -> %s (%s)", target_file, link_target, exc)
            return
        self.stats.symlinks += 1
        self._progress("Symlink created: %s -> %s", target_file, link_target)

    def _substitute(self, kind: PolicyKind, source_file: Path, target_file: Path) -> None:
        strategy = self._strategies[kind]
        started = self._clock()
        succeeded = strategy(source_file, target_file)
        duration = self._clock() - started

        if kind is PolicyKind.GENERIC:
            self.stats.copied += 1
            self._progress("%s Copying file: %s", self._counter(), source_file)
            return

        if not succeeded:
            self.stats.failed += 1
            return

        self.stats.converted += 1
        self.tracker.record(duration)
        conversions_per_minute = self.tracker.conversions_per_minute()
        if conversions_per_minute is None:
            rate = "cpm: n/a"
        else:
            eta = self.tracker.eta(conversions_per_minute, self.total_number_of_files(), self.stats.total_files)
            rate = f"{round(conversions_per_minute)} cpm, ETA: {format_eta(eta)}"
        self._progress(
            "%s Converted %s file: %s (%s)",
            self._counter(),
            CONVERSION_LABELS[kind],
            source_file,
            rate,
        )

    def _process(self, entry: SourceEntry) -> None:
        source_file = self.config.source / entry.relative_path
        target_file = self.config.target / entry.relative_path
        self.stats.total_files += 1

        if os.path.lexists(target_file):
            if self.config.skip_existing_files:
                self.stats.skipped += 1
                self._progress("%s Skipping file: %s (already exists)", self._counter(), source_file)
                return
            self._clear_target(target_file)

        if entry.is_symlink:
            self._replicate_symlink(source_file, target_file)
            return

        self._ensure_parent(target_file)
        kind = self._classifier.classify(entry.relative_path)
        self._substitute(kind, source_file, target_file)

    def run(self) -> MinifyStats:
        self.log.debug(
            "Minifying %s into %s (%s files)",
            self.config.source,
            self.config.target,
            self.total_number_of_files(),
        )
        for entry in self._iter_entries(count_excluded=True):
            self._process(entry)

        overall = self.tracker.overall_conversions_per_minute()
        self.log.info(
            "Ready! Total files %s. Processed %s files per minute.",
            self.stats.total_files,
            round(overall) if overall is not None else 0,
        )
        self.log.info(
            "converted=%s copied=%s symlinks=%s skipped=%s excluded=%s failed=%s directories_created=%s",
            self.stats.converted,
            self.stats.copied,
            self.stats.symlinks,
            self.stats.skipped,
            self.stats.excluded,
            self.stats.failed,
            self.stats.directories_created,
        )
        return self.stats
