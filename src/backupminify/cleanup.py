from __future__ import annotations

import logging
import re
from typing import Iterable

from backupminify.config import CleanupConfig
from backupminify.models import CleanupStats, ReplicationError


DATA_FILE_SUFFIX = ".data.sql"


def build_deletable_pattern(prefixes: Iterable[str]) -> re.Pattern[str]:
    """Entries ending in "$" name an exact table, all others a table name prefix."""
    alternatives: list[str] = []
    for prefix in prefixes:
        if prefix.endswith("$"):
            alternatives.append(re.escape(prefix[:-1]))
        else:
            alternatives.append(f"{re.escape(prefix)}.*")
    if not alternatives:
        raise ValueError("At least one deletable table prefix is required")
    # compressed dumps (.data.sql.gz, .data.sql.bz2) are removed too
    return re.compile(f"^(?:{'|'.join(alternatives)}){re.escape(DATA_FILE_SUFFIX)}(?:\\.[^.]+)?$")


def cleanup_export(config: CleanupConfig, logger: logging.Logger | None = None) -> CleanupStats:
    log = logger or logging.getLogger("backupminify.cleanup")
    pattern = build_deletable_pattern(config.deletable_prefixes)
    stats = CleanupStats()

    log.info("Start processing directory %s", config.export_dir)
    log.info("Using regular expression: %s", pattern.pattern)

    for path in sorted(config.export_dir.iterdir()):
        if not path.is_file():
            continue
        stats.scanned += 1
        log.debug("Processing file %s", path)

        # structural dumps stay, only data files go
        if not pattern.match(path.name):
            continue

        log.info("Deleting futile sql file: %s", path)
        if not config.dry_run:
            try:
                path.unlink()
            except OSError as exc:
                raise ReplicationError(f"Could not delete sql file: {path}: {exc}") from exc
        stats.deleted += 1

    log.info("Done. scanned=%s deleted=%s dry_run=%s", stats.scanned, stats.deleted, config.dry_run)
    return stats
