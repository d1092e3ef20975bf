from __future__ import annotations

from pathlib import Path
import logging
from typing import Any

from backupminify.cleanup import cleanup_export
from backupminify.config import build_cleanup_config, build_minify_config, load_raw_config
from backupminify.models import CleanupStats, MinifyStats, ReplicationError
from backupminify.replicator import TreeReplicator


EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1
EXIT_PARTIAL_FAILURES = 2
EXIT_INVALID_CONFIG = 3


def merge_settings(config_path: Path | None, overrides: dict[str, Any]) -> dict[str, Any]:
    raw: dict[str, Any] = load_raw_config(config_path) if config_path is not None else {}
    merged = dict(raw)
    merged.update({key: value for key, value in overrides.items() if value is not None})
    return merged


def run_minify(
    overrides: dict[str, Any],
    config_path: Path | None = None,
    logger: logging.Logger | None = None,
) -> tuple[int, MinifyStats]:
    log = logger or logging.getLogger("backupminify.run")

    try:
        config = build_minify_config(merge_settings(config_path, overrides))
    except Exception as exc:
        log.error("%s", exc)
        return EXIT_INVALID_CONFIG, MinifyStats()

    replicator = TreeReplicator(config)
    try:
        stats = replicator.run()
    except (ReplicationError, OSError) as exc:
        log.error("%s", exc)
        return EXIT_RUNTIME_ERROR, replicator.stats

    if stats.failed:
        log.warning("%s file(s) could not be converted; rerun to retry them", stats.failed)
        return EXIT_PARTIAL_FAILURES, stats
    return EXIT_SUCCESS, stats


def run_cleanup(
    overrides: dict[str, Any],
    config_path: Path | None = None,
    logger: logging.Logger | None = None,
) -> tuple[int, CleanupStats]:
    log = logger or logging.getLogger("backupminify.run")

    try:
        config = build_cleanup_config(merge_settings(config_path, overrides))
    except Exception as exc:
        log.error("%s", exc)
        return EXIT_INVALID_CONFIG, CleanupStats()

    try:
        stats = cleanup_export(config)
    except (ReplicationError, OSError) as exc:
        log.error("%s", exc)
        return EXIT_RUNTIME_ERROR, CleanupStats()
    return EXIT_SUCCESS, stats
