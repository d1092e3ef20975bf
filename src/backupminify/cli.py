from __future__ import annotations

import argparse
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys

from backupminify.run_service import run_cleanup, run_minify


LOGGER_NAME = "backupminify"


class ConsoleFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if record.levelno >= logging.WARNING:
            return f"{record.levelname}: {message}"
        return message


def _below_warning(record: logging.LogRecord) -> bool:
    return record.levelno < logging.WARNING


def configure_logging(log_file: Path | None = None, verbose: bool = False) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_formatter = ConsoleFormatter("%(message)s")

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.addFilter(_below_warning)
    stdout_handler.setFormatter(console_formatter)
    logger.addHandler(stdout_handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.WARNING)
    stderr_handler.setFormatter(console_formatter)
    logger.addHandler(stderr_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
        logger.addHandler(file_handler)

    return logger


def _build_minify_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="backup-minify",
        description="Build a size-reduced replica of a media storage backup",
    )
    parser.add_argument("--source", help="Root of the tree to minify")
    parser.add_argument("--target", help="Existing root of the output tree")
    parser.add_argument("--skipExistingFiles", dest="skip_existing_files", metavar="0|1")
    parser.add_argument("--quietMode", dest="quiet_mode", metavar="0|1", nargs="?", const="1")
    parser.add_argument("--quiteMode", dest="quite_mode", nargs="?", const="1", help=argparse.SUPPRESS)
    parser.add_argument(
        "--imageconverter",
        dest="image_converter",
        metavar="imagemagick|im|graphicsmagick|gm",
    )
    parser.add_argument("--config", type=Path, help="YAML or JSON file with additional settings")
    parser.add_argument("--log-file", type=Path, default=None)
    parser.add_argument("--verbose", action="store_true")
    return parser


def _build_cleanup_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cleanup-db-export",
        description="Delete regeneratable *.data.sql files from <sourcePath>/db/latest",
    )
    parser.add_argument("--sourcePath", dest="source_path")
    parser.add_argument("--dry-run", action="store_true")
    parser.add_argument("--config", type=Path, help="YAML or JSON file with deletablePrefixes")
    parser.add_argument("--log-file", type=Path, default=None)
    parser.add_argument("--verbose", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_minify_parser().parse_args(argv)
    logger = configure_logging(args.log_file, verbose=args.verbose)

    quiet_mode = args.quiet_mode
    if args.quite_mode is not None:
        logger.warning("--quiteMode is deprecated, use --quietMode instead")
        if quiet_mode is None:
            quiet_mode = args.quite_mode

    exit_code, _ = run_minify(
        {
            "source": args.source,
            "target": args.target,
            "skipExistingFiles": args.skip_existing_files,
            "quietMode": quiet_mode,
            "imageConverter": args.image_converter,
        },
        config_path=args.config,
    )
    return exit_code


def cleanup_main(argv: list[str] | None = None) -> int:
    args = _build_cleanup_parser().parse_args(argv)
    configure_logging(args.log_file, verbose=args.verbose)

    exit_code, _ = run_cleanup(
        {
            "sourcePath": args.source_path,
            "dryRun": True if args.dry_run else None,
        },
        config_path=args.config,
    )
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
