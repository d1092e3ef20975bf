from __future__ import annotations

from functools import partial
import logging
import os
from pathlib import Path
import shutil
import subprocess
import tempfile
from typing import Callable, Sequence

from backupminify.config import ImageConverter, MinifyConfig
from backupminify.models import CommandResult, PolicyKind, ReplicationError


Strategy = Callable[[Path, Path], bool]
CommandRunner = Callable[[Sequence[str]], CommandResult]

COMMAND_NOT_FOUND = 127

log = logging.getLogger("backupminify.strategies")


def run_command(args: Sequence[str]) -> CommandResult:
    argv = tuple(str(arg) for arg in args)
    try:
        completed = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            errors="replace",
            check=False,
        )
    except OSError as exc:
        return CommandResult(args=argv, returncode=COMMAND_NOT_FOUND, stderr=str(exc))
    return CommandResult(
        args=argv,
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )


def build_convert_command(
    converter: ImageConverter,
    binary: Path,
    source_file: Path,
    target_file: Path,
    quality: int,
    colors: int,
) -> list[str]:
    return [
        str(binary),
        *converter.argument_prefix,
        "-quality",
        str(quality),
        "-colors",
        str(colors),
        str(source_file),
        str(target_file),
    ]


def default_file_mode() -> int:
    """Mode a plain open() would give a new file under the current umask."""
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def _temporary_sibling(target_file: Path) -> Path:
    with tempfile.NamedTemporaryFile(
        delete=False,
        dir=str(target_file.parent),
        prefix=".minify-",
        suffix=target_file.suffix,
    ) as tmp:
        return Path(tmp.name)


def _safe_copy(source_file: Path, target_file: Path, metadata: bool = True) -> None:
    tmp_path = _temporary_sibling(target_file)
    try:
        if metadata:
            shutil.copy2(source_file, tmp_path)
        else:
            shutil.copyfile(source_file, tmp_path)
            os.chmod(tmp_path, default_file_mode())
        tmp_path.replace(target_file)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def convert_image(
    source_file: Path,
    target_file: Path,
    *,
    converter: ImageConverter,
    binary: Path,
    quality: int,
    colors: int,
    runner: CommandRunner = run_command,
) -> bool:
    tmp_path = _temporary_sibling(target_file)
    try:
        command = build_convert_command(converter, binary, source_file, tmp_path, quality, colors)
        result = runner(command)
        if not result.succeeded:
            log.warning(
                "Image conversion failed for %s (exit status %s): %s",
                source_file,
                result.returncode,
                result.stderr.strip() or "no error output",
            )
            return False
        if not tmp_path.exists() or tmp_path.stat().st_size == 0:
            log.warning("Image conversion produced no output for %s", source_file)
            return False
        os.chmod(tmp_path, default_file_mode())
        tmp_path.replace(target_file)
        return True
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def copy_placeholder(source_file: Path, target_file: Path, *, placeholder: Path) -> bool:
    try:
        _safe_copy(placeholder, target_file, metadata=False)
    except OSError as exc:
        raise ReplicationError(
            f"Copying placeholder {placeholder} to {target_file} failed for {source_file}: {exc}"
        ) from exc
    return True


def link_or_copy(source_file: Path, target_file: Path) -> bool:
    try:
        os.link(source_file, target_file)
        return True
    except OSError as exc:
        log.debug("Linking file failed: %s to %s (%s)", source_file, target_file, exc)

    try:
        _safe_copy(source_file, target_file)
    except OSError as exc:
        raise ReplicationError(f"Copy file failed too: {source_file} to {target_file}: {exc}") from exc
    return True


def _image_conversion_disabled(source_file: Path, target_file: Path) -> bool:
    log.warning("No image converter configured, cannot convert %s", source_file)
    return False


def build_strategy_table(config: MinifyConfig, runner: CommandRunner = run_command) -> dict[PolicyKind, Strategy]:
    if config.image_converter is not None and config.converter_binary is not None:
        image_strategy: Strategy = partial(
            convert_image,
            converter=config.image_converter,
            binary=config.converter_binary,
            quality=config.image_quality,
            colors=config.image_colors,
            runner=runner,
        )
    else:
        image_strategy = _image_conversion_disabled

    table: dict[PolicyKind, Strategy] = {
        PolicyKind.IMAGE: image_strategy,
        PolicyKind.PDF: partial(copy_placeholder, placeholder=config.pdf_placeholder),
        PolicyKind.PLACEHOLDER_MEDIA: partial(copy_placeholder, placeholder=config.media_placeholder),
        PolicyKind.GENERIC: link_or_copy,
    }

    missing = [kind.name for kind in PolicyKind if kind not in table]
    if missing:
        raise ValueError(f"No substitution strategy for: {', '.join(missing)}")
    return table
