from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import json
import os
from pathlib import Path
from typing import Any

import yaml


RESOURCES_DIR = Path(__file__).resolve().parent / "resources"

DEFAULT_IMAGE_FILE_TYPES = ("jpg", "png")
DEFAULT_PDF_FILE_TYPES = ("pdf",)
DEFAULT_PLACEHOLDER_MEDIA_FILE_TYPES = ("mp4", "mpeg", "avi")
DEFAULT_IMAGE_QUALITY = 1
DEFAULT_IMAGE_COLORS = 16
DEFAULT_PDF_PLACEHOLDER = RESOURCES_DIR / "dummy.pdf"
DEFAULT_MEDIA_PLACEHOLDER = RESOURCES_DIR / "emptyfile.txt"

DEFAULT_DELETABLE_PREFIXES = (
    "log_",
    "report_event$",
    "report_compared_product_index",
    "report_viewed_product_index",
    "index_event",
    "index_process_event",
    "catalog_product_flat_",
    "asynccache",
    "enterprise_logging_event",
    "core_cache$",
    "core_cache_tag",
    "enterprise_giftcard",
    "core_session",
    "cron_schedule",
    "sales_flat",
    "core_file_storage",
    "enterprise_customer_sales_",
    "enterprise_sales_order_grid_archive",
    "sales_payment_transaction",
    "sales_bestsellers",
)


class ImageConverter(Enum):
    IMAGEMAGICK = "imagemagick"
    GRAPHICSMAGICK = "graphicsmagick"

    @property
    def default_binary(self) -> Path:
        if self is ImageConverter.GRAPHICSMAGICK:
            return Path("/usr/bin/gm")
        return Path("/usr/bin/convert")

    @property
    def argument_prefix(self) -> tuple[str, ...]:
        if self is ImageConverter.GRAPHICSMAGICK:
            return ("convert",)
        return ()


CONVERTER_ALIASES = {
    "imagemagick": ImageConverter.IMAGEMAGICK,
    "im": ImageConverter.IMAGEMAGICK,
    "graphicsmagick": ImageConverter.GRAPHICSMAGICK,
    "gm": ImageConverter.GRAPHICSMAGICK,
}


@dataclass(slots=True, frozen=True)
class MinifyConfig:
    source: Path
    target: Path
    skip_existing_files: bool = True
    quiet_mode: bool = False
    image_converter: ImageConverter | None = None
    converter_binary: Path | None = None
    image_quality: int = DEFAULT_IMAGE_QUALITY
    image_colors: int = DEFAULT_IMAGE_COLORS
    image_file_types: tuple[str, ...] = DEFAULT_IMAGE_FILE_TYPES
    pdf_file_types: tuple[str, ...] = DEFAULT_PDF_FILE_TYPES
    placeholder_media_file_types: tuple[str, ...] = DEFAULT_PLACEHOLDER_MEDIA_FILE_TYPES
    pdf_placeholder: Path = DEFAULT_PDF_PLACEHOLDER
    media_placeholder: Path = DEFAULT_MEDIA_PLACEHOLDER
    additional_excludes: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class CleanupConfig:
    source_path: Path
    export_dir: Path
    deletable_prefixes: tuple[str, ...] = DEFAULT_DELETABLE_PREFIXES
    dry_run: bool = False


def _as_path(value: Any, field_name: str, hint: str | None = None) -> Path:
    if isinstance(value, Path):
        return value.expanduser()
    if not isinstance(value, str) or not value.strip():
        message = f"{field_name} must be a non-empty string path"
        if hint:
            message = f"{message}; {hint}"
        raise ValueError(message)
    return Path(value).expanduser()


def _as_bool(value: Any, field_name: str, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"{field_name} must be a boolean (0 or 1)")


def _as_int(value: Any, field_name: str, default: int, minimum: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field_name} must be an integer") from None
    if number < minimum:
        raise ValueError(f"{field_name} must be at least {minimum}")
    return number


def _as_list_of_strings(value: Any, field_name: str, default: tuple[str, ...] = ()) -> tuple[str, ...]:
    if value is None:
        return tuple(default)
    if not isinstance(value, (list, tuple)) or any(not isinstance(item, str) for item in value):
        raise ValueError(f"{field_name} must be a list of strings")
    return tuple(item for item in value if item.strip())


def _as_extensions(value: Any, field_name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    extensions = _as_list_of_strings(value, field_name, default=default)
    return tuple(dict.fromkeys(item.strip().lstrip(".").lower() for item in extensions))


def parse_image_converter(value: Any) -> ImageConverter:
    choices = "|".join(CONVERTER_ALIASES)
    if not isinstance(value, str) or value.strip().lower() not in CONVERTER_ALIASES:
        given = f" '{value}'" if value else ""
        raise ValueError(
            f"Please provide a valid image converter{given} using --imageconverter=<{choices}>"
        )
    return CONVERTER_ALIASES[value.strip().lower()]


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def _validate_paths(source_root: Path, target_root: Path) -> None:
    source_resolved = source_root.resolve()
    target_resolved = target_root.resolve()

    if source_resolved == target_resolved:
        raise ValueError(f"Invalid mapping: source and target are equal: {source_root}")

    if source_resolved in target_resolved.parents:
        raise ValueError(f"Invalid mapping: target is inside source, which can recurse: {target_root}")


def load_raw_config(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        raise ValueError(f"Config file does not exist: {config_path}")

    suffix = config_path.suffix.lower()
    text = config_path.read_text(encoding="utf-8")
    if suffix in {".yml", ".yaml"}:
        loaded = yaml.safe_load(text)
    elif suffix == ".json":
        loaded = json.loads(text)
    else:
        raise ValueError("Config file must be .yaml/.yml or .json")

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError("Config root must be an object")
    return loaded


def build_minify_config(raw: dict[str, Any]) -> MinifyConfig:
    source = _as_path(raw.get("source"), "source", hint="use --source=<path>")
    target = _as_path(raw.get("target"), "target", hint="use --target=<path>")

    image_file_types = _as_extensions(raw.get("imageFileTypes"), "imageFileTypes", DEFAULT_IMAGE_FILE_TYPES)
    placeholder_media_file_types = _as_extensions(
        raw.get("placeholderMediaFileTypes"),
        "placeholderMediaFileTypes",
        DEFAULT_PLACEHOLDER_MEDIA_FILE_TYPES,
    )

    image_converter: ImageConverter | None = None
    converter_binary: Path | None = None
    raw_converter = raw.get("imageConverter")
    if raw_converter or image_file_types:
        image_converter = parse_image_converter(raw_converter)
        raw_binary = raw.get("imageConverterBinary")
        converter_binary = (
            _as_path(raw_binary, "imageConverterBinary") if raw_binary else image_converter.default_binary
        )
        if not _is_executable(converter_binary):
            raise ValueError(
                f"The image convert executable {converter_binary} does not exist or cannot be executed"
            )

    if not source.is_dir():
        raise ValueError(f"Could not find source dir '{source}'")
    if not target.is_dir():
        raise ValueError(f"Could not find target dir '{target}'")
    _validate_paths(source, target)

    pdf_placeholder = _as_path(raw.get("pdfPlaceholder") or DEFAULT_PDF_PLACEHOLDER, "pdfPlaceholder")
    media_placeholder = _as_path(raw.get("mediaPlaceholder") or DEFAULT_MEDIA_PLACEHOLDER, "mediaPlaceholder")
    for field_name, placeholder in (("pdfPlaceholder", pdf_placeholder), ("mediaPlaceholder", media_placeholder)):
        if not placeholder.is_file():
            raise ValueError(f"{field_name} asset does not exist: {placeholder}")

    return MinifyConfig(
        source=source.absolute(),
        target=target.absolute(),
        skip_existing_files=_as_bool(raw.get("skipExistingFiles"), "skipExistingFiles", default=True),
        quiet_mode=_as_bool(raw.get("quietMode"), "quietMode", default=False),
        image_converter=image_converter,
        converter_binary=converter_binary,
        image_quality=_as_int(raw.get("imageQuality"), "imageQuality", DEFAULT_IMAGE_QUALITY, minimum=1),
        image_colors=_as_int(raw.get("imageColors"), "imageColors", DEFAULT_IMAGE_COLORS, minimum=2),
        image_file_types=image_file_types,
        placeholder_media_file_types=placeholder_media_file_types,
        pdf_placeholder=pdf_placeholder,
        media_placeholder=media_placeholder,
        additional_excludes=_as_list_of_strings(raw.get("additionalExcludes"), "additionalExcludes"),
    )


def build_cleanup_config(raw: dict[str, Any]) -> CleanupConfig:
    source_path = _as_path(raw.get("sourcePath"), "sourcePath", hint="use --sourcePath=<path>")
    if not source_path.is_dir():
        raise ValueError(f"Please provide a valid source path using --sourcePath=<path>: {source_path}")

    export_dir = source_path / "db" / "latest"
    if not export_dir.is_dir():
        raise ValueError(f"Could not process given directory: {export_dir}")

    deletable_prefixes = _as_list_of_strings(
        raw.get("deletablePrefixes"), "deletablePrefixes", default=DEFAULT_DELETABLE_PREFIXES
    )
    if not deletable_prefixes:
        raise ValueError("deletablePrefixes must not be empty")

    return CleanupConfig(
        source_path=source_path,
        export_dir=export_dir,
        deletable_prefixes=deletable_prefixes,
        dry_run=_as_bool(raw.get("dryRun"), "dryRun", default=False),
    )
