from __future__ import annotations

import logging
from pathlib import Path
import stat
import sys
from typing import Callable

import pytest


FAKE_CONVERTER = """#!{python}
import sys
import logging
from pathlib import Path

from PIL import Image

args = sys.argv[1:]
with Path(sys.argv[0]).with_suffix(".log").open("a", encoding="utf-8") as handle:
    handle.write("\\t".join(args) + "\\n")

if args and args[0] == "convert":
    args = args[1:]
quality = int(args[args.index("-quality") + 1])
colors = int(args[args.index("-colors") + 1])
source, target = args[-2], args[-1]
with Image.open(source) as image:
    image_format = image.format
    reduced = image.convert("RGB").quantize(colors=colors).convert("RGB")
reduced.save(target, format=image_format, quality=quality)
"""

FAILING_CONVERTER = """#!/bin/sh
echo "convert: unable to open image" >&2
exit 1
"""


def _install_script(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_converter(tmp_path: Path) -> Path:
    return _install_script(tmp_path / "bin" / "fake-convert", FAKE_CONVERTER.format(python=sys.executable))


@pytest.fixture
def failing_converter(tmp_path: Path) -> Path:
    return _install_script(tmp_path / "bin" / "broken-convert", FAILING_CONVERTER)


@pytest.fixture
def converter_calls() -> Callable[[Path], list[list[str]]]:
    def read_calls(converter: Path) -> list[list[str]]:
        log = converter.with_suffix(".log")
        if not log.exists():
            return []
        return [line.split("\t") for line in log.read_text(encoding="utf-8").splitlines()]

    return read_calls


@pytest.fixture(autouse=True)
def _reset_backupminify_logger():
    yield
    logger = logging.getLogger("backupminify")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
