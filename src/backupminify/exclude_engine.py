from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pathspec

from backupminify.config import MinifyConfig


class ExcludeEngine:
    def __init__(self, patterns: Iterable[str]) -> None:
        self._patterns = [pattern for pattern in patterns if pattern.strip()]
        self._spec = pathspec.PathSpec.from_lines("gitignore", self._patterns)

    def is_excluded(self, relative_path: Path, is_dir: bool = False) -> bool:
        if not self._patterns:
            return False
        unix_path = relative_path.as_posix()
        candidate = f"{unix_path}/" if is_dir and not unix_path.endswith("/") else unix_path
        return self._spec.match_file(candidate)


def build_exclude_engine(config: MinifyConfig) -> ExcludeEngine:
    return ExcludeEngine(config.additional_excludes)
