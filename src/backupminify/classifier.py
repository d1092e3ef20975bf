from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from backupminify.config import MinifyConfig
from backupminify.models import PolicyKind


def file_extension(path: Path | str) -> str:
    """Lowercased last suffix without the dot, or "" for names without one."""
    return Path(path).suffix.lstrip(".").lower()


@dataclass(slots=True, frozen=True)
class FileClassifier:
    image_file_types: frozenset[str]
    pdf_file_types: frozenset[str]
    placeholder_media_file_types: frozenset[str]

    @classmethod
    def from_config(cls, config: MinifyConfig) -> "FileClassifier":
        return cls(
            image_file_types=frozenset(config.image_file_types),
            pdf_file_types=frozenset(config.pdf_file_types),
            placeholder_media_file_types=frozenset(config.placeholder_media_file_types),
        )

    def rules(self) -> tuple[tuple[PolicyKind, frozenset[str]], ...]:
        # first match wins
        return (
            (PolicyKind.IMAGE, self.image_file_types),
            (PolicyKind.PDF, self.pdf_file_types),
            (PolicyKind.PLACEHOLDER_MEDIA, self.placeholder_media_file_types),
        )

    def classify(self, path: Path | str) -> PolicyKind:
        extension = file_extension(path)
        if not extension:
            return PolicyKind.GENERIC
        for kind, extensions in self.rules():
            if extension in extensions:
                return kind
        return PolicyKind.GENERIC
