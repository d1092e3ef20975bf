from pathlib import Path

import pytest

from backupminify.classifier import FileClassifier, file_extension
from backupminify.config import MinifyConfig
from backupminify.models import PolicyKind


def _classifier(**overrides) -> FileClassifier:
    config = MinifyConfig(source=Path("/src"), target=Path("/dst"), **overrides)
    return FileClassifier.from_config(config)


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("photo.jpg", PolicyKind.IMAGE),
        ("media/catalog/PHOTO.JPG", PolicyKind.IMAGE),
        ("logo.Png", PolicyKind.IMAGE),
        ("manual.pdf", PolicyKind.PDF),
        ("MANUAL.PDF", PolicyKind.PDF),
        ("clip.mp4", PolicyKind.PLACEHOLDER_MEDIA),
        ("clip.MPEG", PolicyKind.PLACEHOLDER_MEDIA),
        ("clip.avi", PolicyKind.PLACEHOLDER_MEDIA),
        ("styles.css", PolicyKind.GENERIC),
        ("photo.jpeg", PolicyKind.GENERIC),
        ("README", PolicyKind.GENERIC),
        (".htaccess", PolicyKind.GENERIC),
        ("archive.pdf.gz", PolicyKind.GENERIC),
        ("trailing.", PolicyKind.GENERIC),
    ],
)
def test_default_classification(name: str, expected: PolicyKind) -> None:
    assert _classifier().classify(Path(name)) is expected


def test_configured_image_types_extend_classification() -> None:
    classifier = _classifier(image_file_types=("jpg", "png", "gif", "jpeg"))

    assert classifier.classify("anim.gif") is PolicyKind.IMAGE
    assert classifier.classify("photo.jpeg") is PolicyKind.IMAGE


def test_rules_are_checked_in_priority_order() -> None:
    classifier = _classifier(image_file_types=("pdf",))

    kinds = [kind for kind, _ in classifier.rules()]

    assert kinds == [PolicyKind.IMAGE, PolicyKind.PDF, PolicyKind.PLACEHOLDER_MEDIA]
    assert classifier.classify("overlap.pdf") is PolicyKind.IMAGE


def test_empty_rule_sets_fall_through_to_generic() -> None:
    classifier = _classifier(image_file_types=(), placeholder_media_file_types=())

    assert classifier.classify("photo.jpg") is PolicyKind.GENERIC
    assert classifier.classify("clip.mp4") is PolicyKind.GENERIC
    assert classifier.classify("doc.pdf") is PolicyKind.PDF


def test_file_extension_is_lowercased_last_suffix() -> None:
    assert file_extension("a/b/Photo.JPG") == "jpg"
    assert file_extension("dump.tar.GZ") == "gz"
    assert file_extension("Makefile") == ""
