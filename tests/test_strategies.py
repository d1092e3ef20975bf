from pathlib import Path
from typing import Sequence

import pytest

from backupminify.config import DEFAULT_PDF_PLACEHOLDER, ImageConverter, MinifyConfig
from backupminify.models import CommandResult, PolicyKind, ReplicationError
from backupminify.strategies import (
    COMMAND_NOT_FOUND,
    build_convert_command,
    build_strategy_table,
    convert_image,
    copy_placeholder,
    link_or_copy,
    run_command,
)


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_imagemagick_command_has_no_prefix() -> None:
    command = build_convert_command(
        ImageConverter.IMAGEMAGICK,
        Path("/usr/bin/convert"),
        Path("/src/my photo.jpg"),
        Path("/dst/my photo.jpg"),
        quality=1,
        colors=16,
    )

    assert command == [
        "/usr/bin/convert",
        "-quality",
        "1",
        "-colors",
        "16",
        "/src/my photo.jpg",
        "/dst/my photo.jpg",
    ]


def test_graphicsmagick_command_adds_convert_subcommand() -> None:
    command = build_convert_command(
        ImageConverter.GRAPHICSMAGICK,
        Path("/usr/bin/gm"),
        Path("/src/a.png"),
        Path("/dst/a.png"),
        quality=5,
        colors=8,
    )

    assert command[:2] == ["/usr/bin/gm", "convert"]
    assert command[2:] == ["-quality", "5", "-colors", "8", "/src/a.png", "/dst/a.png"]


def test_convert_image_moves_converter_output_into_place(tmp_path: Path) -> None:
    source = tmp_path / "src" / "a.jpg"
    target = tmp_path / "dst" / "a.jpg"
    _write(source, "full size")
    target.parent.mkdir()
    seen: list[Sequence[str]] = []

    def runner(args: Sequence[str]) -> CommandResult:
        seen.append(args)
        Path(args[-1]).write_text("small", encoding="utf-8")
        return CommandResult(args=tuple(args), returncode=0)

    converted = convert_image(
        source,
        target,
        converter=ImageConverter.IMAGEMAGICK,
        binary=Path("/usr/bin/convert"),
        quality=1,
        colors=16,
        runner=runner,
    )

    assert converted is True
    assert target.read_text(encoding="utf-8") == "small"
    assert seen[0][-2] == str(source)
    assert Path(seen[0][-1]).suffix == ".jpg"
    assert sorted(path.name for path in target.parent.iterdir()) == ["a.jpg"]


def test_convert_image_failure_leaves_no_target(tmp_path: Path, caplog) -> None:
    source = tmp_path / "src" / "a.jpg"
    target = tmp_path / "dst" / "a.jpg"
    _write(source, "full size")
    target.parent.mkdir()

    def runner(args: Sequence[str]) -> CommandResult:
        Path(args[-1]).write_text("partial", encoding="utf-8")
        return CommandResult(args=tuple(args), returncode=1, stderr="corrupt JPEG")

    converted = convert_image(
        source,
        target,
        converter=ImageConverter.IMAGEMAGICK,
        binary=Path("/usr/bin/convert"),
        quality=1,
        colors=16,
        runner=runner,
    )

    assert converted is False
    assert list(target.parent.iterdir()) == []
    assert "exit status 1" in caplog.text
    assert "corrupt JPEG" in caplog.text


def test_convert_image_without_output_is_a_failure(tmp_path: Path, caplog) -> None:
    source = tmp_path / "src" / "a.png"
    target = tmp_path / "dst" / "a.png"
    _write(source, "full size")
    target.parent.mkdir()

    converted = convert_image(
        source,
        target,
        converter=ImageConverter.GRAPHICSMAGICK,
        binary=Path("/usr/bin/gm"),
        quality=1,
        colors=16,
        runner=lambda args: CommandResult(args=tuple(args), returncode=0),
    )

    assert converted is False
    assert not target.exists()
    assert "produced no output" in caplog.text


def test_run_command_reports_missing_binary(tmp_path: Path) -> None:
    result = run_command([str(tmp_path / "missing-binary"), "-version"])

    assert result.returncode == COMMAND_NOT_FOUND
    assert not result.succeeded


def test_link_or_copy_prefers_hard_link(tmp_path: Path) -> None:
    source = tmp_path / "src" / "e.txt"
    target = tmp_path / "dst" / "e.txt"
    _write(source, "hello")
    target.parent.mkdir()

    assert link_or_copy(source, target) is True
    assert source.samefile(target)


def test_link_or_copy_falls_back_to_copy(tmp_path: Path, monkeypatch) -> None:
    source = tmp_path / "src" / "e.txt"
    target = tmp_path / "dst" / "e.txt"
    _write(source, "hello")
    target.parent.mkdir()

    def refuse_link(src, dst):
        raise OSError(18, "Invalid cross-device link")

    monkeypatch.setattr("backupminify.strategies.os.link", refuse_link)

    assert link_or_copy(source, target) is True
    assert not source.samefile(target)
    assert target.read_text(encoding="utf-8") == "hello"


def test_link_or_copy_raises_when_copy_fails_too(tmp_path: Path, monkeypatch) -> None:
    source = tmp_path / "src" / "e.txt"
    target = tmp_path / "dst" / "e.txt"
    _write(source, "hello")
    target.parent.mkdir()

    def refuse(*args, **kwargs):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr("backupminify.strategies.os.link", refuse)
    monkeypatch.setattr("backupminify.strategies.shutil.copy2", refuse)

    with pytest.raises(ReplicationError) as excinfo:
        link_or_copy(source, target)

    assert str(source) in str(excinfo.value)
    assert str(target) in str(excinfo.value)
    assert not target.exists()


def test_copy_placeholder_ignores_source_content(tmp_path: Path) -> None:
    source = tmp_path / "src" / "big.pdf"
    target = tmp_path / "dst" / "big.pdf"
    _write(source, "x" * 10_000)
    target.parent.mkdir()

    assert copy_placeholder(source, target, placeholder=DEFAULT_PDF_PLACEHOLDER) is True
    assert target.read_bytes() == DEFAULT_PDF_PLACEHOLDER.read_bytes()
    assert target.read_bytes().startswith(b"%PDF")


def test_copy_placeholder_failure_is_fatal(tmp_path: Path) -> None:
    source = tmp_path / "src" / "big.pdf"
    target = tmp_path / "dst" / "big.pdf"
    _write(source, "pdf")
    target.parent.mkdir()

    with pytest.raises(ReplicationError):
        copy_placeholder(source, target, placeholder=tmp_path / "missing.pdf")


def test_strategy_table_covers_every_policy_kind() -> None:
    config = MinifyConfig(
        source=Path("/src"),
        target=Path("/dst"),
        image_converter=ImageConverter.IMAGEMAGICK,
        converter_binary=Path("/usr/bin/convert"),
    )

    table = build_strategy_table(config)

    assert set(table) == set(PolicyKind)
    assert table[PolicyKind.GENERIC] is link_or_copy


def test_strategy_table_without_converter_refuses_images(tmp_path: Path, caplog) -> None:
    config = MinifyConfig(source=Path("/src"), target=Path("/dst"), image_file_types=())
    source = tmp_path / "a.jpg"
    _write(source, "img")

    table = build_strategy_table(config)

    assert table[PolicyKind.IMAGE](source, tmp_path / "out.jpg") is False
    assert "No image converter configured" in caplog.text
