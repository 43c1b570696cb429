"""Tests for the command line entry point and resume address parsing."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest

from conftest import FOUR_LINE_SRT, LINE_TRANSLATIONS, FakeTranslator, item_texts
from subtrans import cli
from subtrans.errors import InvalidAddressError
from subtrans.structures import TextAddress


CONFIG = """
default_llm: main
target_lang: Spanish
llms:
  main:
    api: openai
    api_key: sk-test
    model: gpt-test
    max_tokens: 1000
"""


@pytest.fixture
def config_file(
    write_file: Callable[[str, str], Path], monkeypatch: pytest.MonkeyPatch
) -> Path:
    for variable in ("SUBTRANS_DEFAULT_LLM", "SUBTRANS_TARGET_LANG", "SUBTRANS_PROVIDER_DEBUG"):
        monkeypatch.delenv(variable, raising=False)
    monkeypatch.chdir(write_file("config.yaml", CONFIG).parent)
    return Path("config.yaml").resolve()


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("1,2,3", TextAddress(1, 2, 3)),
        (" 1 , 2 , 3 ", TextAddress(1, 2, 3)),
        ("0,0,0", TextAddress(0, 0, 0)),
    ],
)
def test_parse_resume_address(value: str, expected: TextAddress) -> None:
    """Addresses are comma separated and tolerate surrounding spaces."""

    assert TextAddress.parse(value) == expected


@pytest.mark.parametrize(
    ("value", "message"),
    [
        ("1,2", "must be in format item,line,seg"),
        ("1,2,3,4", "must be in format item,line,seg"),
        ("a,2,3", "Could not parse item index"),
        ("1,b,3", "Could not parse line index"),
        ("1,2,", "Could not parse seg index"),
    ],
)
def test_parse_resume_address_errors(value: str, message: str) -> None:
    """Malformed addresses name the offending component."""

    with pytest.raises(InvalidAddressError, match=message):
        TextAddress.parse(value)


def test_address_string_round_trips_through_parse() -> None:
    """The resume hint printed on failure is accepted by ``--from``."""

    address = TextAddress(12, 0, 1)

    assert str(address) == "12,0,1"
    assert TextAddress.parse(str(address)) == address


@pytest.mark.parametrize(
    ("language", "expected"),
    [
        ("Spanish", "movie_Spanish.srt"),
        ("Brazilian Portuguese", "movie_Brazilian-Portuguese.srt"),
        ("日本語", "movie_translated.srt"),
    ],
)
def test_derive_output_path(language: str, expected: str) -> None:
    """The default output sits next to the input with a language suffix."""

    assert cli.derive_output_path(Path("/data/movie.srt"), language).name == expected


def test_dry_run_writes_copy_of_input(
    write_file: Callable[[str, str], Path],
    config_file: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """A dry run exercises the whole pipeline with the echo provider."""

    input_path = write_file("movie.srt", FOUR_LINE_SRT)

    exit_code = cli.main([str(input_path), "-c", str(config_file), "--dry-run"])

    output_path = input_path.with_name("movie_Spanish.srt")
    assert exit_code == 0
    assert item_texts(output_path) == ["Line 1", "Line 2", "Line 3", "Line 4"]
    out = capsys.readouterr().out
    assert "Translation complete." in out
    assert "4 translated / 4 total" in out
    assert "echo" in out


def test_target_language_flag_changes_output_name(
    write_file: Callable[[str, str], Path],
    config_file: Path,
) -> None:
    """``-t`` overrides the configured language."""

    input_path = write_file("movie.srt", FOUR_LINE_SRT)

    exit_code = cli.main(
        [str(input_path), "-c", str(config_file), "--dry-run", "-t", "German"]
    )

    assert exit_code == 0
    assert input_path.with_name("movie_German.srt").exists()


def test_invalid_resume_address_exits_with_error(
    write_file: Callable[[str, str], Path],
    config_file: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """A malformed ``--from`` is reported before any work starts."""

    input_path = write_file("movie.srt", FOUR_LINE_SRT)

    exit_code = cli.main([str(input_path), "-c", str(config_file), "--from", "1,2"])

    assert exit_code == 1
    assert "must be in format item,line,seg" in capsys.readouterr().out


def test_missing_configuration_exits_with_error(
    write_file: Callable[[str, str], Path],
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Without any configuration file the run stops with exit code 1."""

    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    input_path = write_file("movie.srt", FOUR_LINE_SRT)

    exit_code = cli.main([str(input_path), "--dry-run"])

    assert exit_code == 1
    assert "No configuration file found" in capsys.readouterr().out


def test_overwriting_input_is_refused(
    write_file: Callable[[str, str], Path],
    config_file: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """The output may not be the input file."""

    input_path = write_file("movie.srt", FOUR_LINE_SRT)

    exit_code = cli.main(
        [str(input_path), "-c", str(config_file), "--dry-run", "-o", str(input_path)]
    )

    assert exit_code == 1
    assert "Refusing to overwrite" in capsys.readouterr().out


def test_batch_failure_prints_resume_hint_and_resume_completes(
    write_file: Callable[[str, str], Path],
    config_file: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """A failed run tells the user which ``--from`` continues it."""

    input_path = write_file("movie.srt", FOUR_LINE_SRT)
    output_path = input_path.with_name("movie.es.srt")
    translators = [
        FakeTranslator(translations=LINE_TRANSLATIONS, max_length=2, fail_on_call=2),
        FakeTranslator(translations=LINE_TRANSLATIONS, max_length=2),
    ]

    def fake_build_provider(config: Any, **kwargs: Any) -> FakeTranslator:
        return translators.pop(0)

    monkeypatch.setattr(cli, "build_provider", fake_build_provider)
    args = [str(input_path), "-c", str(config_file), "-o", str(output_path)]

    assert cli.main(args) == 1
    out = capsys.readouterr().out
    assert "Batch 2 failed" in out
    assert "Resume with: --from 2,0,0" in out

    assert cli.main(args + ["--from", "2,0,0"]) == 0
    assert "Trans 1" in output_path.read_text(encoding="utf-8")
    assert "Trans 4" in output_path.read_text(encoding="utf-8")
    assert "2 from a previous run" in capsys.readouterr().out


def test_failure_without_progress_does_not_suggest_resuming(
    write_file: Callable[[str, str], Path],
    config_file: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """When the first batch fails there is no output to continue from."""

    input_path = write_file("movie.srt", FOUR_LINE_SRT)
    output_path = input_path.with_name("movie.es.srt")
    monkeypatch.setattr(
        cli,
        "build_provider",
        lambda config, **kwargs: FakeTranslator(max_length=2, fail_on_call=1),
    )

    exit_code = cli.main([str(input_path), "-c", str(config_file), "-o", str(output_path)])

    out = capsys.readouterr().out
    assert exit_code == 1
    assert "Batch 1 failed" in out
    assert "Resume with" not in out
    assert "rerun without --from" in out
    assert not output_path.exists()


def test_os_errors_while_reading_input_exit_with_error(
    write_file: Callable[[str, str], Path],
    config_file: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Unreadable input is reported with exit code 1 instead of a traceback."""

    input_path = write_file("movie.srt", FOUR_LINE_SRT)

    def unreadable(path: Path) -> None:
        raise PermissionError(f"Permission denied: '{path}'")

    monkeypatch.setattr("subtrans.translator.open_document", unreadable)

    exit_code = cli.main([str(input_path), "-c", str(config_file), "--dry-run"])

    assert exit_code == 1
    assert "Permission denied" in capsys.readouterr().out


def test_uncreatable_output_directory_exits_with_error(
    write_file: Callable[[str, str], Path],
    config_file: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """An output below a regular file cannot be created."""

    input_path = write_file("movie.srt", FOUR_LINE_SRT)
    blocker = write_file("blocker", "")

    exit_code = cli.main(
        [
            str(input_path),
            "-c",
            str(config_file),
            "--dry-run",
            "-o",
            str(blocker / "out.srt"),
        ]
    )

    assert exit_code == 1
    assert "Could not create output directory" in capsys.readouterr().out


def test_unknown_resume_address_exits_with_error(
    write_file: Callable[[str, str], Path],
    config_file: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Resuming at an address the input does not contain fails cleanly."""

    input_path = write_file("movie.srt", FOUR_LINE_SRT)
    output_path = write_file("movie_Spanish.srt", FOUR_LINE_SRT)

    exit_code = cli.main(
        [
            str(input_path),
            "-c",
            str(config_file),
            "--dry-run",
            "-o",
            str(output_path),
            "--from",
            "99,0,0",
        ]
    )

    assert exit_code == 1
    assert "Index 99,0,0 not found in input file." in capsys.readouterr().out
