from pathlib import Path

import pytest

from storage_client import main as cli


def test_parser_upload_arguments() -> None:
    args = cli._build_parser().parse_args(
        ["upload", "docs", "report.pdf", "2024/report.pdf", "--upsert", "--cache-control", "60"]
    )

    assert args.command == "upload"
    assert args.source == Path("report.pdf")
    assert args.upsert is True
    options = cli._file_options(args)
    assert options.upsert is True
    assert options.cache_control == "60"


def test_parser_sign_accepts_many_paths() -> None:
    args = cli._build_parser().parse_args(["sign", "docs", "a.txt", "b.txt", "--expires-in", "30"])

    assert args.paths == ["a.txt", "b.txt"]
    assert args.expires_in == 30
    assert cli._transform(args) is None


def test_transform_from_size_flags() -> None:
    args = cli._build_parser().parse_args(["public-url", "docs", "a.png", "--width", "64"])

    transform = cli._transform(args)
    assert transform.width == 64
    assert transform.height is None


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        cli._build_parser().parse_args([])


def test_missing_url_is_reported(monkeypatch, capsys) -> None:
    monkeypatch.setattr("storage_client.client.STORAGE_URL", "")

    assert cli.main(["buckets"]) == 1
    assert "STORAGE_URL is not configured" in capsys.readouterr().err
