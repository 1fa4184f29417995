"""Tests for the prebuilt command-line interface."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

import prebuilt.cli as cli_module
from prebuilt import __version__
from prebuilt.cli import app
from prebuilt.pipeline import run_from_config
from tests.factories import INDEX_URL, TARGET, FakeIndex, Signer

runner = CliRunner()

FOO_BINS = {"foo": b"foo binary"}


def strip_ansi(text: str) -> str:
    return re.sub(r"\x1b\[[0-9;]*m", "", text)


@pytest.fixture
def offline(monkeypatch: pytest.MonkeyPatch, fake_index: FakeIndex) -> FakeIndex:
    """Route the CLI's index traffic to the in-memory index."""

    def _run(config: Any, echo: Any = print) -> Any:
        return run_from_config(config, transport=fake_index.transport, echo=echo)

    monkeypatch.setattr(cli_module, "run_from_config", _run)
    return fake_index


def _base_args(signer: Signer, tmp_path: Path) -> list[str]:
    return [
        "--index",
        INDEX_URL,
        "--pub-key",
        signer.encoded,
        "--target",
        TARGET,
        "--path",
        str(tmp_path / "bin"),
        "--reports",
        "",
    ]


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help_lists_options() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    output = strip_ansi(result.output)
    for option in ("--index", "--pub-key", "--safe", "--no-verify", "--out", "--ci"):
        assert option in output


def test_install(offline: FakeIndex, signer: Signer, tmp_path: Path) -> None:
    offline.publish("foo", "1.2.0", FOO_BINS)
    result = runner.invoke(app, [*_base_args(signer, tmp_path), "foo"])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "bin" / "foo").read_bytes() == FOO_BINS["foo"]


def test_install_csv_packages(offline: FakeIndex, signer: Signer, tmp_path: Path) -> None:
    offline.publish("foo", "1.2.0", FOO_BINS)
    offline.publish("bar", "0.3.0", {"bar": b"bar binary"})
    result = runner.invoke(app, [*_base_args(signer, tmp_path), "foo,bar@0.3.0"])
    assert result.exit_code == 0, result.output
    assert sorted(p.name for p in (tmp_path / "bin").iterdir()) == ["bar", "foo"]


def test_events_on_stdout(offline: FakeIndex, signer: Signer, tmp_path: Path) -> None:
    offline.publish("foo", "1.2.0", FOO_BINS)
    result = runner.invoke(app, [*_base_args(signer, tmp_path), "--out", "foo"])
    assert result.exit_code == 0
    events = [
        json.loads(line) for line in result.stdout.splitlines() if line.startswith("{")
    ]
    assert [e["event"] for e in events] == [
        "target",
        "info_verify",
        "hashes_verify",
        "bin_installed",
    ]


def test_env_vars(offline: FakeIndex, signer: Signer, tmp_path: Path) -> None:
    offline.publish("foo", "1.2.0", FOO_BINS)
    env = {
        "PREBUILT_INDEX": INDEX_URL,
        "PREBUILT_PUB_KEY": signer.encoded,
        "PREBUILT_TARGET": TARGET,
        "PREBUILT_PATH": str(tmp_path / "env-bin"),
        "PREBUILT_REPORTS": "",
    }
    result = runner.invoke(app, ["foo"], env=env)
    assert result.exit_code == 0, result.output
    assert (tmp_path / "env-bin" / "foo").exists()


def test_failed_package_sets_exit_code(
    offline: FakeIndex, signer: Signer, tmp_path: Path
) -> None:
    offline.publish("foo", "1.2.0", FOO_BINS)
    result = runner.invoke(app, [*_base_args(signer, tmp_path), "nope,foo"])
    assert result.exit_code == 21
    assert "Failed to install nope" in result.output
    assert (tmp_path / "bin" / "foo").exists()


def test_safe_conflict_exit_code(offline: FakeIndex, signer: Signer, tmp_path: Path) -> None:
    offline.publish("foo", "1.2.0", FOO_BINS)
    (tmp_path / "bin").mkdir()
    (tmp_path / "bin" / "foo").write_bytes(b"mine")
    result = runner.invoke(app, [*_base_args(signer, tmp_path), "--safe", "foo"])
    assert result.exit_code == 42
    assert (tmp_path / "bin" / "foo").read_bytes() == b"mine"


def test_pub_key_without_index(signer: Signer) -> None:
    result = runner.invoke(app, ["--pub-key", signer.encoded, "foo"])
    assert result.exit_code == 10
    assert "pub_key must be used with index" in result.output


def test_missing_keys_for_custom_index() -> None:
    result = runner.invoke(app, ["--index", "https://prebuilt.example.com/index", "foo"])
    assert result.exit_code == 11


def test_no_create_path(offline: FakeIndex, signer: Signer, tmp_path: Path) -> None:
    result = runner.invoke(
        app, [*_base_args(signer, tmp_path), "--no-create-path", "foo"]
    )
    assert result.exit_code == 12
    assert offline.requests == []


def test_http_index_rejected() -> None:
    result = runner.invoke(app, ["--index", "http://example.com/index", "foo"])
    assert result.exit_code == 10
    assert "https" in result.output
