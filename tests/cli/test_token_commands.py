from __future__ import annotations

import json
from pathlib import Path

import pytest
from loguru import logger
from typer.testing import CliRunner

from tokenprism.cli import tokens as tokens_module
from tokenprism.cli.main import create_app
from tokenprism.core.container import build_container
from tokenprism.core.data.cache import ThreadSafeInMemoryCache

WIDE = {"COLUMNS": "250"}


@pytest.fixture(autouse=True)
def _detach_log_sinks():
    # the CLI points loguru at the runner's stderr, which is closed after each invoke
    yield
    logger.remove()


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def services(config, fake_sources, metrics, monkeypatch):
    calls: list[Path | None] = []

    def factory(config_path=None):
        calls.append(config_path)
        return build_container(config, sources=fake_sources, cache=ThreadSafeInMemoryCache(), metrics=metrics)

    monkeypatch.setattr(tokens_module, "build_services", factory)
    return calls


def _read_jsonl(path: Path) -> list[dict[str, object]]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]


def test_snapshot_jsonl_output(runner: CliRunner, services, tmp_path: Path) -> None:
    output = tmp_path / "tokens.jsonl"

    result = runner.invoke(create_app(), ["--format", "jsonl", "--output", str(output), "snapshot"])

    assert result.exit_code == 0, result.output
    rows = _read_jsonl(output)
    assert [row["address"] for row in rows] == ["TokenA", "TokenB"]
    assert rows[0]["sources"] == "dexscreener,jupiter"
    assert rows[0]["volume"] == 350.0
    assert services == [None]


def test_snapshot_table_respects_filters(runner: CliRunner, services) -> None:
    result = runner.invoke(create_app(), ["--no-color", "snapshot", "--limit", "1", "--sort", "volume"], env=WIDE)

    assert result.exit_code == 0, result.output
    assert "TokenA" in result.output
    assert "TokenB" not in result.output
    assert "quality_score" in result.output


def test_snapshot_with_nothing_to_show(runner: CliRunner, services) -> None:
    result = runner.invoke(create_app(), ["--no-color", "snapshot", "--min-volume", "100000"], env=WIDE)

    assert result.exit_code == 0, result.output
    assert "No tokens found." in result.output


def test_config_path_is_forwarded(runner: CliRunner, services, tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"

    runner.invoke(create_app(), ["--config", str(config_file), "--format", "jsonl", "snapshot"])

    assert services == [config_file]


def test_short_search_exits_with_validation_code(runner: CliRunner, services) -> None:
    result = runner.invoke(create_app(), ["search", "a"])

    assert result.exit_code == 2
    assert "VALIDATION_ERROR" in result.output


def test_unknown_token_exits_with_validation_code(runner: CliRunner, services) -> None:
    result = runner.invoke(create_app(), ["token", "NoSuchMint"])

    assert result.exit_code == 2
    assert "TOKEN_NOT_FOUND" in result.output


def test_token_lookup(runner: CliRunner, config, metrics, source_factory, make_record, monkeypatch, tmp_path) -> None:
    record = make_record("BonkMint", volume=77.0)
    source = source_factory("dexscreener", by_address={"bonkmint": record})
    monkeypatch.setattr(
        tokens_module,
        "build_services",
        lambda config_path=None: build_container(
            config, sources=[source], cache=ThreadSafeInMemoryCache(), metrics=metrics
        ),
    )
    output = tmp_path / "token.jsonl"

    result = runner.invoke(create_app(), ["-f", "jsonl", "-o", str(output), "token", "BonkMint"])

    assert result.exit_code == 0, result.output
    assert _read_jsonl(output)[0]["volume"] == 77.0
    assert source.closed is True


def test_unsupported_format_is_rejected(runner: CliRunner, services) -> None:
    result = runner.invoke(create_app(), ["--format", "xml", "snapshot"])

    assert result.exit_code == 2
    assert services == []


def test_serve_passes_overrides(runner: CliRunner, monkeypatch, tmp_path: Path) -> None:
    import tokenprism.web.main as web_main

    captured = {}

    def fake_serve(server=None, *, log_level="info"):
        captured["server"] = server
        captured["log_level"] = log_level

    monkeypatch.setattr(web_main, "serve", fake_serve)
    monkeypatch.delenv("TOKENPRISM_CONFIG_FILE", raising=False)
    config_file = tmp_path / "config.toml"
    config_file.write_text("[server]\nport = 4100\n", encoding="utf-8")

    result = runner.invoke(create_app(), ["--config", str(config_file), "serve", "--host", "127.0.0.1"])

    assert result.exit_code == 0, result.output
    assert captured["server"].host == "127.0.0.1"
    assert captured["server"].port == 4100
    assert captured["log_level"] == "WARNING"
