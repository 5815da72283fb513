"""Tests for JSON-lines logging with cycle and connection fields."""

from __future__ import annotations

import io
import json

import pytest
from loguru import logger

from tokenprism.core.logging import configure_logging, log_context


@pytest.fixture
def buffer():
    stream = io.StringIO()
    configure_logging(console_stream=stream)
    yield stream
    logger.remove()


def _events(stream: io.StringIO) -> list[dict[str, object]]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


def test_cycle_and_source_are_top_level_fields(buffer) -> None:
    with log_context(trace_id="trace-123", cycle_id="c-1"):
        logger.bind(source="dexscreener").info("refresh complete", tokens=42)

    [event] = _events(buffer)
    assert event["trace_id"] == "trace-123"
    assert event["cycle_id"] == "c-1"
    assert event["source"] == "dexscreener"
    assert event["level"] == "INFO"
    assert event["message"] == "refresh complete"
    assert event["context"] == {"tokens": 42}


def test_connection_id_is_attached_inside_block(buffer) -> None:
    with log_context(connection_id="conn-9"):
        logger.debug("frame ignored")
    logger.info("outside")

    inside, outside = _events(buffer)
    assert inside["connection_id"] == "conn-9"
    assert "connection_id" not in outside


def test_nested_blocks_share_trace_id(buffer) -> None:
    with log_context(cycle_id="c-2") as trace_id:
        logger.info("first")
        with log_context(source="jupiter") as inner:
            logger.info("second")

    first, second = _events(buffer)
    assert inner == trace_id
    assert first["trace_id"] == second["trace_id"] == trace_id
    assert second["cycle_id"] == "c-2"
    assert second["source"] == "jupiter"


def test_events_outside_any_block_still_get_a_trace_id(buffer) -> None:
    logger.info("standalone")

    [event] = _events(buffer)
    assert isinstance(event["trace_id"], str) and event["trace_id"]
    assert "context" not in event


def test_level_filters_lower_events() -> None:
    stream = io.StringIO()
    configure_logging("warning", console_stream=stream)
    try:
        logger.info("hidden")
        logger.warning("shown")
    finally:
        logger.remove()

    assert [event["message"] for event in _events(stream)] == ["shown"]


def test_exception_is_serialised(buffer) -> None:
    try:
        raise RuntimeError("upstream exploded")
    except RuntimeError:
        logger.exception("refresh failed")

    [event] = _events(buffer)
    assert event["level"] == "ERROR"
    assert "upstream exploded" in event["exception"]


def test_file_sink_appends_json_lines(tmp_path) -> None:
    path = tmp_path / "logs" / "tokenprism.jsonl"
    configure_logging(console_stream=io.StringIO(), file_path=str(path))
    try:
        with log_context(cycle_id="c-3"):
            logger.info("written")
    finally:
        logger.remove()

    [event] = [json.loads(line) for line in path.read_text().splitlines()]
    assert event["message"] == "written"
    assert event["cycle_id"] == "c-3"
