"""Tests for structlog configuration."""
import json
import logging

import structlog

from ragdesk.logging_setup import configure_logging


def test_json_lines_with_level_and_timestamp(caplog):
    caplog.set_level(logging.INFO)
    configure_logging(level="INFO", json_output=True)
    try:
        log = structlog.get_logger("ragdesk.test")
        log.info("index_ready", vectors=3)
        log.debug("filtered_out")
    finally:
        structlog.reset_defaults()

    messages = [r.getMessage() for r in caplog.records if r.name == "ragdesk.test"]
    assert len(messages) == 1
    event = json.loads(messages[0])
    assert event["event"] == "index_ready"
    assert event["vectors"] == 3
    assert event["level"] == "info"
    assert "timestamp" in event
