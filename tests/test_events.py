"""Tests for brainstorm/events.py."""

import logging

from brainstorm.events import emit


def test_emit_forwards_to_observer():
    seen = []
    emit(seen.append, "Round 1/2: openai:gpt-4o responding...")
    assert seen == ["Round 1/2: openai:gpt-4o responding..."]


def test_emit_without_observer_only_logs(caplog):
    with caplog.at_level(logging.DEBUG, logger="brainstorm.progress"):
        emit(None, "Synthesizing final output using openai:gpt-4o...")

    [record] = [r for r in caplog.records if r.name == "brainstorm.progress"]
    assert record.levelno == logging.DEBUG
    assert record.getMessage() == "Synthesizing final output using openai:gpt-4o..."
