"""Structured JSON log output"""

import io
import json
import logging

import pytest

from warrantyhub.infrastructure.observability.logging import (
    CustomJsonFormatter,
    log_dropped_records,
    log_transition,
    setup_logging,
)


@pytest.fixture
def json_logs(monkeypatch):
    root = logging.getLogger()
    level = root.level
    monkeypatch.setattr(root, "handlers", [])
    setup_logging("INFO")
    [handler] = root.handlers
    assert isinstance(handler.formatter, CustomJsonFormatter)

    # Point the configured handler at a buffer the test can read
    stream = io.StringIO()
    handler.setStream(stream)
    yield lambda: [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]
    root.setLevel(level)


def test_transition_log_is_structured(json_logs):
    log_transition("contract", "c-1", "DRAFT", "SOLD", actor_id="emp-1", backend="embedded")

    [entry] = json_logs()
    assert entry["message"] == "Lifecycle update persisted"
    assert entry["level"] == "INFO"
    assert entry["service"] == "warrantyhub-engine"
    assert entry["from_state"] == "DRAFT"
    assert entry["to_state"] == "SOLD"
    assert entry["backend"] == "embedded"
    assert "timestamp" in entry


def test_dropped_records_warning(json_logs):
    log_dropped_records("batch", 3, "warrantyhub.local.batches")

    [entry] = json_logs()
    assert entry["level"] == "WARNING"
    assert entry["dropped"] == 3
    assert entry["storage_key"] == "warrantyhub.local.batches"
