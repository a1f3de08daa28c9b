"""Tests for the log formatters."""

from __future__ import annotations

import json
import logging

from app.core.logging import JSONFormatter, PlainFormatter, request_id_var


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "engine.network.network_runner", logging.INFO, __file__, 1,
        "Analysis complete", None, None,
    )
    for key, val in extra.items():
        setattr(record, key, val)
    return record


class TestFormatters:
    def test_json_carries_analysis_fields(self):
        entry = json.loads(JSONFormatter().format(_record(nodes=7, violations=3)))
        assert entry["message"] == "Analysis complete"
        assert entry["nodes"] == 7
        assert entry["violations"] == 3
        assert "request_id" not in entry

    def test_json_request_id(self):
        token = request_id_var.set("abc123")
        try:
            entry = json.loads(JSONFormatter().format(_record()))
        finally:
            request_id_var.reset(token)
        assert entry["request_id"] == "abc123"

    def test_plain_appends_counts(self):
        line = PlainFormatter().format(_record(nodes=7, alerts=2))
        assert line.endswith("Analysis complete nodes=7 alerts=2")

    def test_plain_skips_access_fields(self):
        line = PlainFormatter().format(_record(status_code=200))
        assert line.endswith("Analysis complete")
