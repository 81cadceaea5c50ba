"""Structured Logging - JSON formatter output and idempotent setup."""

import json
import logging

from plataforma.infrastructure.observability import JSONFormatter, setup_logging


def _record(**extra):
    record = logging.LogRecord(
        "plataforma.test", logging.WARNING, __file__, 1, "Suspicious path blocked", None, None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extra_fields():
    line = JSONFormatter().format(_record(path="/.env", client_ip="203.0.113.9"))
    payload = json.loads(line)
    assert payload["level"] == "WARNING"
    assert payload["message"] == "Suspicious path blocked"
    assert payload["path"] == "/.env"
    assert payload["client_ip"] == "203.0.113.9"


def test_json_formatter_omits_absent_fields():
    payload = json.loads(JSONFormatter().format(_record()))
    assert "path" not in payload
    assert "startup_state" not in payload


def test_setup_logging_is_idempotent():
    setup_logging("DEBUG", "json")
    setup_logging("INFO", "text")
    named = [h for h in logging.root.handlers if h.get_name() == "plataforma"]
    assert len(named) == 1
    assert logging.root.level == logging.INFO
