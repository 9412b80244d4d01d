import json
import logging
import sys

from kiosco.core.logging_config import JsonFormatter


def make_record(**extra):
    record = logging.LogRecord("kiosco.services.checkout", logging.INFO, __file__, 10, "checkout committed", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_merges_context_fields():
    line = JsonFormatter().format(make_record(sale_id="abc", total="3000.00"))

    payload = json.loads(line)
    assert payload["message"] == "checkout committed"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "kiosco.services.checkout"
    assert payload["sale_id"] == "abc"
    assert payload["total"] == "3000.00"
    assert "args" not in payload


def test_json_formatter_includes_exception_text():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = make_record()
        record.exc_info = sys.exc_info()

    payload = json.loads(JsonFormatter().format(record))
    assert "RuntimeError: boom" in payload["exc_info"]
