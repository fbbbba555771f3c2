import json
import logging

from pngtoico.core.logging import JsonFormatter, RequestIdFilter, request_id_ctx_var


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("pngtoico.test", logging.INFO, __file__, 1, "wrote %s", ("icon",), None)
    record.__dict__.update(extra)
    return record


def test_json_formatter_renders_single_line_with_extra_fields():
    record = make_record(entries=3, sizes=[[16, 16]])

    line = JsonFormatter().format(record)

    payload = json.loads(line)
    assert "\n" not in line
    assert payload["message"] == "wrote icon"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "pngtoico.test"
    assert payload["extra"] == {"entries": 3, "sizes": [[16, 16]]}
    assert payload["timestamp"].endswith("Z")


def test_json_formatter_omits_extra_when_absent():
    payload = json.loads(JsonFormatter().format(make_record()))

    assert "extra" not in payload


def test_request_id_filter_uses_context():
    token = request_id_ctx_var.set("req-42")
    try:
        record = make_record()
        assert RequestIdFilter().filter(record)
    finally:
        request_id_ctx_var.reset(token)

    assert json.loads(JsonFormatter().format(record))["request_id"] == "req-42"
