import json
import logging
import sys

from app.logging import JsonFormatter, _formatter_config


def _record(msg, args=(), exc_info=None):
    return logging.LogRecord("app.tasks", logging.ERROR, __file__, 10, msg, args, exc_info)


class TestJsonFormatter:
    def test_quotes_and_newlines_stay_valid_json(self):
        line = JsonFormatter().format(_record('bad "name"\nsecond line %s', ("x",)))
        payload = json.loads(line)
        assert payload["message"] == 'bad "name"\nsecond line x'
        assert payload["level"] == "ERROR"
        assert payload["logger"] == "app.tasks"
        assert "\n" not in line

    def test_traceback_is_embedded(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record("Processing failed", exc_info=sys.exc_info())
        payload = json.loads(JsonFormatter().format(record))
        assert "ValueError: boom" in payload["exc_info"]

    def test_formatter_selection(self):
        assert _formatter_config(True) == {"()": JsonFormatter}
        assert "format" in _formatter_config(False)
