import json
import logging

from spamzero.api.logs import JsonFormatter, TextFormatter


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("app", logging.INFO, __file__, 1, "hello %s", ("you",), None)
    record.__dict__.update(extra)
    return record


def test_json_formatter_includes_extra_fields():
    line = JsonFormatter().format(make_record(request_id="abc", status=201))
    entry = json.loads(line)

    assert entry["msg"] == "hello you"
    assert entry["level"] == "INFO"
    assert entry["logger"] == "app"
    assert entry["request_id"] == "abc"
    assert entry["status"] == 201
    assert "lineno" not in entry
    assert "args" not in entry


def test_json_formatter_stringifies_unserializable_values():
    from bson import ObjectId

    object_id = ObjectId()
    entry = json.loads(JsonFormatter().format(make_record(record_id=object_id)))

    assert entry["record_id"] == str(object_id)


def test_text_formatter_appends_context():
    line = TextFormatter().format(make_record(operation="insert"))

    assert line == "INFO app hello you operation=insert"
