import json
import logging
import sys

from multiput.common.logging import JsonFormatter, setup_logging


def _record(**kwargs) -> logging.LogRecord:
    record = logging.LogRecord(
        name="upload",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="upload_started parts=%s",
        args=(3,),
        exc_info=kwargs.pop("exc_info", None),
    )
    for key, value in kwargs.items():
        setattr(record, key, value)
    return record


def test_json_formatter_merges_extra_fields():
    record = _record(extra={"upload_id": "abc", "parts": 3})

    payload = json.loads(JsonFormatter().format(record))

    assert payload == {
        "level": "INFO",
        "logger": "upload",
        "message": "upload_started parts=3",
        "upload_id": "abc",
        "parts": 3,
    }


def test_json_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record(exc_info=sys.exc_info())

    payload = json.loads(JsonFormatter().format(record))

    assert "RuntimeError: boom" in payload["exc_info"]


def test_setup_logging_applies_level_and_format():
    setup_logging(level="WARNING", fmt="plain")

    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert not isinstance(root.handlers[0].formatter, JsonFormatter)

    cli = logging.getLogger("multiput.cli")
    assert cli.propagate is False

    setup_logging(level="INFO", fmt="json")
    assert isinstance(logging.getLogger().handlers[0].formatter, JsonFormatter)
