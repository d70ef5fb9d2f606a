import io
import json
import logging
from pathlib import Path

from turntable.observability.logging import _JsonFormatter, configure_logging, log_event
from turntable.pipeline.stage import Stage


def test_events_are_json_with_fields_at_top_level():
    buffer = io.StringIO()
    handler = logging.StreamHandler(buffer)
    handler.setFormatter(_JsonFormatter())
    logger = logging.getLogger("turntable.test_events")
    logger.propagate = False
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)

    try:
        log_event(
            logger,
            "stage_failed",
            level=logging.ERROR,
            item=Path("/models/part.stl"),
            stage=Stage.CROP,
        )
    finally:
        logger.removeHandler(handler)

    record = json.loads(buffer.getvalue())
    assert record["event"] == "stage_failed"
    assert record["level"] == "ERROR"
    assert record["item"] == "/models/part.stl"
    assert record["stage"] == "crop"
    assert "lineno" not in record


def test_configure_logging_is_idempotent():
    first = configure_logging("INFO")
    count = len(first.handlers)
    second = configure_logging("debug")

    assert second is first
    assert len(second.handlers) == count
    assert second.level == logging.DEBUG
