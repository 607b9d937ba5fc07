"""
Tests for the log formatters, context fields and correlation id.
"""
import json
import logging
from datetime import date
from uuid import uuid4

import pytest

from petcare.lib.logging import (
    ContextTextFormatter,
    JSONFormatter,
    get_correlation_id,
    log_with_context,
    set_correlation_id,
)
from petcare.models.recurring_series import Frequency


class _Capture(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def captured():
    handler = _Capture()
    logger = logging.getLogger("petcare.test")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    yield logger, handler
    logger.removeHandler(handler)
    set_correlation_id(None)


@pytest.mark.unit
def test_correlation_id_round_trip():
    set_correlation_id("abc-123")
    assert get_correlation_id() == "abc-123"
    set_correlation_id(None)
    assert get_correlation_id() is None


@pytest.mark.unit
def test_formatter_includes_correlation_id_and_extra_fields(captured):
    logger, handler = captured
    set_correlation_id("job-42")

    log_with_context(logger, "info", "Top-up finished", created=3, failed=0)

    line = json.loads(JSONFormatter().format(handler.records[0]))
    assert line["message"] == "Top-up finished"
    assert line["level"] == "INFO"
    assert line["logger"] == "petcare.test"
    assert line["correlation_id"] == "job-42"
    assert line["created"] == 3
    assert line["failed"] == 0


@pytest.mark.unit
def test_formatter_renders_exceptions(captured):
    logger, handler = captured

    try:
        raise ValueError("bad weekday")
    except ValueError:
        logger.error("Generation failed", exc_info=True)

    line = json.loads(JSONFormatter().format(handler.records[0]))
    assert "correlation_id" not in line
    assert "ValueError: bad weekday" in line["exception"]


@pytest.mark.unit
def test_context_values_are_flattened(captured):
    logger, handler = captured
    booking_id = uuid4()

    log_with_context(
        logger,
        "warning",
        "Series skipped",
        booking_id=booking_id,
        frequency=Frequency.MONTHLY,
        start_date=date(2026, 3, 2),
        policy_name=None,
    )

    record = handler.records[0]
    assert record.levelno == logging.WARNING
    assert record.extra_fields == {
        "booking_id": str(booking_id),
        "frequency": "monthly",
        "start_date": "2026-03-02",
    }


@pytest.mark.unit
def test_text_formatter_appends_context(captured):
    logger, handler = captured
    formatter = ContextTextFormatter("%(levelname)s %(message)s")

    log_with_context(logger, "info", "Booking cancelled", policy_name="Flexible", refund_amount=12.5)
    logger.info("Top-up run started")

    with_context, plain = handler.records
    assert formatter.format(with_context) == (
        "INFO Booking cancelled [policy_name=Flexible refund_amount=12.5]"
    )
    assert formatter.format(plain) == "INFO Top-up run started"
