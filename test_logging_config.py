import json
import logging

from logging_config import (
    CorrelationFilter,
    JSONFormatter,
    get_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)


def _record(message="Loan created"):
    return logging.LogRecord("loans.service", logging.INFO, __file__, 10, message, None, None)


def test_filter_stamps_current_correlation_id():
    token = set_correlation_id("0f8fad5b-d9cb-469f-a165-70867728950e")
    try:
        record = _record()
        assert CorrelationFilter().filter(record) is True
        assert record.correlation_id == "0f8fad5b"
    finally:
        reset_correlation_id(token)
    assert get_correlation_id() is None


def test_filter_outside_a_request():
    record = _record()
    CorrelationFilter().filter(record)
    assert record.correlation_id == "N/A"


def test_json_formatter():
    record = _record()
    CorrelationFilter().filter(record)

    data = json.loads(JSONFormatter().format(record))
    assert data["message"] == "Loan created"
    assert data["level"] == "INFO"
    assert data["logger"] == "loans.service"
    assert data["correlation_id"] == "N/A"
