import json
import logging

import pytest
from pydantic import ValidationError

from jobworth.core.config import Settings
from jobworth.core.logging import JsonFormatter, correlation_context, get_logger


def test_defaults():
    settings = Settings(_env_file=None, database_url="sqlite+pysqlite:///:memory:", admin_token=None)
    assert settings.submit_dedup_window_seconds == 600
    assert settings.lookup_dedup_window_seconds == 60
    assert settings.durable_dedup_window_seconds == 600
    assert settings.min_samples_histogram == 1000
    assert settings.min_samples_database == 1
    assert settings.submit_rank_backend == "histogram"
    assert settings.lookup_rank_backend == "database"


def test_blank_admin_token_disables_admin():
    assert Settings(_env_file=None, admin_token="   ").admin_token is None


def test_hard_capacity_below_soft_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, recency_soft_capacity=100, recency_hard_capacity=10)


def test_unknown_backend_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, lookup_rank_backend="redis")


def test_json_formatter_merges_structured_data():
    record = logging.LogRecord("jobworth.test", logging.INFO, __file__, 1, "submission_accepted", None, None)
    record.structured_data = {"score": 2.5, "component": "test"}
    with correlation_context("cid-1"):
        payload = json.loads(JsonFormatter().format(record))
    assert payload["event"] == "submission_accepted"
    assert payload["score"] == 2.5
    assert payload["correlation_id"] == "cid-1"
    assert payload["service"] == "jobworth"


def test_adapter_merges_defaults(caplog):
    logger = get_logger("jobworth.test.adapter", component="unit")
    with caplog.at_level(logging.INFO, logger="jobworth.test.adapter"):
        logger.info("event", extra={"structured_data": {"k": 1}})
    record = caplog.records[-1]
    assert record.structured_data == {"component": "unit", "k": 1}
