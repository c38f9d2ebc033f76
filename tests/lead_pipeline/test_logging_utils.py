"""Unit tests for the log formatters."""

import json
import logging

import pytest

from lead_pipeline.logging_utils import HumanReadableFormatter, StructuredFormatter, setup_logging


def make_record(**extra):
    record = logging.LogRecord(
        "lead_pipeline.enrichment", logging.INFO, __file__, 10, "Enriched %d fields", (3,), None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:

    @pytest.mark.unit
    def test_context_fields_lifted(self):
        record = make_record(lead_id="lead-1", provider="apollo", fields=["email"], raw=object())

        line = json.loads(StructuredFormatter(service_name="test").format(record))

        assert line["message"] == "Enriched 3 fields"
        assert line["service"] == "test"
        assert line["lead_id"] == "lead-1"
        assert line["provider"] == "apollo"
        assert line["extra"]["fields"] == ["email"]
        assert isinstance(line["extra"]["raw"], str)

    @pytest.mark.unit
    def test_no_extra_key_without_extras(self):
        line = json.loads(StructuredFormatter().format(make_record()))
        assert "extra" not in line


class TestHumanReadableFormatter:

    @pytest.mark.unit
    def test_context_suffix(self):
        text = HumanReadableFormatter(use_colors=False).format(make_record(lead_id="lead-1"))

        assert text.endswith("lead_pipeline.enrichment: Enriched 3 fields (lead_id=lead-1)")


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    quieted = {name: logging.getLogger(name).level for name in ("urllib3", "twilio.http_client")}
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    for name, saved in quieted.items():
        logging.getLogger(name).setLevel(saved)


class TestSetupLogging:

    @pytest.mark.unit
    def test_formatter_follows_app_env(self, monkeypatch, restore_logging):
        monkeypatch.setenv("APP_ENV", "dev")
        setup_logging(level="INFO")
        assert isinstance(logging.getLogger().handlers[0].formatter, HumanReadableFormatter)

        monkeypatch.setenv("APP_ENV", "prod")
        setup_logging(level="INFO")
        assert isinstance(logging.getLogger().handlers[0].formatter, StructuredFormatter)
        assert len(logging.getLogger().handlers) == 1

    @pytest.mark.unit
    def test_third_party_loggers_quieted_unless_debug(self, restore_logging):
        setup_logging(level="INFO", structured=True)
        assert logging.getLogger("urllib3").level == logging.WARNING
        assert logging.getLogger("twilio.http_client").level == logging.WARNING

        setup_logging(level="DEBUG", structured=True)
        assert logging.getLogger("urllib3").level == logging.DEBUG
