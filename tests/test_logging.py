"""
Tests for logging setup and sensitive data masking
"""
import json
import logging

import pytest

from relaymail.utils.logging import (
    ContextAdapter,
    SensitiveDataFilter,
    SensitiveDataMasker,
    get_logger,
    init_logging,
)


@pytest.fixture(autouse=True)
def reset_logging():
    def _reset():
        root = logging.getLogger("relaymail")
        root.handlers.clear()
        root.setLevel(logging.NOTSET)

    _reset()
    yield
    _reset()


class TestSensitiveDataMasker:
    """Tests for masking"""

    def test_password_masked(self):
        masked = SensitiveDataMasker().mask_string("login password=hunter2 ok")
        assert "hunter2" not in masked
        assert "[REDACTED]" in masked

    def test_email_masked(self):
        masked = SensitiveDataMasker().mask_string("sending to alice@example.com")
        assert masked == "sending to a***@e***"

    def test_sensitive_dict_fields(self):
        masked = SensitiveDataMasker().mask_dict({"password": "pw", "nested": {"token": "t"}})
        assert masked == {"password": "[REDACTED]", "nested": {"token": "[REDACTED]"}}

    def test_filter_rewrites_message(self):
        record = logging.LogRecord(
            "relaymail.test", logging.INFO, __file__, 1, "secret=abc", None, None
        )
        SensitiveDataFilter().filter(record)
        assert record.msg == "secret=[REDACTED]"


class TestGetLogger:
    """Tests for logger naming"""

    def test_module_names_nest_under_root(self):
        assert get_logger("relaymail.core.email.smtp.exchange").name == (
            "relaymail.core.email.smtp.exchange"
        )
        assert get_logger("tests").name == "relaymail.tests"
        assert get_logger().name == "relaymail"

    def test_context_adapter(self):
        logger = get_logger("tests", request="abc")
        assert isinstance(logger, ContextAdapter)

    def test_no_handlers_until_initialised(self):
        get_logger("tests")
        assert logging.getLogger("relaymail").handlers == []


class TestInitLogging:
    """Tests for handler setup"""

    def test_console_only_by_default(self):
        manager = init_logging("DEBUG")
        assert len(manager.root_logger.handlers) == 1

    def test_json_file_handler(self, tmp_path):
        init_logging("DEBUG", log_dir=tmp_path)

        get_logger("tests").info("password=hunter2")
        for handler in logging.getLogger("relaymail").handlers:
            handler.flush()

        entry = json.loads((tmp_path / "relaymail.log").read_text().splitlines()[-1])
        assert entry["level"] == "INFO"
        assert "hunter2" not in entry["message"]

    def test_invalid_level(self):
        with pytest.raises(ValueError):
            init_logging("LOUD")


class TestContext:
    """Tests for structured context on records"""

    def test_adapter_context_on_record(self, caplog):
        caplog.set_level(logging.INFO, logger="relaymail")

        get_logger("tests", server="smtp.example.com").info(
            "hello", extra={"context": {"step": "rcpt"}}
        )

        assert caplog.records[-1].context == {"server": "smtp.example.com", "step": "rcpt"}

    def test_call_site_context_wins(self, caplog):
        caplog.set_level(logging.INFO, logger="relaymail")

        get_logger("tests", step="mail").info("hello", extra={"context": {"step": "data"}})

        assert caplog.records[-1].context == {"step": "data"}

    def test_context_written_masked_to_json(self, tmp_path):
        init_logging("DEBUG", log_dir=tmp_path)

        get_logger("tests", recipient="alice@example.com", password="hunter2").info("rcpt")
        for handler in logging.getLogger("relaymail").handlers:
            handler.flush()

        entry = json.loads((tmp_path / "relaymail.log").read_text().splitlines()[-1])
        assert entry["context"] == {"recipient": "a***@e***", "password": "[REDACTED]"}
