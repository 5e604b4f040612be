"""
Tests for structured logging and configuration
"""

import json
import logging

from lending_core.logging_config import JSONFormatter, setup_logging, log_action
from lending_core.config import LendingConfig


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []
    
    def emit(self, record):
        self.records.append(record)


class TestStructuredLogging:
    """Test JSON log records"""
    
    def test_log_action_fields(self):
        logger = logging.getLogger("lending.test.actions")
        logger.setLevel(logging.INFO)
        handler = ListHandler()
        logger.addHandler(handler)
        try:
            log_action(logger, "info", "Repaid 10 on loan 3", user_id="borrower",
                       action="loan.repaid", resource="loan:3", extra={"amount": "10"})
        finally:
            logger.removeHandler(handler)
        
        entry = json.loads(JSONFormatter().format(handler.records[0]))
        assert entry["level"] == "INFO"
        assert entry["message"] == "Repaid 10 on loan 3"
        assert entry["user_id"] == "borrower"
        assert entry["action"] == "loan.repaid"
        assert entry["resource"] == "loan:3"
        assert entry["extra"] == {"amount": "10"}
        assert "correlation_id" not in entry
    
    def test_disabled_level_is_skipped(self):
        logger = logging.getLogger("lending.test.quiet")
        logger.setLevel(logging.WARNING)
        handler = ListHandler()
        logger.addHandler(handler)
        try:
            log_action(logger, "info", "ignored")
        finally:
            logger.removeHandler(handler)
        assert handler.records == []
    
    def test_setup_logging_replaces_handlers(self, tmp_path):
        log_file = tmp_path / "lending.log"
        logger = setup_logging("DEBUG", logger_name="lending.test.setup", log_file=str(log_file))
        logger = setup_logging("DEBUG", logger_name="lending.test.setup", log_file=str(log_file))
        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
        
        logger.info("hello")
        logger.handlers[0].close()
        assert json.loads(log_file.read_text().strip())["message"] == "hello"


class TestConfig:
    """Test environment-driven configuration"""
    
    def test_defaults(self):
        config = LendingConfig()
        assert config.period_in_seconds == 86400
        assert config.negative_time_offset == 10800
        assert config.interest_rate_factor == 10 ** 9
        assert config.cooldown_in_periods == 3
    
    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("LENDING_ACCURACY_FACTOR", "1")
        monkeypatch.setenv("LENDING_INTEREST_FORMULA", "simple")
        config = LendingConfig()
        assert config.accuracy_factor == 1
        assert config.interest_formula == "simple"
