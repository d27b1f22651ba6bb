"""
Tests for configuration and structured logging
"""

import json
import logging

from finpay.config import FinPayConfig, get_config, reload_config
from finpay.logging_config import JSONFormatter, setup_logging, log_action


class TestConfig:
    """Test environment-driven configuration"""
    
    def test_defaults(self):
        config = FinPayConfig()
        assert config.api_port == 3000
        assert config.jwt_algorithm == "HS256"
        assert config.jwt_expiry_hours == 24
        assert config.starting_balance == 1000
        assert config.seed_demo_accounts is True
    
    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("FINPAY_JWT_SECRET", "from-the-environment-0123456789abcdef")
        monkeypatch.setenv("FINPAY_STARTING_BALANCE", "500")
        monkeypatch.setenv("FINPAY_SEED_DEMO_ACCOUNTS", "false")
        
        config = FinPayConfig()
        assert config.jwt_secret == "from-the-environment-0123456789abcdef"
        assert config.starting_balance == 500
        assert config.seed_demo_accounts is False
    
    def test_reload_config(self, monkeypatch):
        monkeypatch.setenv("FINPAY_API_PORT", "8123")
        try:
            assert reload_config().api_port == 8123
            assert get_config().api_port == 8123
        finally:
            monkeypatch.delenv("FINPAY_API_PORT")
            reload_config()


class TestLogging:
    """Test structured log output"""
    
    def _record(self, **fields):
        record = logging.LogRecord("finpay.ledger", logging.INFO, __file__, 1, "Transfer completed", (), None)
        for key, value in fields.items():
            setattr(record, key, value)
        return record
    
    def test_json_formatter(self):
        line = JSONFormatter().format(self._record(user_id="alice", action="transfer",
                                                   extra={"amount": "200"}))
        entry = json.loads(line)
        
        assert entry["level"] == "INFO"
        assert entry["module"] == "finpay.ledger"
        assert entry["message"] == "Transfer completed"
        assert entry["user_id"] == "alice"
        assert entry["action"] == "transfer"
        assert entry["extra"] == {"amount": "200"}
        assert "resource" not in entry
    
    def test_setup_logging_replaces_handlers(self):
        logger = setup_logging("DEBUG", "json", logger_name="finpay.test")
        logger = setup_logging("WARNING", "text", logger_name="finpay.test")
        
        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
    
    def test_log_action_attaches_fields(self):
        captured = []
        
        class Capture(logging.Handler):
            def emit(self, record):
                captured.append(record)
        
        logger = logging.getLogger("finpay.test.capture")
        logger.addHandler(Capture())
        logger.setLevel(logging.INFO)
        
        log_action(logger, "info", "Account registered", user_id="carol",
                   action="register", resource="account", extra={"starting_balance": "1000"})
        
        assert len(captured) == 1
        assert captured[0].user_id == "carol"
        assert captured[0].action == "register"
        assert captured[0].extra == {"starting_balance": "1000"}
