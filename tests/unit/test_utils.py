"""Unit tests for utility modules.

Tests for config, logging, exceptions and error_handlers.
"""

import json
import os
import tempfile
from unittest.mock import patch

import pytest

from orchestration.utils.config import (
    AppConfig,
    AppSettings,
    AutonomyConfig,
    Environment,
    LogFormat,
    LoggingConfig,
    MemoryConfig,
    WorkflowConfig,
    get_config,
    init_config,
    reset_config,
)
from orchestration.utils.error_handlers import create_error_response
from orchestration.utils.exceptions import (
    APIError,
    ApprovalExpiredError,
    BadRequestError,
    ConfigurationError,
    ConflictError,
    DispatchError,
    InternalServerError,
    InvalidConfigurationError,
    InvalidStateError,
    MissingConfigurationError,
    NotFoundError,
    OrchestrationError,
    RetryExhaustedError,
    ValidationError,
)
from orchestration.utils.logging import (
    LoggerAdapter,
    clear_correlation_id,
    get_agent_logger,
    get_api_logger,
    get_correlation_id,
    get_logger,
    get_team_logger,
    get_workflow_logger,
    set_correlation_id,
    setup_logging,
)

# ============================================================================
# Config Tests
# ============================================================================


class TestAppSettings:
    """Tests for AppSettings model."""

    def test_default_values(self):
        """Test default values are set correctly."""
        settings = AppSettings()
        assert settings.env == Environment.DEVELOPMENT
        assert settings.debug is False
        assert settings.host == "0.0.0.0"
        assert settings.port == 8000
        assert settings.workspace_id == "default"

    def test_invalid_port(self):
        """Test invalid port raises error."""
        with pytest.raises(ValueError):
            AppSettings(port=0)
        with pytest.raises(ValueError):
            AppSettings(port=70000)

    def test_blank_workspace(self):
        with pytest.raises(ValueError):
            AppSettings(workspace_id="  ")


class TestLoggingConfig:
    """Tests for LoggingConfig model."""

    def test_default_values(self):
        config = LoggingConfig()
        assert config.level == "INFO"
        assert config.format == LogFormat.JSON

    def test_level_is_normalized(self):
        """Test lower-case levels are accepted and upper-cased."""
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_invalid_level(self):
        with pytest.raises(ValueError):
            LoggingConfig(level="INVALID")


class TestSectionConfigs:
    """Tests for memory, workflow and autonomy sections."""

    def test_memory_defaults(self):
        config = MemoryConfig()
        assert config.short_term_ttl_hours == 24
        assert config.medium_term_ttl_days == 30
        assert config.short_to_medium_importance == 70
        assert config.medium_to_long_access == 10

    def test_memory_ttl_must_be_positive(self):
        with pytest.raises(ValueError):
            MemoryConfig(short_term_ttl_hours=0)

    def test_workflow_validation(self):
        """Test scheduler workers and retry budget must be positive."""
        with pytest.raises(ValueError):
            WorkflowConfig(scheduler_workers=0)
        with pytest.raises(ValueError):
            WorkflowConfig(default_max_attempts=0)
        assert WorkflowConfig(default_backoff_ms=0).default_backoff_ms == 0

    def test_risk_rule_levels(self):
        config = AutonomyConfig(risk_rules={"high": ["call_customer"]})
        assert config.risk_rules == {"high": ["call_customer"]}
        with pytest.raises(ValueError):
            AutonomyConfig(risk_rules={"extreme": ["launch"]})


class TestAppConfig:
    """Tests for AppConfig model."""

    def test_default_config(self):
        config = AppConfig()
        assert config.app.env == Environment.DEVELOPMENT
        assert config.workflow.scheduler_workers == 4
        assert config.autonomy.approval_expiry_hours == 24
        assert config.templates.directory is None

    def test_from_yaml(self):
        """Test loading from YAML file."""
        yaml_content = """
app:
  env: production
  port: 9000
  workspace_id: acme
logging:
  level: WARNING
  format: console
workflow:
  scheduler_workers: 8
autonomy:
  notify_user_ids: [ops_lead]
  risk_rules:
    critical: [wire_transfer]
templates:
  directory: /srv/templates
"""
        with tempfile.TemporaryDirectory() as tmpdir:
            yaml_path = os.path.join(tmpdir, "test_config.yaml")
            with open(yaml_path, "w") as f:
                f.write(yaml_content)
            config = AppConfig.from_yaml(yaml_path)
            assert config.app.env == Environment.PRODUCTION
            assert config.app.port == 9000
            assert config.app.workspace_id == "acme"
            assert config.logging.format == LogFormat.CONSOLE
            assert config.workflow.scheduler_workers == 8
            assert config.autonomy.notify_user_ids == ["ops_lead"]
            assert config.autonomy.risk_rules == {"critical": ["wire_transfer"]}
            assert config.templates.directory == "/srv/templates"

    def test_from_yaml_file_not_found(self):
        with pytest.raises(FileNotFoundError):
            AppConfig.from_yaml("/nonexistent/path.yaml")

    def test_from_yaml_not_a_mapping(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            yaml_path = os.path.join(tmpdir, "list.yaml")
            with open(yaml_path, "w") as f:
                f.write("- one\n- two\n")
            with pytest.raises(ValueError):
                AppConfig.from_yaml(yaml_path)

    def test_from_env(self):
        """Test loading from environment variables."""
        with patch.dict(
            os.environ,
            {
                "APP_ENV": "staging",
                "APP_DEBUG": "true",
                "APP_PORT": "5000",
                "WORKSPACE_ID": "ws_env",
                "LOG_LEVEL": "debug",
                "SCHEDULER_WORKERS": "6",
                "APPROVAL_EXPIRY_HOURS": "12",
                "APPROVAL_NOTIFY_USER_IDS": "u1, u2,,",
                "TEMPLATES_DIR": "/srv/templates",
            },
        ):
            config = AppConfig.from_env()
            assert config.app.env == Environment.STAGING
            assert config.app.debug is True
            assert config.app.port == 5000
            assert config.app.workspace_id == "ws_env"
            assert config.logging.level == "DEBUG"
            assert config.workflow.scheduler_workers == 6
            assert config.autonomy.approval_expiry_hours == 12
            assert config.autonomy.notify_user_ids == ["u1", "u2"]
            assert config.templates.directory == "/srv/templates"

    def test_env_overrides_yaml(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            yaml_path = os.path.join(tmpdir, "app.yaml")
            with open(yaml_path, "w") as f:
                f.write("app:\n  port: 9000\n  workspace_id: from_yaml\n")
            with patch.dict(os.environ, {"WORKSPACE_ID": "from_env"}):
                config = AppConfig.load(yaml_path=yaml_path)
            assert config.app.port == 9000
            assert config.app.workspace_id == "from_env"


class TestGlobalConfig:
    """Tests for global config functions."""

    def setup_method(self):
        reset_config()

    def teardown_method(self):
        reset_config()

    def test_get_config_not_initialized(self):
        with pytest.raises(RuntimeError):
            get_config()

    def test_init_config(self):
        config = init_config()
        assert get_config() is config


# ============================================================================
# Logging Tests
# ============================================================================


class TestLogging:
    """Tests for logging module."""

    def test_setup_logging_json(self):
        setup_logging(level="DEBUG", json_format=True)
        assert get_logger("test") is not None

    def test_setup_logging_console(self):
        setup_logging(level="INFO", json_format=False)
        assert get_logger("test") is not None

    def test_correlation_id(self):
        """Test correlation ID context."""
        assert get_correlation_id() is None
        cid = set_correlation_id()
        assert get_correlation_id() == cid
        clear_correlation_id()
        assert get_correlation_id() is None

    def test_set_specific_correlation_id(self):
        assert set_correlation_id("req-1") == "req-1"
        assert get_correlation_id() == "req-1"
        clear_correlation_id()


class TestLoggerAdapter:
    """Tests for LoggerAdapter and the scoped logger helpers."""

    def setup_method(self):
        setup_logging(level="DEBUG", json_format=True)

    def test_bind_and_unbind(self):
        adapter = LoggerAdapter("test", team_id="t1", execution_id="e1")

        bound = adapter.bind(step_id="s1")
        unbound = bound.unbind("execution_id")

        assert bound.context == {"team_id": "t1", "execution_id": "e1", "step_id": "s1"}
        assert unbound.context == {"team_id": "t1", "step_id": "s1"}
        assert adapter.context == {"team_id": "t1", "execution_id": "e1"}

    def test_scoped_loggers(self):
        assert get_agent_logger("a1", "Scorer").context == {
            "agent_id": "a1",
            "agent_name": "Scorer",
        }
        assert get_team_logger("t1").context == {"team_id": "t1"}
        assert get_team_logger("t1", "e1").context == {
            "team_id": "t1",
            "execution_id": "e1",
        }
        assert get_workflow_logger("w1", "e1").context == {
            "workflow_id": "w1",
            "execution_id": "e1",
        }
        assert get_api_logger().context == {}

    def test_logging_methods(self):
        adapter = get_workflow_logger("w1", "e1")
        adapter.debug("debug event", step_id="s1")
        adapter.info("info event")
        adapter.warning("warning event")
        adapter.error("error event")


# ============================================================================
# Exception Tests
# ============================================================================


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_base_to_dict(self):
        cause = ValueError("boom")
        error = OrchestrationError("Failed", details={"k": "v"}, cause=cause)

        assert error.to_dict() == {
            "error": "OrchestrationError",
            "message": "Failed",
            "details": {"k": "v"},
            "cause": "boom",
        }

    def test_not_found(self):
        error = NotFoundError("Workflow", "wf_1")

        assert error.message == "Workflow not found: wf_1"
        assert error.details == {"resource_type": "Workflow", "resource_id": "wf_1"}

    def test_invalid_state(self):
        error = InvalidStateError("Cannot pause", current_state="completed")

        assert error.current_state == "completed"
        assert error.details == {"current_state": "completed"}

    def test_domain_errors(self):
        assert ApprovalExpiredError("a1").details == {"action_id": "a1"}
        assert RetryExhaustedError("s1", 3).message == "Max retry attempts (3) exceeded"
        dispatch = DispatchError("agent_1", cause=RuntimeError("bus down"))
        assert dispatch.message == "Failed to dispatch task to agent: agent_1"
        assert dispatch.to_dict()["cause"] == "bus down"

    def test_configuration_errors(self):
        missing = MissingConfigurationError("WORKSPACE_ID")
        invalid = InvalidConfigurationError("APP_PORT", "abc")

        assert isinstance(missing, ConfigurationError)
        assert missing.message == "Missing required configuration: WORKSPACE_ID"
        assert invalid.details == {"config_key": "APP_PORT", "value": "abc"}

    @pytest.mark.parametrize(
        "error, status_code",
        [
            (BadRequestError(), 400),
            (ConflictError(), 409),
            (ValidationError(errors=[{"field": "x"}]), 422),
            (InternalServerError(), 500),
        ],
    )
    def test_api_status_codes(self, error, status_code):
        assert isinstance(error, APIError)
        assert isinstance(error, OrchestrationError)
        assert error.status_code == status_code


# ============================================================================
# Error Handler Tests
# ============================================================================


class TestCreateErrorResponse:
    """Tests for the error envelope."""

    def test_minimal_envelope(self):
        response = create_error_response(404, "NotFoundError", "Missing")

        assert response.status_code == 404
        assert json.loads(response.body) == {
            "success": False,
            "error": {"code": "NotFoundError", "message": "Missing"},
        }

    def test_details_and_request_id(self):
        response = create_error_response(
            409, "InvalidStateError", "Nope", details={"current_state": "paused"},
            request_id="req-1",
        )

        body = json.loads(response.body)
        assert body["error"]["details"] == {"current_state": "paused"}
        assert body["metadata"] == {"request_id": "req-1"}
