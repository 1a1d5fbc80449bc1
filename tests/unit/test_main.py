"""Unit tests for main application module."""

from pathlib import Path

from fastapi.testclient import TestClient

from orchestration.core import InMemoryNotificationSink
from orchestration.main import build_services, create_app, get_config_path
from orchestration.persistence import InMemoryDatabase
from orchestration.utils.config import AppConfig, AppSettings, WorkflowConfig


def _config(**app_fields) -> AppConfig:
    return AppConfig(
        app=AppSettings(workspace_id="ws_main", **app_fields),
        workflow=WorkflowConfig(scheduler_workers=2),
    )


class TestBuildServices:
    """Tests for build_services."""

    def test_components_share_workspace_and_db(self) -> None:
        """Test every component is wired to the same workspace and database."""
        db = InMemoryDatabase()
        services = build_services(_config(), db=db)

        assert services.db is db
        assert services.workspace_id == "ws_main"
        for component in (
            services.memory,
            services.message_bus,
            services.workflow_engine,
            services.team_executor,
            services.orchestrator,
            services.autonomy,
            services.templates,
        ):
            assert component.workspace_id == "ws_main"
        assert services.workflow_engine.scheduler.workers == 2

    def test_team_executor_shares_engine_executor(self) -> None:
        services = build_services(_config())

        assert services.team_executor.executor is services.workflow_engine.executor

    def test_default_sink(self) -> None:
        services = build_services(_config())

        assert isinstance(services.notification_sink, InMemoryNotificationSink)

    def test_template_directory_from_config(self, tmp_path) -> None:
        """Test the template catalog is read from the configured directory."""
        (tmp_path / "teams").mkdir()
        config = _config()
        config.templates.directory = str(tmp_path)

        services = build_services(config)

        assert services.templates.catalog.team_templates == []
        assert services.templates.catalog.workflow_templates == []

    def test_bundled_templates_by_default(self) -> None:
        services = build_services(_config())

        assert services.templates.catalog.get_team_template("sales-team") is not None


class TestCreateApp:
    """Tests for create_app function."""

    def test_create_app_default(self) -> None:
        """Test creating app with the bundled configuration."""
        app = create_app()

        assert app.title == "Agent Orchestration"
        assert hasattr(app.state, "config")
        assert hasattr(app.state, "services")

    def test_config_path_points_at_bundled_yaml(self) -> None:
        assert get_config_path().name == "app.yaml"
        assert get_config_path().exists()

    def test_create_app_with_custom_config(self, tmp_path: Path) -> None:
        config_file = tmp_path / "test_config.yaml"
        config_file.write_text(
            """
app:
  name: "Test App"
  version: "0.0.1"
  env: testing
  debug: true
  workspace_id: ws_yaml

logging:
  level: DEBUG
  format: console
"""
        )

        app = create_app(config_path=config_file)

        assert app.title == "Test App"
        assert app.version == "0.0.1"
        assert app.state.services.workspace_id == "ws_yaml"

    def test_create_app_with_services(self) -> None:
        services = build_services(_config(name="Injected"))

        app = create_app(services=services)

        assert app.title == "Injected"
        assert app.state.services is services

    def test_create_app_has_routes(self) -> None:
        app = create_app(services=build_services(_config()))

        routes = [route.path for route in app.routes]
        assert "/" in routes
        assert "/ready" in routes
        assert "/live" in routes
        assert "/api/v1/health" in routes
        assert "/api/v1/approvals" in routes


class TestRootEndpoints:
    """Tests for the root, readiness and liveness endpoints."""

    def test_root_endpoint(self) -> None:
        client = TestClient(create_app(services=build_services(_config())))

        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Agent Orchestration"
        assert data["workspace_id"] == "ws_main"
        assert data["status"] == "running"
        assert data["docs"] == "disabled"

    def test_liveness(self) -> None:
        client = TestClient(create_app(services=build_services(_config())))

        response = client.get("/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    def test_readiness_before_startup(self) -> None:
        """Test readiness fails while the step scheduler is not running."""
        client = TestClient(create_app(services=build_services(_config())))

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"

    def test_readiness_after_startup(self) -> None:
        app = create_app(services=build_services(_config()))

        with TestClient(app) as client:
            response = client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ready"}
        assert app.state.services.workflow_engine.scheduler.is_running is False

    def test_request_id_echoed(self) -> None:
        client = TestClient(create_app(services=build_services(_config())))

        response = client.get("/live", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"
