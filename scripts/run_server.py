#!/usr/bin/env python
"""Server runner script.

Usage:
    python scripts/run_server.py [--mode dev|prod] [--host HOST] [--port PORT]

The orchestration state lives in process memory, so the server always runs a
single worker.
"""

import argparse
import os

import uvicorn

from orchestration.main import get_config_path
from orchestration.utils.config import init_config


def main() -> None:
    """Run the server with the specified configuration."""
    parser = argparse.ArgumentParser(description="Run the Agent Orchestration server")
    parser.add_argument(
        "--mode",
        choices=["dev", "prod"],
        default="dev",
        help="Server mode: dev (with reload) or prod",
    )
    parser.add_argument("--host", type=str, default=None, help="Host to bind to")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to")
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Log level (default: info for dev, warning for prod)",
    )
    parser.add_argument("--config", type=str, default=None, help="YAML config file")
    parser.add_argument("--env-file", type=str, default=None, help="Path to .env file")
    parser.add_argument(
        "--workspace", type=str, default=None, help="Workspace served by this process"
    )
    args = parser.parse_args()

    config_path = args.config
    if config_path is None and get_config_path().exists():
        config_path = str(get_config_path())

    # The app re-reads configuration on import; overrides travel via the env
    if args.host:
        os.environ["APP_HOST"] = args.host
    if args.port:
        os.environ["APP_PORT"] = str(args.port)
    if args.workspace:
        os.environ["WORKSPACE_ID"] = args.workspace

    config = init_config(yaml_path=config_path, env_file=args.env_file)
    dev = args.mode == "dev"
    log_level = args.log_level or ("info" if dev else "warning")

    print(f"\n{'=' * 60}")
    print(f"  Agent Orchestration - {'Development' if dev else 'Production'} Server")
    print(f"{'=' * 60}")
    print(f"  Host:      {config.app.host}")
    print(f"  Port:      {config.app.port}")
    print(f"  Workspace: {config.app.workspace_id}")
    print(f"  Log Level: {log_level}")
    print(f"{'=' * 60}\n")

    uvicorn.run(
        "orchestration.main:app",
        host=config.app.host,
        port=config.app.port,
        reload=dev,
        reload_dirs=["orchestration"] if dev else None,
        log_level=log_level,
        access_log=dev,
    )


if __name__ == "__main__":
    main()
