"""
Mocker Mock Server

FastAPI-based HTTP mock server that answers requests from a YAML route table.

Features:
- Path patterns with wildcards and named parameters
- Conditional routes using request expressions
- Templated response bodies and headers
- Hot reload of the configuration file
"""

from __future__ import annotations  # Enable forward references for type hints

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from fastapi import FastAPI, Request
import uvicorn

from .config import DEFAULT_CONFIG_FILE, load_config
from .dispatcher import NOT_FOUND_BODY, Dispatcher
from .expressions import ExpressionEvaluator, SafeEvaluator
from .generator import ResponseRenderer
from .routes import ActiveRoutes
from .watcher import DEFAULT_POLL_INTERVAL, ConfigWatcher


@dataclass
class MockConfig:
    """Configuration for mock server behavior."""

    # Server options
    host: str = "127.0.0.1"
    port: Optional[int] = None  # Overrides the port from the route configuration
    log_level: str = "info"

    # Hot reload
    watch: bool = True
    poll_interval: float = DEFAULT_POLL_INTERVAL  # Seconds between file checks

    # Fallback behavior
    fallback_status: int = 404
    fallback_body: str = NOT_FOUND_BODY


class MockServer:
    """
    FastAPI-based mock server for serving configured routes.

    Example:
        # Load routes and start server
        server = MockServer('mocker.yaml')
        server.start()

        # With custom config
        config = MockConfig(host='0.0.0.0', port=9090, poll_interval=0.5)
        server = MockServer('mocker.yaml', config=config)
        server.start()
    """

    def __init__(
        self,
        config_file: Union[str, Path] = DEFAULT_CONFIG_FILE,
        config: Optional[MockConfig] = None,
        evaluator: Optional[ExpressionEvaluator] = None
    ):
        """
        Initialize mock server.

        Args:
            config_file: Path to the YAML route configuration
            config: Optional MockConfig for server behavior
            evaluator: Optional expression evaluator (will create SafeEvaluator if None)

        Raises:
            ConfigError: If the route configuration cannot be loaded
        """
        self.config_file = Path(config_file)
        self.config = config or MockConfig()

        # Setup logging first (before loading routes)
        logging.getLogger("mocker").setLevel(getattr(logging, self.config.log_level.upper()))
        self.logger = logging.getLogger("mocker.mock")

        # Load routes; failure here is fatal
        self.routes = ActiveRoutes(load_config(self.config_file))

        self.evaluator = evaluator or SafeEvaluator()
        self.dispatcher = Dispatcher(
            self.routes,
            evaluator=self.evaluator,
            renderer=ResponseRenderer(self.evaluator),
            fallback_status=self.config.fallback_status,
            fallback_body=self.config.fallback_body
        )
        self.watcher = ConfigWatcher(
            self.config_file,
            self.routes,
            interval=self.config.poll_interval
        )

        # Setup FastAPI app
        self.app = self._create_app()

    @property
    def port(self) -> int:
        """Port to listen on: explicit override, else the configured port."""
        return self.config.port or self.routes.current.port

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with the catch-all mock route."""

        @contextlib.asynccontextmanager
        async def lifespan(app: FastAPI):
            task = None
            if self.config.watch:
                task = asyncio.create_task(self.watcher.run())
            try:
                yield
            finally:
                if task is not None:
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task

        app = FastAPI(
            title="Mocker",
            description="Configuration-driven HTTP mock server",
            version="1.0.0",
            lifespan=lifespan,
            docs_url=None,
            redoc_url=None,
            openapi_url=None
        )

        async def mock_request(request: Request):
            """Handle incoming requests and serve mock responses."""
            return await self.dispatcher.handle(request)

        # No method list: every method reaches the dispatcher, which answers
        # 404 for methods without a configured bucket
        app.add_route("/{path:path}", mock_request)

        return app

    def start(self, host: Optional[str] = None, port: Optional[int] = None, access_log: bool = False):
        """
        Start the mock server.

        Args:
            host: Host to bind to (overrides config)
            port: Port to bind to (overrides config)
            access_log: Enable uvicorn access logging
        """
        actual_host = host or self.config.host
        actual_port = port or self.port
        table = self.routes.current

        print(f"🚀 Mocker starting...")
        print(f"   Host: {actual_host}:{actual_port}")
        print(f"   Config: {self.config_file}")
        print(f"   Routes loaded: {len(table)} ({len(table.patterns)} URL patterns)")
        if self.config.watch:
            print(f"   Watching for changes every {self.config.poll_interval}s")
        print()

        uvicorn.run(
            self.app,
            host=actual_host,
            port=actual_port,
            log_level=self.config.log_level,
            access_log=access_log
        )

    def get_app(self) -> FastAPI:
        """
        Get the FastAPI app instance for testing or custom deployment.

        Returns:
            FastAPI application instance
        """
        return self.app


def create_mock_server(
    config_file: Union[str, Path] = DEFAULT_CONFIG_FILE,
    host: str = "127.0.0.1",
    port: Optional[int] = None,
    log_level: str = "info",
    watch: bool = True,
    poll_interval: float = DEFAULT_POLL_INTERVAL
) -> MockServer:
    """
    Convenience function to create and configure a mock server.

    Args:
        config_file: Path to the YAML route configuration
        host: Host to bind to
        port: Port to bind to (defaults to the configured port, then 8080)
        log_level: Logging level (debug, info, warning, error)
        watch: Reload routes when the configuration file changes
        poll_interval: Seconds between configuration checks

    Returns:
        Configured MockServer instance

    Example:
        server = create_mock_server('mocker.yaml', port=9090)
        server.start()
    """
    config = MockConfig(
        host=host,
        port=port,
        log_level=log_level,
        watch=watch,
        poll_interval=poll_interval
    )

    return MockServer(config_file, config=config)
