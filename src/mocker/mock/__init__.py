"""
Mocker Mock Server Module

Configuration-driven HTTP mock server.

This module provides:
- FastAPI-based mock server with hot reload
- Path pattern matching with named parameters
- Condition expressions over the request
- Templated responses
"""

from .server import MockServer, MockConfig, create_mock_server
from .config import ConfigError, load_config, parse_config, dump_config
from .context import HeaderMap, RequestContext, build_context
from .dispatcher import Dispatcher, DispatchResult
from .expressions import (
    ExpressionError,
    ExpressionEvaluator,
    SafeEvaluator,
    check_conditions,
    evaluate_safely
)
from .generator import RenderedResponse, ResponseRenderer
from .matcher import match_path
from .routes import ActiveRoutes, Route, RouteTable
from .watcher import ConfigWatcher

__all__ = [
    # Server
    'MockServer',
    'MockConfig',
    'create_mock_server',

    # Configuration
    'ConfigError',
    'load_config',
    'parse_config',
    'dump_config',
    'ConfigWatcher',

    # Routes
    'ActiveRoutes',
    'Route',
    'RouteTable',
    'match_path',

    # Requests
    'HeaderMap',
    'RequestContext',
    'build_context',
    'Dispatcher',
    'DispatchResult',

    # Expressions and rendering
    'ExpressionError',
    'ExpressionEvaluator',
    'SafeEvaluator',
    'check_conditions',
    'evaluate_safely',
    'RenderedResponse',
    'ResponseRenderer',
]

__version__ = '1.0.0'
