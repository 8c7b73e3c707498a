"""
Mocker Configuration Loader

Loads the YAML route configuration into an immutable RouteTable.

File format:

    port: 8080
    routes:
      /users/{id}:
        get:
          - name: admin user
            conditions:
              - params.id == "1"
            response: '{"id": ${params.id}, "role": "admin"}'
            headers:
              Content-Type: application/json
          - response: '{"id": ${params.id}}'
            code: 200
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .routes import DEFAULT_PORT, RouteTable

DEFAULT_CONFIG_FILE = "mocker.yaml"

logger = logging.getLogger("mocker.config")


class ConfigError(Exception):
    """Raised when the configuration cannot be read or has the wrong shape."""

    def __init__(self, source: Optional[str], message: str):
        super().__init__(f"{source}: {message}" if source else message)
        self.source = source
        self.message = message


def parse_port(value: Any, source: Optional[str] = None) -> int:
    """
    Parse the configured port.

    Accepts an integer, a numeric string or a ":port" string. Missing or
    empty values give the default port.
    """
    if value is None or value == "":
        return DEFAULT_PORT
    if isinstance(value, bool):
        raise ConfigError(source, f"invalid port {value!r}")

    text = str(value).strip()
    if text.startswith(':'):
        text = text[1:]
    if not text:
        return DEFAULT_PORT

    try:
        port = int(text)
    except ValueError:
        raise ConfigError(source, f"invalid port {value!r}") from None
    if not 0 < port < 65536:
        raise ConfigError(source, f"port out of range: {port}")
    return port


def parse_config(data: Any, source: Optional[str] = None) -> RouteTable:
    """
    Build a RouteTable from a deserialized configuration document.

    Args:
        data: Parsed YAML document
        source: Where the document came from (used in error messages)

    Raises:
        ConfigError: If the document does not have the expected shape
    """
    if data is None:
        raise ConfigError(source, "configuration is empty")
    if not isinstance(data, dict):
        raise ConfigError(source, f"expected a mapping at top level, got {type(data).__name__}")

    port = parse_port(data.get('port'), source)

    try:
        table = RouteTable.from_dict(data.get('routes'), port=port, source=source)
    except ValueError as e:
        raise ConfigError(source, str(e)) from e

    for pattern, method, route in table.iter_routes():
        logger.debug(f"{route.name} loaded: {method.upper()} {pattern} {route.to_dict()}")

    return table


def load_config(path: Union[str, Path] = DEFAULT_CONFIG_FILE) -> RouteTable:
    """
    Load the route table from a YAML file.

    Args:
        path: Path to the configuration file

    Returns:
        RouteTable built from the file

    Raises:
        ConfigError: If the file is unreadable, not valid YAML, or malformed
    """
    source = str(path)

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(source, f"cannot read configuration: {e.strerror or e}") from e
    except UnicodeDecodeError as e:
        raise ConfigError(source, f"configuration is not valid UTF-8: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(source, f"invalid YAML: {e}") from e

    table = parse_config(data, source)
    logger.info(f"Loaded {len(table)} routes for {len(table.patterns)} URL patterns from {source}")
    return table


def dump_config(table: RouteTable) -> Dict[str, Any]:
    """Convert a RouteTable back to its configuration document."""
    return {
        'port': table.port,
        'routes': {
            pattern: {
                method: [route.to_dict() for route in routes]
                for method, routes in table.methods(pattern).items()
            }
            for pattern in table.patterns
        }
    }
