"""
Mocker Route Table

Immutable in-memory representation of the configured routes, and the
holder through which the active table is published to request handlers.

Structure:
    pattern -> lower-cased method -> ordered tuple of Route

A table is never modified after construction. Reloading builds a new
table and swaps the reference held by ActiveRoutes.
"""

import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from .matcher import match_path

DEFAULT_PORT = 8080
DEFAULT_STATUS = 200


@dataclass(frozen=True)
class Route:
    """A single matching rule inside a method bucket."""

    name: str
    conditions: Tuple[str, ...] = ()
    response: str = ""
    code: int = DEFAULT_STATUS
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], index: int) -> 'Route':
        """
        Create Route from a deserialized configuration entry.

        Args:
            data: Route mapping (may be None for an empty entry)
            index: 1-based position inside its method bucket, used for the default name

        Raises:
            ValueError: If a field has the wrong shape
        """
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"route #{index} must be a mapping, got {type(data).__name__}")

        conditions = data.get('conditions') or []
        if isinstance(conditions, str):
            conditions = [conditions]
        if not isinstance(conditions, list):
            raise ValueError(f"route #{index}: 'conditions' must be a list of expressions")

        code = data.get('code') or DEFAULT_STATUS
        if isinstance(code, bool) or not isinstance(code, (int, str)):
            raise ValueError(f"route #{index}: 'code' must be an integer")
        try:
            code = int(code)
        except ValueError:
            raise ValueError(f"route #{index}: 'code' must be an integer, got {code!r}") from None
        if code == 0:
            code = DEFAULT_STATUS

        headers = data.get('headers') or {}
        if not isinstance(headers, dict):
            raise ValueError(f"route #{index}: 'headers' must be a mapping")

        response = data.get('response')

        return cls(
            name=str(data.get('name') or f"route #{index}"),
            conditions=tuple(str(c) for c in conditions),
            response='' if response is None else str(response),
            code=code,
            headers=MappingProxyType({str(k): '' if v is None else str(v) for k, v in headers.items()}),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'name': self.name,
            'conditions': list(self.conditions),
            'response': self.response,
            'code': self.code,
            'headers': dict(self.headers),
        }


@dataclass(frozen=True)
class PathLookup:
    """Result of finding the pattern that matches a request path."""

    pattern: str
    methods: Mapping[str, Tuple[Route, ...]]
    params: Mapping[str, str]


class RouteTable:
    """
    Immutable snapshot of every configured route.

    Example:
        table = RouteTable.from_dict({
            '/users/{id}': {'get': [{'response': 'user ${params.id}'}]}
        })
        lookup = table.find('/users/42')
        routes = lookup.methods['get']
    """

    def __init__(
        self,
        routes: Mapping[str, Mapping[str, Tuple[Route, ...]]],
        port: int = DEFAULT_PORT,
        source: Optional[str] = None
    ):
        self._routes = MappingProxyType({
            pattern: MappingProxyType(dict(methods))
            for pattern, methods in routes.items()
        })
        self._port = port
        self._source = source

    @classmethod
    def from_dict(
        cls,
        routes: Optional[Dict[str, Any]],
        port: int = DEFAULT_PORT,
        source: Optional[str] = None
    ) -> 'RouteTable':
        """
        Build a table from the deserialized 'routes' section.

        Raises:
            ValueError: If the section does not have the pattern -> method -> list shape
        """
        if routes is None:
            routes = {}
        if not isinstance(routes, dict):
            raise ValueError("'routes' must be a mapping of URL pattern to methods")

        table = {}
        for pattern, methods in routes.items():
            if methods is None:
                methods = {}
            if not isinstance(methods, dict):
                raise ValueError(f"{pattern}: methods must be a mapping of method to route list")

            buckets = {}
            for method, entries in methods.items():
                if entries is None:
                    entries = []
                if not isinstance(entries, list):
                    raise ValueError(f"{pattern} {method}: routes must be a list")
                try:
                    buckets[str(method).lower()] = tuple(
                        Route.from_dict(entry, i) for i, entry in enumerate(entries, 1)
                    )
                except ValueError as e:
                    raise ValueError(f"{pattern} {method}: {e}") from e
            table[str(pattern)] = buckets

        return cls(table, port=port, source=source)

    @property
    def port(self) -> int:
        return self._port

    @property
    def source(self) -> Optional[str]:
        return self._source

    @property
    def patterns(self) -> Tuple[str, ...]:
        return tuple(self._routes)

    def methods(self, pattern: str) -> Mapping[str, Tuple[Route, ...]]:
        """Method buckets for an exact pattern (empty mapping if unknown)."""
        return self._routes.get(pattern, MappingProxyType({}))

    def find(self, path: str) -> Optional[PathLookup]:
        """
        Find the first pattern matching a request path.

        Args:
            path: Request path (e.g. /users/42)

        Returns:
            PathLookup with the method buckets and extracted params, or None
        """
        for pattern, methods in self._routes.items():
            matched, params = match_path(path, pattern)
            if matched:
                return PathLookup(
                    pattern=pattern,
                    methods=methods,
                    params=MappingProxyType(params)
                )
        return None

    def iter_routes(self) -> Iterator[Tuple[str, str, Route]]:
        """Yield (pattern, method, route) for every route in configuration order."""
        for pattern, methods in self._routes.items():
            for method, routes in methods.items():
                for route in routes:
                    yield pattern, method, route

    def __len__(self) -> int:
        return sum(1 for _ in self.iter_routes())

    def __repr__(self) -> str:
        return f"RouteTable(patterns={len(self._routes)}, routes={len(self)}, port={self._port})"


class ActiveRoutes:
    """
    Publishes the current RouteTable to concurrent readers.

    Readers take `current` once per request and keep using that snapshot.
    The reload watcher calls `swap()` with a fully built table; the
    reference replacement is the only mutation.
    """

    def __init__(self, table: RouteTable):
        self._table = table
        self._lock = threading.Lock()
        self.version = 1

    @property
    def current(self) -> RouteTable:
        return self._table

    def swap(self, table: RouteTable) -> RouteTable:
        """
        Replace the active table.

        Returns:
            The previously active table
        """
        with self._lock:
            previous = self._table
            self._table = table
            self.version += 1
        return previous
