"""
Mocker Request Context

Structured, read-only snapshot of an incoming request. Built once per
request before the route scan and used as the root document for
condition and template expressions.

Document keys available to expressions:
- params   path parameters captured by the route pattern
- body     request body decoded as text
- json     request body parsed as JSON (null when not JSON)
- method   request method as sent (e.g. GET)
- path     request path
- url      full request URL
- headers  case-insensitive header mapping, first value per header
- query    query-string parameters, first value per key
- request  {method, url, path, headers}
"""

from dataclasses import dataclass, field
from functools import cached_property
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qsl, urlparse

from ..common import safe_json_parse


class HeaderMap(Mapping):
    """
    Case-insensitive, read-only header mapping.

    Lookups return the first value seen for each header name; get_all()
    returns every value of a repeated header.
    """

    def __init__(self, items: Union[Mapping[str, str], Iterable[Tuple[str, str]], None] = None):
        self._values: Dict[str, str] = {}
        self._names: Dict[str, str] = {}
        self._all: Dict[str, List[str]] = {}
        if items is None:
            return
        pairs = items.items() if isinstance(items, Mapping) else items
        for name, value in pairs:
            if isinstance(name, bytes):
                name = name.decode('latin-1')
            if isinstance(value, bytes):
                value = value.decode('latin-1')
            key = name.lower()
            self._all.setdefault(key, []).append(value)
            if key not in self._values:
                self._values[key] = value
                self._names[key] = name

    def __getitem__(self, name: str) -> str:
        if not isinstance(name, str):
            raise KeyError(name)
        return self._values[name.lower()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"HeaderMap({self.original_names()!r})"

    def get_all(self, name: str) -> List[str]:
        """Every value sent for a header, in order (empty list if absent)."""
        return list(self._all.get(name.lower(), ()))

    def original_names(self) -> Dict[str, str]:
        """Headers keyed by the name as first sent."""
        return {self._names[key]: value for key, value in self._values.items()}


@dataclass(frozen=True)
class RequestContext:
    """Snapshot of request data consumed by the evaluator and renderer."""

    method: str
    path: str
    url: str = ""
    headers: HeaderMap = field(default_factory=HeaderMap)
    body: bytes = b""
    params: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    query: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    json: Any = None

    @classmethod
    def create(
        cls,
        method: str,
        url: str,
        headers: Union[Mapping[str, str], Iterable[Tuple[str, str]], None] = None,
        body: Union[bytes, str, None] = b"",
        params: Optional[Mapping[str, str]] = None,
        path: Optional[str] = None
    ) -> 'RequestContext':
        """
        Build a context from plain request attributes.

        Args:
            method: HTTP method
            url: Full request URL or bare path (query string allowed)
            headers: Header mapping or list of (name, value) pairs
            body: Raw request body
            params: Path parameters extracted by the path matcher
            path: Decoded request path (defaults to the path part of url)

        Returns:
            RequestContext with JSON body parsed when possible
        """
        if body is None:
            body = b""
        elif isinstance(body, str):
            body = body.encode('utf-8')

        parsed = urlparse(url)
        query = {}
        for key, value in parse_qsl(parsed.query, keep_blank_values=True):
            query.setdefault(key, value)

        return cls(
            method=method,
            path=path or parsed.path or '/',
            url=url,
            headers=headers if isinstance(headers, HeaderMap) else HeaderMap(headers),
            body=body,
            params=MappingProxyType(dict(params or {})),
            query=MappingProxyType(query),
            json=safe_json_parse(body, default=None),
        )

    @property
    def text(self) -> str:
        """Request body decoded as UTF-8."""
        return self.body.decode('utf-8', errors='replace')

    def has_header(self, name: str) -> bool:
        return name in self.headers

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name)

    @cached_property
    def document(self) -> Mapping[str, Any]:
        """Root document for expressions."""
        return MappingProxyType({
            'params': self.params,
            'body': self.text,
            'json': self.json,
            'method': self.method,
            'path': self.path,
            'url': self.url,
            'headers': self.headers,
            'query': self.query,
            'request': MappingProxyType({
                'method': self.method,
                'url': self.url,
                'path': self.path,
                'headers': self.headers,
            }),
        })

    def to_dict(self) -> Dict[str, Any]:
        """
        Document as plain dicts (header names lower-cased).

        Used where a library needs real dict instances, e.g. JSONPath queries.
        """
        headers = dict(self.headers)
        return {
            'params': dict(self.params),
            'body': self.text,
            'json': self.json,
            'method': self.method,
            'path': self.path,
            'url': self.url,
            'headers': headers,
            'query': dict(self.query),
            'request': {
                'method': self.method,
                'url': self.url,
                'path': self.path,
                'headers': headers,
            },
        }


async def build_context(request, params: Optional[Mapping[str, str]] = None) -> RequestContext:
    """
    Build a RequestContext from a FastAPI/Starlette request.

    Reads and buffers the full request body.

    Args:
        request: Incoming FastAPI Request
        params: Path parameters extracted by the path matcher

    Returns:
        RequestContext for this request
    """
    body = await request.body()
    return RequestContext.create(
        method=request.method,
        url=str(request.url),
        headers=request.headers.raw,
        body=body,
        params=params,
        path=request.url.path,
    )
