"""
Mocker Dispatcher

Turns an incoming request into a mock response:

1. find the first URL pattern matching the request path
2. pick the method bucket (lower-cased method)
3. build the request context (reads the body)
4. select the first route whose conditions all hold
5. render status, headers and body

Steps 1, 2 and 4 end in a 404 when nothing matches. Every request logs
exactly one info line with its outcome.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote

from fastapi import Request, Response

from ..common import truncate_preview
from .context import RequestContext, build_context
from .expressions import ExpressionEvaluator, SafeEvaluator, check_conditions
from .generator import ResponseRenderer
from .routes import ActiveRoutes, Route, RouteTable

NOT_FOUND_BODY = "404 page not found\n"

URL_NOT_MATCHED = "URL not matched"
METHOD_NOT_MATCHED = "method not matched"
CONDITIONS_NOT_MATCHED = "conditions not matched"
ROUTE_MATCHED = "Route matched"

# Set by the HTTP layer from the body; never copied from route configuration
HEADERS_TO_SKIP = {'content-length', 'transfer-encoding', 'connection'}

# RFC 7230 token characters allowed in a header name
HEADER_NAME_PATTERN = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")

# Control characters other than horizontal tab
CONTROL_CHARS = re.compile(r'[\x00-\x08\x0a-\x1f\x7f]')


def sanitize_header_value(value: str) -> str:
    """
    Make a rendered header value writable on the wire.

    Control characters (CR and LF included) become spaces and characters
    outside latin-1 are percent-encoded as UTF-8.

    Example:
        sanitize_header_value('/users/名前')   # '/users/%E5%90%8D%E5%89%8D'
        sanitize_header_value('a\\r\\nb')       # 'a  b'
    """
    value = CONTROL_CHARS.sub(' ', value)
    try:
        value.encode('latin-1')
    except UnicodeEncodeError:
        value = ''.join(c if ord(c) < 256 else quote(c, safe='') for c in value)
    return value


@dataclass
class DispatchResult:
    """Outcome of dispatching one request."""

    status: int
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    reason: str = ROUTE_MATCHED
    route: Optional[Route] = None
    pattern: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.route is not None


class Dispatcher:
    """
    Per-request matching and rendering against the active route table.

    Example:
        dispatcher = Dispatcher(ActiveRoutes(load_config('mocker.yaml')))
        response = await dispatcher.handle(request)
    """

    def __init__(
        self,
        routes: ActiveRoutes,
        evaluator: Optional[ExpressionEvaluator] = None,
        renderer: Optional[ResponseRenderer] = None,
        fallback_status: int = 404,
        fallback_body: str = NOT_FOUND_BODY
    ):
        """
        Initialize dispatcher.

        Args:
            routes: Holder of the active RouteTable
            evaluator: Expression evaluator for conditions (defaults to SafeEvaluator)
            renderer: Response renderer (defaults to one sharing the evaluator)
            fallback_status: Status returned when nothing matches
            fallback_body: Body returned when nothing matches
        """
        self.routes = routes
        self.evaluator = evaluator or SafeEvaluator()
        self.renderer = renderer or ResponseRenderer(self.evaluator)
        self.fallback_status = fallback_status
        self.fallback_body = fallback_body
        self.logger = logging.getLogger("mocker.mock")

    def lookup(
        self,
        table: RouteTable,
        method: str,
        path: str
    ) -> Tuple[Optional[Tuple[Route, ...]], Mapping[str, str], Optional[str]]:
        """
        Find the method bucket for a request.

        Returns:
            Tuple of (routes, params, pattern). routes is None when the
            path or method did not match; pattern is None when the path
            did not match.
        """
        found = table.find(path)
        if found is None:
            return None, {}, None
        return found.methods.get(method.lower()), found.params, found.pattern

    def select_route(self, routes: Sequence[Route], context: RequestContext) -> Optional[Route]:
        """Return the first route whose conditions all hold, in configuration order."""
        for route in routes:
            if check_conditions(self.evaluator, route.conditions, context):
                return route
        return None

    def respond(
        self,
        routes: Sequence[Route],
        context: RequestContext,
        pattern: Optional[str] = None
    ) -> DispatchResult:
        """
        Scan a method bucket and render the selected route.

        Args:
            routes: Method bucket in configuration order
            context: Request context
            pattern: Matched URL pattern (for logging)

        Returns:
            DispatchResult for the matched route, or a not-found result
        """
        method = context.method.lower()
        route = self.select_route(routes, context)
        if route is None:
            self.logger.info(f"{method} {context.path}: {CONDITIONS_NOT_MATCHED}")
            return self.not_found(CONDITIONS_NOT_MATCHED, pattern)

        rendered = self.renderer.render_route(route, context)

        if route.conditions:
            self.logger.debug(f"{route.name} conditions: {json.dumps(list(route.conditions))}")
        if route.headers:
            self.logger.debug(f"{route.name} headers: {json.dumps(dict(route.headers))}")

        headers = {}
        for name, value in rendered.headers.items():
            if name.lower() in HEADERS_TO_SKIP:
                self.logger.debug(f"Header skipped: {name}")
                continue
            if not HEADER_NAME_PATTERN.fullmatch(name):
                self.logger.warning(f"{route.name}: invalid header name {name!r} skipped")
                continue
            safe_value = sanitize_header_value(value)
            if safe_value != value:
                self.logger.warning(f"{route.name}: header {name} value {value!r} sanitized to {safe_value!r}")
                value = safe_value
            headers[name] = value
            self.logger.debug(f"Header set: {name}={value}")

        self.logger.info(
            f"{method} {context.path}: {ROUTE_MATCHED} "
            f"name={route.name!r} status_code={rendered.status} "
            f"response={truncate_preview(rendered.body)!r}"
        )

        return DispatchResult(
            status=rendered.status,
            body=rendered.body,
            headers=headers,
            reason=ROUTE_MATCHED,
            route=route,
            pattern=pattern
        )

    def not_found(self, reason: str, pattern: Optional[str] = None) -> DispatchResult:
        return DispatchResult(
            status=self.fallback_status,
            body=self.fallback_body,
            headers={'Content-Type': 'text/plain; charset=utf-8'},
            reason=reason,
            pattern=pattern
        )

    async def dispatch(self, request: Request) -> DispatchResult:
        """
        Dispatch a FastAPI request against the active route table.

        The table is read once, so a concurrent reload never affects a
        request already in progress.
        """
        table = self.routes.current
        method = request.method.lower()
        path = request.url.path

        routes, params, pattern = self.lookup(table, method, path)
        if pattern is None:
            self.logger.info(f"{method} {path}: {URL_NOT_MATCHED}")
            return self.not_found(URL_NOT_MATCHED)
        if routes is None:
            self.logger.info(f"{method} {path}: {METHOD_NOT_MATCHED}")
            return self.not_found(METHOD_NOT_MATCHED, pattern)

        context = await build_context(request, params)
        return self.respond(routes, context, pattern)

    async def handle(self, request: Request) -> Response:
        """Dispatch a request and build the HTTP response."""
        result = await self.dispatch(request)
        return Response(
            content=result.body,
            status_code=result.status,
            headers=result.headers
        )
