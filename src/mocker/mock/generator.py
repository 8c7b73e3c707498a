"""
Mocker Response Generator

Renders route templates into concrete responses.

Templates are plain strings with `${ expression }` placeholders:

    'user ${params.id} from ${lower(header("X-Env"))}'

Each placeholder is evaluated against the request context and replaced by
the canonical text of its result. A placeholder that fails to evaluate is
replaced by an empty string and a warning is logged; the rest of the
response is still produced.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..common import to_text
from .context import RequestContext
from .expressions import ExpressionError, ExpressionEvaluator, SafeEvaluator
from .routes import Route

logger = logging.getLogger("mocker.generator")

# Non-greedy, so "${a} and ${b}" yields two placeholders
PLACEHOLDER_PATTERN = re.compile(r'\$\{(.*?)\}', re.DOTALL)


@dataclass
class RenderedResponse:
    """Response produced for a matched route."""

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""


class ResponseRenderer:
    """
    Expands placeholders in body and header templates.

    Example:
        renderer = ResponseRenderer()
        renderer.render('user ${params.id}', context)   # 'user 42'

        rendered = renderer.render_route(route, context)
        rendered.status, rendered.headers, rendered.body
    """

    def __init__(self, evaluator: Optional[ExpressionEvaluator] = None):
        """
        Initialize renderer.

        Args:
            evaluator: Expression evaluator (defaults to SafeEvaluator)
        """
        self.evaluator = evaluator or SafeEvaluator()

    def render(self, template: str, context: RequestContext) -> str:
        """
        Render a template string.

        Args:
            template: Template with ${...} placeholders
            context: Request context used for evaluation

        Returns:
            Rendered string (unchanged when there are no placeholders)
        """
        if '${' not in template:
            return template

        # Identical markers are evaluated once per render
        replacements: Dict[str, str] = {}

        def replacer(match):
            marker = match.group(0)
            if marker not in replacements:
                replacements[marker] = self._evaluate(match.group(1), context)
            return replacements[marker]

        return PLACEHOLDER_PATTERN.sub(replacer, template)

    def render_route(self, route: Route, context: RequestContext) -> RenderedResponse:
        """
        Render body and headers of a matched route.

        Header values are rendered independently of each other and of the body.
        """
        return RenderedResponse(
            status=route.code,
            headers={
                name: self.render(value, context)
                for name, value in route.headers.items()
            },
            body=self.render(route.response, context)
        )

    def _evaluate(self, expression: str, context: RequestContext) -> str:
        try:
            return to_text(self.evaluator.evaluate(expression.strip(), context))
        except ExpressionError as e:
            logger.warning(f"Template placeholder failed for {context.method} {context.path}: {e}")
            return ""
