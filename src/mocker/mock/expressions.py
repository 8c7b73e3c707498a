"""
Mocker Expression Evaluator

Evaluates condition and template expressions against a RequestContext.

Expressions use a small, safe subset of Python expression syntax, parsed
with the `ast` module and interpreted node by node (nothing is passed to
eval). The request document is the root namespace:

    params.id == "42"
    header_eq("X-Env", "test") and method("post")
    lower(headers["accept"]) in ["application/json", "*/*"]
    json.user.roles[0] != "admin"
    query("$.json.items[?(@.id == 3)].name")

Supported:
- field access with `.name` and `[key]`; missing keys give null
- literals, lists and tuples; true/false/null aliases
- comparisons (== != < <= > >= in, not in, is, is not)
- and / or / not, `a if cond else b`, + - * / %
- the functions registered in DEFAULT_FUNCTIONS, plus any passed to
  SafeEvaluator(functions=...)

Any evaluator implementing `evaluate(expression, context)` can replace
SafeEvaluator in the dispatcher and renderer.
"""

import ast
import logging
import operator
from functools import lru_cache
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Sequence

from jsonpath_ng.ext import parse as jsonpath_parse

from ..common import to_text
from .context import RequestContext

logger = logging.getLogger("mocker.expressions")


class ExpressionError(Exception):
    """Raised when an expression cannot be parsed or evaluated."""

    def __init__(self, expression: str, message: str):
        super().__init__(f"{message} in expression {expression!r}")
        self.expression = expression
        self.message = message


class ExpressionEvaluator(Protocol):
    """Anything that can evaluate an expression against a request context."""

    def evaluate(self, expression: str, context: RequestContext) -> Any:
        ...


# Literal aliases so JSON-style spellings work in configuration files
NAME_CONSTANTS = {'true': True, 'false': False, 'null': None}

ALLOWED_NODES = (
    ast.Expression, ast.Constant, ast.Name, ast.Load, ast.Attribute,
    ast.Subscript, ast.Slice, ast.List, ast.Tuple, ast.Call,
    ast.Compare, ast.BoolOp, ast.UnaryOp, ast.BinOp, ast.IfExp,
    ast.And, ast.Or, ast.Not, ast.USub, ast.UAdd,
    ast.Add, ast.Sub, ast.Mult, ast.Div, ast.Mod,
    ast.Eq, ast.NotEq, ast.Lt, ast.LtE, ast.Gt, ast.GtE,
    ast.In, ast.NotIn, ast.Is, ast.IsNot,
)

BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
}

COMPARE_OPERATORS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}


@lru_cache(maxsize=1024)
def compile_expression(expression: str) -> ast.Expression:
    """
    Parse and validate an expression.

    Raises:
        ExpressionError: On syntax errors or unsupported constructs
    """
    source = expression.strip()
    if not source:
        raise ExpressionError(expression, "empty expression")

    try:
        tree = ast.parse(source, mode='eval')
    except SyntaxError as e:
        raise ExpressionError(expression, f"syntax error: {e.msg}") from e
    except (ValueError, RecursionError) as e:
        raise ExpressionError(expression, f"cannot parse: {e}") from e

    for node in ast.walk(tree):
        if not isinstance(node, ALLOWED_NODES):
            raise ExpressionError(expression, f"unsupported syntax {type(node).__name__}")
        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name):
                raise ExpressionError(expression, "only named functions can be called")
            if node.keywords:
                raise ExpressionError(expression, "keyword arguments are not supported")
        if isinstance(node, ast.Attribute) and node.attr.startswith('__'):
            raise ExpressionError(expression, f"invalid field {node.attr!r}")

    return tree


@lru_cache(maxsize=256)
def compile_jsonpath(path: str):
    return jsonpath_parse(path)


def lookup(container: Any, key: Any) -> Any:
    """Field or index access that yields None instead of failing on missing data."""
    if container is None:
        return None
    if isinstance(container, Mapping):
        try:
            return container.get(key)
        except TypeError:
            return None
    if isinstance(container, (list, tuple, str)):
        if isinstance(key, slice):
            return container[key]
        if isinstance(key, bool) or not isinstance(key, int):
            return None
        try:
            return container[key]
        except IndexError:
            return None
    return None


def _query_matches(context: RequestContext, path: str) -> list:
    try:
        expr = compile_jsonpath(path)
    except Exception as e:
        raise ValueError(f"invalid query {path!r}: {e}") from e
    return [match.value for match in expr.find(context.to_dict())]


def _header_eq(context: RequestContext, name: str, value: Any) -> bool:
    expected = to_text(value).casefold()
    return any(actual.casefold() == expected for actual in context.headers.get_all(name))


def _lower(context: RequestContext, value: Any) -> Optional[str]:
    return None if value is None else to_text(value).lower()


def _upper(context: RequestContext, value: Any) -> Optional[str]:
    return None if value is None else to_text(value).upper()


def _query(context: RequestContext, path: str) -> Any:
    matches = _query_matches(context, path)
    return matches[0] if matches else None


def _length(context: RequestContext, value: Any) -> int:
    return 0 if value is None else len(value)


# Every function receives the request context as its first argument
DEFAULT_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    'lower': _lower,
    'upper': _upper,
    'has_header': lambda context, name: context.has_header(name),
    'header': lambda context, name: context.header(name),
    'header_eq': _header_eq,
    'method': lambda context, name: context.method.casefold() == to_text(name).casefold(),
    'exists': lambda context, value: value is not None,
    'len': _length,
    'str': lambda context, value: to_text(value),
    'int': lambda context, value: int(value),
    'query': _query,
    'query_all': _query_matches,
}


class _Interpreter(ast.NodeVisitor):
    """Walks a validated expression tree against one request context."""

    def __init__(self, expression: str, context: RequestContext, functions: Mapping[str, Callable]):
        self.expression = expression
        self.context = context
        self.document = context.document
        self.functions = functions

    def generic_visit(self, node):
        raise ExpressionError(self.expression, f"unsupported syntax {type(node).__name__}")

    def visit_Expression(self, node):
        return self.visit(node.body)

    def visit_Constant(self, node):
        return node.value

    def visit_Name(self, node):
        if node.id in self.document:
            return self.document[node.id]
        if node.id in NAME_CONSTANTS:
            return NAME_CONSTANTS[node.id]
        raise ExpressionError(self.expression, f"unknown name {node.id!r}")

    def visit_Attribute(self, node):
        return lookup(self.visit(node.value), node.attr)

    def visit_Subscript(self, node):
        container = self.visit(node.value)
        key = self.visit(node.slice)
        return lookup(container, key)

    def visit_Slice(self, node):
        lower = self.visit(node.lower) if node.lower else None
        upper = self.visit(node.upper) if node.upper else None
        step = self.visit(node.step) if node.step else None
        return slice(lower, upper, step)

    def visit_List(self, node):
        return [self.visit(element) for element in node.elts]

    def visit_Tuple(self, node):
        return tuple(self.visit(element) for element in node.elts)

    def visit_BoolOp(self, node):
        value = None
        if isinstance(node.op, ast.And):
            for operand in node.values:
                value = self.visit(operand)
                if not value:
                    return value
            return value
        for operand in node.values:
            value = self.visit(operand)
            if value:
                return value
        return value

    def visit_UnaryOp(self, node):
        operand = self.visit(node.operand)
        if isinstance(node.op, ast.Not):
            return not operand
        if isinstance(node.op, ast.USub):
            return -operand
        return +operand

    def visit_BinOp(self, node):
        return BINARY_OPERATORS[type(node.op)](self.visit(node.left), self.visit(node.right))

    def visit_IfExp(self, node):
        if self.visit(node.test):
            return self.visit(node.body)
        return self.visit(node.orelse)

    def visit_Compare(self, node):
        left = self.visit(node.left)
        for op, comparator in zip(node.ops, node.comparators):
            right = self.visit(comparator)
            if isinstance(op, (ast.In, ast.NotIn)):
                result = self._contains(right, left)
                if isinstance(op, ast.NotIn):
                    result = not result
            else:
                result = COMPARE_OPERATORS[type(op)](left, right)
            if not result:
                return False
            left = right
        return True

    def visit_Call(self, node):
        name = node.func.id
        function = self.functions.get(name)
        if function is None:
            raise ExpressionError(self.expression, f"unknown function {name!r}")
        args = [self.visit(arg) for arg in node.args]
        return function(self.context, *args)

    @staticmethod
    def _contains(container: Any, item: Any) -> bool:
        if container is None:
            return False
        try:
            return item in container
        except TypeError:
            return False


class SafeEvaluator:
    """
    Default expression evaluator.

    Example:
        evaluator = SafeEvaluator()
        evaluator.evaluate('params.id == "42"', context)   # True

        # Extra functions receive the context first
        evaluator = SafeEvaluator(functions={
            'is_admin': lambda ctx: ctx.header('X-Role') == 'admin'
        })
    """

    def __init__(self, functions: Optional[Mapping[str, Callable[..., Any]]] = None):
        """
        Initialize evaluator.

        Args:
            functions: Additional functions available to expressions (override defaults)
        """
        self.functions: Dict[str, Callable[..., Any]] = dict(DEFAULT_FUNCTIONS)
        if functions:
            self.functions.update(functions)

    def evaluate(self, expression: str, context: RequestContext) -> Any:
        """
        Evaluate an expression against a request context.

        Returns:
            Expression result (bool, str, number, list, mapping or None)

        Raises:
            ExpressionError: If the expression is malformed or fails at runtime
        """
        tree = compile_expression(expression)
        try:
            return _Interpreter(expression, context, self.functions).visit(tree)
        except ExpressionError:
            raise
        except (TypeError, ValueError, ArithmeticError, LookupError, AttributeError, RecursionError) as e:
            raise ExpressionError(expression, f"{type(e).__name__}: {e}") from e


def evaluate_safely(
    evaluator: ExpressionEvaluator,
    expression: str,
    context: RequestContext,
    default: Any = None
) -> Any:
    """
    Evaluate an expression, logging failures instead of raising.

    Returns:
        Expression result, or default if evaluation failed
    """
    try:
        return evaluator.evaluate(expression, context)
    except ExpressionError as e:
        logger.warning(f"Expression failed for {context.method} {context.path}: {e}")
        return default


def check_conditions(
    evaluator: ExpressionEvaluator,
    conditions: Sequence[str],
    context: RequestContext
) -> bool:
    """
    Check that every condition holds, in order.

    Stops at the first condition whose result is falsy. A failing
    expression counts as falsy. An empty sequence always matches.
    """
    for condition in conditions:
        if not evaluate_safely(evaluator, condition, context, default=False):
            logger.debug(f"Condition not met: {condition}")
            return False
    return True

