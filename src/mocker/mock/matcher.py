"""
Mocker Path Matcher

Matches request paths against route patterns segment by segment.

Pattern segments:
- literal   must equal the request segment (case-sensitive)
- *         any single segment, not captured
- {name}    any single segment, captured as params[name]

Patterns and paths must have the same number of segments; there is no
multi-segment wildcard.
"""

from typing import Dict, Optional, Tuple

WILDCARD = '*'


def param_name(segment: str) -> Optional[str]:
    """Return the parameter name of a {name} segment, or None for other segments."""
    if len(segment) > 2 and segment.startswith('{') and segment.endswith('}'):
        return segment[1:-1]
    return None


def match_path(path: str, pattern: str) -> Tuple[bool, Dict[str, str]]:
    """
    Check if path matches pattern and extract named parameters.

    Args:
        path: Request path (e.g. /users/42)
        pattern: Route pattern (e.g. /users/{id})

    Returns:
        Tuple of (matched, params). params is empty when not matched.

    Example:
        match_path('/users/42', '/users/{id}')   # (True, {'id': '42'})
        match_path('/users/42/x', '/users/{id}') # (False, {})
    """
    path_segments = path.split('/')
    pattern_segments = pattern.split('/')

    if len(path_segments) != len(pattern_segments):
        return False, {}

    params = {}
    for segment, expected in zip(path_segments, pattern_segments):
        if expected == WILDCARD:
            continue

        name = param_name(expected)
        if name is not None:
            params[name] = segment
            continue

        if segment != expected:
            return False, {}

    return True, params
