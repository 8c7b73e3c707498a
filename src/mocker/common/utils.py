"""
Mocker Common Utilities

Shared utilities and helpers to reduce code duplication.
"""

import json
import os
from typing import Any, Mapping, Optional, Tuple, Union


def safe_json_parse(json_string: Union[str, bytes, None], default: Any = None) -> Any:
    """
    Safely parse JSON string with error handling.

    Args:
        json_string: JSON string (or raw bytes) to parse
        default: Default value to return if parsing fails

    Returns:
        Parsed JSON object, or default if parsing fails

    Example:
        body = safe_json_parse(await request.body(), default=None)
    """
    if not json_string:
        return default

    try:
        return json.loads(json_string)
    except (json.JSONDecodeError, TypeError, ValueError):
        return default


def truncate_preview(text: str, max_length: int = 20) -> str:
    """
    Shorten text for log output.

    Args:
        text: Text to shorten
        max_length: Number of characters kept

    Returns:
        The first max_length characters followed by "..." when text is longer
    """
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def stat_signature(path: Union[str, os.PathLike]) -> Optional[Tuple[int, int]]:
    """
    Modification signature of a file: (size, mtime in nanoseconds).

    Returns None if the file cannot be stat'ed.
    """
    try:
        st = os.stat(path)
    except OSError:
        return None
    return (st.st_size, st.st_mtime_ns)


def _json_default(value: Any) -> Any:
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, bytes):
        return value.decode('utf-8', errors='replace')
    return str(value)


def to_text(value: Any) -> str:
    """
    Canonical text form of an expression result.

    Strings are returned as-is; booleans, numbers and null use their JSON
    spelling; lists and mappings are compact JSON.

    Example:
        to_text(True)        # 'true'
        to_text(None)        # 'null'
        to_text([1, 'a'])    # '[1,"a"]'
    """
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(',', ':'), default=_json_default)
