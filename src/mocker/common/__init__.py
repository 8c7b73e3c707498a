"""
Mocker Common Utilities

Shared utilities and helpers used across Mocker modules.
"""

from .utils import safe_json_parse, truncate_preview, stat_signature, to_text

__all__ = [
    'safe_json_parse',
    'truncate_preview',
    'stat_signature',
    'to_text',
]
