"""Shared utilities."""

import json
from typing import Any, Optional


def decode_json_value(value: Any) -> Any:
    """Decodes JSON-looking strings, leaves everything else as-is"""
    if not isinstance(value, str):
        return value
    stripped = value.strip()
    if stripped.startswith(('{', '[', '"')) or stripped in ('true', 'false', 'null'):
        try:
            return json.loads(stripped)
        except json.JSONDecodeError:
            return value
    return value


def parse_retry_after(header_value: Any) -> Optional[int]:
    """Retry-After in seconds; HTTP-date values are ignored"""
    if header_value and str(header_value).isdigit():
        return int(header_value)
    return None
