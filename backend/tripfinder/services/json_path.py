"""Sentinel-returning lookups into parsed provider JSON.

Paths are dot-separated field names, each optionally followed by one array
index: ``offers[0].price.total``. Every extractor returns a sentinel instead
of raising when the path is malformed, a field is missing, a value has the
wrong type, or an index is out of range. The sentinel is never a valid domain
value and callers must treat it as "field unavailable".
"""

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any

logger = logging.getLogger(__name__)

DECIMAL_SENTINEL = Decimal(-1)
INT_SENTINEL = -1
UNKNOWN = "Unknown"

_SEGMENT = re.compile(r"^([^.\[\]]+)(?:\[(\d+)\])?$")


class _Missing:
    def __repr__(self) -> str:
        return "<missing>"


MISSING = _Missing()


def _parse_path(path: str) -> list[tuple[str, int | None]] | None:
    if not isinstance(path, str) or not path:
        return None
    segments = []
    for part in path.split("."):
        match = _SEGMENT.match(part)
        if match is None:
            return None
        index = match.group(2)
        segments.append((match.group(1), int(index) if index is not None else None))
    return segments


def resolve(tree: Any, path: str) -> Any:
    """Walk ``tree`` along ``path``. Returns MISSING when any step fails."""
    segments = _parse_path(path)
    if segments is None:
        logger.debug(f"Malformed JSON path '{path}'")
        return MISSING

    node = tree
    for name, index in segments:
        if not isinstance(node, dict) or name not in node:
            return MISSING
        node = node[name]
        if index is not None:
            if not isinstance(node, list) or index >= len(node):
                return MISSING
            node = node[index]
    return node


def extract_decimal(tree: Any, path: str) -> Decimal:
    """Read a number stored either as a JSON number or a JSON string."""
    value = resolve(tree, path)
    result = DECIMAL_SENTINEL

    # bool is an int subclass; a JSON true is never a price
    if isinstance(value, bool):
        pass
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            result = DECIMAL_SENTINEL

    if not result.is_finite():
        result = DECIMAL_SENTINEL
    if result is DECIMAL_SENTINEL and value is not MISSING:
        logger.debug(f"Failed to parse decimal from JSON path '{path}': {value!r}")
    return result


def extract_int(tree: Any, path: str) -> int:
    value = resolve(tree, path)

    if isinstance(value, bool):
        return INT_SENTINEL
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            logger.debug(f"Failed to parse integer from JSON path '{path}': {value!r}")
    return INT_SENTINEL


def extract_str(tree: Any, path: str, default: str = UNKNOWN) -> str:
    value = resolve(tree, path)
    return value if isinstance(value, str) else default


def extract_bool(tree: Any, path: str) -> bool | None:
    value = resolve(tree, path)
    return value if isinstance(value, bool) else None


def extract_list(tree: Any, path: str) -> list:
    value = resolve(tree, path)
    return value if isinstance(value, list) else []
