"""Flatten nested JSON payloads into a single CSV row.

A payload is walked depth-first. Every leaf value becomes one column named
by the dot-joined path of keys leading to it; array elements are addressed
by their index (``items.0.name``). Empty objects and arrays contribute no
columns. The result is exactly one header line and one data line.

Usage:
    >>> to_csv({"a": {"b": 1, "c": 2}, "d": 3})
    'a.b,a.c,d\\n1,2,3'
"""

import json
from typing import Iterator

import pandas as pd

from orgpipe.models import FetchResult, JSONScalar, JSONValue

# Column name used when the payload itself is a scalar
SCALAR_COLUMN = "value"

QUOTING_MODES = ("none", "csv")


def _walk(value: JSONValue, prefix: str) -> Iterator[tuple[str, JSONScalar]]:
    if isinstance(value, dict):
        for key, child in value.items():
            yield from _walk(child, f"{prefix}.{key}" if prefix else str(key))
    elif isinstance(value, list):
        for index, child in enumerate(value):
            yield from _walk(child, f"{prefix}.{index}" if prefix else str(index))
    else:
        yield prefix or SCALAR_COLUMN, value


def flatten(payload: JSONValue) -> dict[str, JSONScalar]:
    """Flatten a JSON value into ``{dotted.path: leaf}``.

    Columns appear in walk order. When two paths collapse to the same name
    (``{"a.b": 1, "a": {"b": 2}}``) the first value seen is kept.

    Args:
        payload: Any JSON-compatible value

    Returns:
        Ordered mapping of column name to scalar leaf value
    """
    row: dict[str, JSONScalar] = {}
    for path, leaf in _walk(payload, ""):
        row.setdefault(path, leaf)
    return row


def render_value(value: JSONScalar) -> str:
    """Render one leaf for the data line.

    None renders as an empty cell, booleans as ``true``/``false``, numbers
    in JSON number syntax and strings verbatim.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)):
        return json.dumps(value)
    return str(value)


def to_frame(payload: JSONValue) -> pd.DataFrame:
    """One-row DataFrame of rendered leaf values, one column per path."""
    row = flatten(payload)
    return pd.DataFrame([[render_value(v) for v in row.values()]], columns=list(row.keys()))


def to_csv(payload: JSONValue, quoting: str = "none") -> str:
    """Serialize a payload as a header line and a single data line.

    Args:
        payload: Any JSON-compatible value
        quoting: 'none' joins cells with commas as-is (commas or newlines
            inside values are not escaped); 'csv' applies minimal RFC 4180
            quoting

    Returns:
        ``header\\nrow`` with no trailing newline

    Raises:
        ValueError: If quoting is not a known mode
    """
    if quoting not in QUOTING_MODES:
        raise ValueError(f"quoting must be one of {QUOTING_MODES}, got {quoting!r}")

    row = flatten(payload)
    if quoting == "none" or not row:
        header = ",".join(row.keys())
        data = ",".join(render_value(v) for v in row.values())
        return f"{header}\n{data}"

    return to_frame(payload).to_csv(index=False, lineterminator="\n").rstrip("\n")


def to_json(result: FetchResult) -> str:
    """The structured form: the whole fetch result, untransformed."""
    return json.dumps(result.to_dict())
