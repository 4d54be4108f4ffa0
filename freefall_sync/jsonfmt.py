"""JSON encoders for the reader data file and the date bins."""

from __future__ import annotations

import json
from typing import Any

INDENT = "    "


def dumps_compact(value: Any) -> str:
    """Encode without any whitespace, as used for date bins."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def dumps_reader(value: Any, indent: str = INDENT) -> str:
    """Encode reader data: arrays one element per line, objects on a single line.

    ``[{"i": 1}, {"i": 2, "width": 3}]`` becomes::

        [
            { "i": 1 },
            { "i": 2, "width": 3 }
        ]
    """
    return _encode(value, 0, indent)


def _encode(value: Any, level: int, indent: str) -> str:
    if isinstance(value, dict):
        if not value:
            return "{ }"
        members = ", ".join(
            f"{json.dumps(str(key), ensure_ascii=False)}: {_encode(item, level + 1, indent)}"
            for key, item in value.items()
        )
        return "{ " + members + " }"
    if isinstance(value, (list, tuple)):
        if not value:
            return "[]"
        inner = indent * (level + 1)
        lines = ",\n".join(inner + _encode(item, level + 1, indent) for item in value)
        return "[\n" + lines + "\n" + indent * level + "]"
    return json.dumps(value, ensure_ascii=False)
