#!/usr/bin/env python3
"""
md.py
-------------------
Front matter helpers for the markdown mirror.

Mirror files open with a YAML block fenced by `---` lines. The writer side
formats scalars by hand (fixed key order, always-quoted strings) so output
is byte-stable; everything it writes loads back through yaml.safe_load.
"""
from __future__ import annotations

# --- Standard library imports ---
from typing import Any, List, Tuple

FENCE = "---"

_YAML_ESCAPES = str.maketrans(
    {
        "\\": "\\\\",
        '"': '\\"',
        "\n": "\\n",
        "\r": "\\r",
        "\t": "\\t",
    }
)


def split_frontmatter(content: str) -> Tuple[str, List[str]]:
    """
    Separate the YAML block from the body of a mirror file.

    Blank lines between the closing fence and the body are dropped. A file
    without an opening fence, or whose block is never closed, has no
    front matter.

    Returns:
        (frontmatter_text, body_lines)

    Examples:
        >>> split_frontmatter("---\\nid: abc\\n---\\n\\nBody text")
        ('id: abc', ['Body text'])
    """
    lines = content.splitlines()
    if not lines or lines[0].strip() != FENCE:
        return "", lines

    try:
        closing = next(i for i, line in enumerate(lines[1:], 1) if line.strip() == FENCE)
    except StopIteration:
        return "", lines

    body = lines[closing + 1 :]
    first_text = next((i for i, line in enumerate(body) if line.strip()), len(body))
    return "\n".join(lines[1:closing]), body[first_text:]


def yaml_escape(value: str) -> str:
    """Escape for the inside of a double-quoted YAML scalar."""
    return value.translate(_YAML_ESCAPES)


def yaml_scalar(value: Any) -> str:
    """
    One front matter value.

    Strings are always double-quoted so ids like `1700000000000-abc` and
    titles like `yes` load back as strings.

    Examples:
        >>> yaml_scalar(None), yaml_scalar(1.5), yaml_scalar("Walk")
        ('null', '1.5', '"Walk"')
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return repr(value)
    return f'"{yaml_escape(str(value))}"'


def yaml_list(items: List[Any]) -> str:
    """Inline flow sequence, e.g. `["work", "travel plans"]`."""
    return "[" + ", ".join(yaml_scalar(item) for item in items) + "]"
