"""Text form of column and parameter lists: ``(col1: type1, col2: type2, ...)``."""

from __future__ import annotations

import re

from .types import Column


_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class SchemaTextError(ValueError):
    """Raised when a column list cannot be parsed."""
    pass


def bracket_name_if_necessary(name: str) -> str:
    """Quote a column name as ``['name']`` unless it is a plain identifier."""
    if _IDENTIFIER.match(name):
        return name
    return get_bracketed_name(name)


def get_bracketed_name(name: str) -> str:
    """Always quote a name as ``['name']`` (used when embedding names in commands)."""
    escaped = name.replace("\\", "\\\\").replace("'", "\\'")
    return f"['{escaped}']"


def _unbracket_name(text: str) -> str:
    text = text.strip()
    if text.startswith("[") and text.endswith("]"):
        text = text[1:-1].strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        body = text[1:-1]
        return re.sub(r"\\(.)", r"\1", body)
    return text


def _split_top_level(text: str, separator: str) -> list[str]:
    """Split on a separator that is not nested inside brackets, parens or quotes."""
    parts: list[str] = []
    depth = 0
    quote: str | None = None
    escaped = False
    current: list[str] = []

    for ch in text:
        if quote:
            current.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue

        if ch in ("'", '"'):
            quote = ch
        elif ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
            if depth < 0:
                raise SchemaTextError(f"Unbalanced brackets in: {text}")
        elif ch == separator and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)

    if quote or depth != 0:
        raise SchemaTextError(f"Unterminated schema text: {text}")

    parts.append("".join(current))
    return parts


def _strip_parens(text: str) -> str:
    text = text.strip()
    if text.startswith("(") and text.endswith(")"):
        return text[1:-1].strip()
    return text


def parse_columns(schema: str | None) -> tuple[Column, ...]:
    """Parse ``(a: long, ['b c']: string)`` into columns."""
    body = _strip_parens(schema or "")
    if not body or body == "*":
        return ()

    columns = []
    for part in _split_top_level(body, ","):
        if not part.strip():
            continue
        pieces = _split_top_level(part, ":")
        if len(pieces) < 2:
            raise SchemaTextError(f"Column declaration without type: {part.strip()}")
        name = _unbracket_name(pieces[0])
        col_type = ":".join(pieces[1:]).strip()
        if not name or not col_type:
            raise SchemaTextError(f"Invalid column declaration: {part.strip()}")
        columns.append(Column(name=name, type=col_type))

    return tuple(columns)


def format_columns(columns: tuple[Column, ...] | list[Column]) -> str:
    """Inverse of parse_columns()."""
    return "(" + ", ".join(
        f"{bracket_name_if_necessary(c.name)}: {c.type}" for c in columns
    ) + ")"


def normalize_parameter_list(parameters: str | None) -> str:
    """Make sure a parameter list is wrapped in parentheses."""
    text = (parameters or "").strip()
    if not text:
        return "()"
    if not text.startswith("("):
        text = "(" + text
    if not text.endswith(")"):
        text = text + ")"
    return text
