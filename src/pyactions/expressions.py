# expressions.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Union

# Matches a GitHub Actions expression: ${{ ... }}
EXPRESSION_RE = re.compile(r"\$\{\{\s*[^}]+?\s*\}\}")


@dataclass(frozen=True)
class Literal:
    """An argument known at synthesis time."""
    value: Union[str, int, float, bool]


@dataclass(frozen=True)
class Deferred:
    """An argument GitHub Actions resolves when the job runs."""
    expression: str


ArgumentValue = Union[Literal, Deferred]


def is_expression(text: Any) -> bool:
    """True if `text` is a string containing a `${{ ... }}` expression."""
    return isinstance(text, str) and EXPRESSION_RE.search(text) is not None


def expr(text: str) -> Deferred:
    """
    Mark `text` as a deferred expression.

    Example:
        py(deploy, expr("${{ github.ref_name }}"), "prod")
    """
    if not is_expression(text):
        raise ValueError(f"Not a GitHub Actions expression: {text!r} (expected '${{{{ ... }}}}')")
    return Deferred(text)


def classify(value: Any) -> ArgumentValue:
    """
    Tag a raw argument.

    Plain strings are always literals, even when they contain `${{`; use
    `expr()` to defer a value.
    """
    if isinstance(value, (Literal, Deferred)):
        return value
    if isinstance(value, (str, bool, int, float)):
        return Literal(value)
    raise TypeError(
        f"Unsupported argument type {type(value).__name__}: "
        "function-step arguments must be str, int, float, bool or expr(...)"
    )
