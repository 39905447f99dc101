# synth/arguments.py
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from .. import settings
from ..expressions import Deferred, classify

# GitHub evaluates every ${{ in a workflow file, including inside run:
# blocks. Literal text is split so the opener never appears verbatim.
_OPENER = "${{"
_SPLIT_OPENER = "('$' '{{')"


@dataclass(frozen=True)
class MarshaledArguments:
    """
    Arguments rendered as Python source.

    call_args:     one expression per argument, in order
    declarations:  in-script defaults for deferred values
    env:           step env entries GitHub fills in at run time
    """
    call_args: List[str] = field(default_factory=list)
    declarations: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)


def python_literal(value: Any) -> str:
    """Render a scalar as a Python literal that GitHub leaves untouched."""
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, int):
        return repr(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return f"float({repr(value)!r})"
        return repr(value)
    if isinstance(value, str):
        if _OPENER not in value:
            return repr(value)
        parts = ", ".join(repr(p) for p in value.split(_OPENER))
        return f"{_SPLIT_OPENER}.join([{parts}])"
    raise TypeError(f"Cannot render {type(value).__name__} as a literal")


def env_var_name(index: int, prefix: str | None = None) -> str:
    """Env var carrying the deferred argument at `index`."""
    return f"{prefix if prefix is not None else settings.ENV_PREFIX}{index}"


def marshal_arguments(args: Iterable[Any], *, prefix: str | None = None) -> MarshaledArguments:
    out = MarshaledArguments()
    for index, raw in enumerate(args):
        value = classify(raw)
        if not isinstance(value, Deferred):
            out.call_args.append(python_literal(value.value))
            continue

        name = env_var_name(index, prefix)
        fallback = python_literal(value.expression)
        out.call_args.append(f"os.environ.get({name!r}, {fallback})")
        out.declarations.append(f"os.environ.setdefault({name!r}, {fallback})")
        out.env[name] = value.expression
    return out
