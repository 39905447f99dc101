# synth/extractor.py
from __future__ import annotations

import ast
import textwrap
from dataclasses import dataclass
from pathlib import Path
from types import CodeType
from typing import Any, Callable, List, Optional, Tuple, Union

from ..errors import NodeNotFound
from .locator import SourceLocation

# ---------------------------------------------------------------------
# Finding the definition of a registered callable
# ---------------------------------------------------------------------
# Three passes, most precise first:
#   definition: the code object's own (co_filename, co_firstlineno)
#   precise:    a py(...)/run_python(...) call within +-10 lines of the
#               declaring frame; its first argument is the function
#   fallback:   any function node within +-100 lines, by name, or the
#               nearest lambda when the callable is anonymous
# ---------------------------------------------------------------------

ENTRY_POINTS = ("py", "run_python")
LAMBDA_ENTRY = "step_function"
PRECISE_RADIUS = 10
FALLBACK_RADIUS = 100

FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda]
_DEF_TYPES = (ast.FunctionDef, ast.AsyncFunctionDef)
_FUNCTION_TYPES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda)


@dataclass(frozen=True)
class ExtractedFunction:
    """
    Source of a single function, ready to be embedded in a script.

    `source` always parses on its own as exactly one `def`. Lambdas are
    reprinted as `def step_function(...)`, so `name` is None and
    `entry_point` is the name to call.
    """
    source: str
    file: Path
    name: str | None
    start_line: int
    end_line: int
    entry_point: str


def declared_name(fn: Callable[..., Any]) -> str | None:
    name = getattr(fn, "__name__", None)
    if not name or name == "<lambda>":
        return None
    return name


def _parse_file(path: Path, function: str, line: int) -> Tuple[str, ast.Module]:
    try:
        source = path.read_text(encoding="utf-8")
        return source, ast.parse(source, filename=str(path))
    except (OSError, SyntaxError, ValueError) as e:
        raise NodeNotFound(function=function, file=path, line=line, reason=str(e)) from e


def _function_nodes(tree: ast.AST) -> List[FunctionNode]:
    return [n for n in ast.walk(tree) if isinstance(n, _FUNCTION_TYPES)]


def _start_line(node: ast.AST) -> int:
    # co_firstlineno of a decorated function is its first decorator line
    if isinstance(node, _DEF_TYPES) and node.decorator_list:
        return node.decorator_list[0].lineno
    return node.lineno


def _matches(node: ast.AST, name: str | None) -> bool:
    if name is None:
        return isinstance(node, ast.Lambda)
    return isinstance(node, _DEF_TYPES) and node.name == name


def _span_distance(node: ast.AST, line: int) -> int:
    end = getattr(node, "end_lineno", None) or node.lineno
    if node.lineno <= line <= end:
        return 0
    return min(abs(node.lineno - line), abs(end - line))


def _nearest(nodes: List[FunctionNode], line: int) -> Optional[FunctionNode]:
    if not nodes:
        return None
    return min(nodes, key=lambda n: (abs(_start_line(n) - line), n.lineno))


# ---------------------------------------------------------------------
# Passes
# ---------------------------------------------------------------------

def _fingerprint(code: CodeType) -> tuple:
    consts = tuple(_fingerprint(c) if isinstance(c, CodeType) else c for c in code.co_consts)
    return code.co_code, consts, code.co_names, code.co_varnames, code.co_argcount


def _compiled_lambda(node: ast.Lambda, path: Path) -> Optional[CodeType]:
    try:
        outer = compile(ast.Expression(body=node), str(path), "eval")
    except (SyntaxError, TypeError, ValueError):
        return None
    return next((c for c in outer.co_consts if isinstance(c, CodeType)), None)


def _definition_pass(
    tree: ast.Module, code: CodeType, path: Path, name: str | None
) -> Optional[FunctionNode]:
    hits = [n for n in _function_nodes(tree) if _start_line(n) == code.co_firstlineno and _matches(n, name)]
    if len(hits) <= 1:
        return hits[0] if hits else None

    # several lambdas on one line: recompile each and compare bytecode
    wanted = _fingerprint(code)
    same = []
    for node in hits:
        compiled = _compiled_lambda(node, path)
        if compiled is not None and _fingerprint(compiled) == wanted:
            same.append(node)
    if not same:
        raise NodeNotFound(
            function=name or "<lambda>",
            file=path,
            line=code.co_firstlineno,
            reason=f"{len(hits)} lambdas on this line and none compiles to the registered one",
        )
    # identical bytecode means interchangeable source
    return same[0]


def _callee_name(call: ast.Call) -> str | None:
    if isinstance(call.func, ast.Name):
        return call.func.id
    if isinstance(call.func, ast.Attribute):
        return call.func.attr
    return None


def _target_argument(call: ast.Call) -> Optional[ast.expr]:
    if call.args and not isinstance(call.args[0], ast.Starred):
        return call.args[0]
    for kw in call.keywords:
        if kw.arg == "fn":
            return kw.value
    return None


def _bindings_of(tree: ast.Module, ident: str) -> List[FunctionNode]:
    """`def ident(...)` and `ident = lambda ...` anywhere in the module."""
    found: List[FunctionNode] = []
    for node in ast.walk(tree):
        if isinstance(node, _DEF_TYPES) and node.name == ident:
            found.append(node)
        elif (
            isinstance(node, ast.Assign)
            and isinstance(node.value, ast.Lambda)
            and any(isinstance(t, ast.Name) and t.id == ident for t in node.targets)
        ):
            found.append(node.value)
    return found


def _resolve_target(tree: ast.Module, call: ast.Call, name: str | None) -> Optional[FunctionNode]:
    arg = _target_argument(call)
    if isinstance(arg, ast.Lambda):
        return arg if name is None else None
    if not isinstance(arg, ast.Name):
        return None

    bindings = [b for b in _bindings_of(tree, arg.id) if _matches(b, name)]
    before = [b for b in bindings if b.lineno <= call.lineno]
    if before:
        return max(before, key=lambda b: b.lineno)
    return _nearest(bindings, call.lineno)


def _precise_pass(tree: ast.Module, line: int, name: str | None) -> Optional[FunctionNode]:
    calls = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Call) and _callee_name(node) in ENTRY_POINTS:
            distance = _span_distance(node, line)
            if distance <= PRECISE_RADIUS:
                calls.append((distance, node.lineno, node))

    for _distance, _lineno, call in sorted(calls, key=lambda c: (c[0], c[1])):
        target = _resolve_target(tree, call, name)
        if target is not None:
            return target
    return None


def _fallback_pass(tree: ast.Module, line: int, name: str | None) -> Optional[FunctionNode]:
    nearby = [n for n in _function_nodes(tree) if abs(_start_line(n) - line) <= FALLBACK_RADIUS]
    if name is not None:
        return _nearest([n for n in nearby if _matches(n, name)], line)
    lambdas = [n for n in nearby if isinstance(n, ast.Lambda)]
    return _nearest(lambdas, line) or _nearest(nearby, line)


# ---------------------------------------------------------------------
# Reprinting
# ---------------------------------------------------------------------

def _is_single_def(text: str) -> bool:
    try:
        mod = ast.parse(text)
    except SyntaxError:
        return False
    return len(mod.body) == 1 and isinstance(mod.body[0], _DEF_TYPES)


def _lambda_source(source: str, node: ast.Lambda) -> str:
    params = ast.unparse(node.args)
    body = ast.get_source_segment(source, node.body) or ast.unparse(node.body)
    return f"def {LAMBDA_ENTRY}({params}):\n    return ({body})\n"


def _def_source(source: str, node: ast.AST) -> str:
    # source text keeps comments; decorators are not part of the node span
    segment = ast.get_source_segment(source, node, padded=True)
    if segment is not None:
        text = textwrap.dedent(segment).rstrip() + "\n"
        if _is_single_def(text):
            return text
    # dedent can fail on odd multi-line strings; reprint without comments
    node = _strip_decorators(node)
    return ast.unparse(node) + "\n"


def _strip_decorators(node: ast.AST) -> ast.AST:
    clone = ast.parse(ast.unparse(node)).body[0]
    clone.decorator_list = []
    return clone


def _build(source: str, path: Path, node: FunctionNode) -> ExtractedFunction:
    if isinstance(node, ast.Lambda):
        text = _lambda_source(source, node)
        name, entry = None, LAMBDA_ENTRY
    else:
        text = _def_source(source, node)
        name, entry = node.name, node.name

    if not _is_single_def(text):
        raise NodeNotFound(
            function=name or "<lambda>",
            file=path,
            line=node.lineno,
            reason="extracted source is not a standalone function definition",
        )

    return ExtractedFunction(
        source=text,
        file=path,
        name=name,
        start_line=node.lineno,
        end_line=node.end_lineno or node.lineno,
        entry_point=entry,
    )


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def extract_function(
    fn: Callable[..., Any],
    location: SourceLocation,
    *,
    name: str | None = None,
) -> ExtractedFunction:
    """
    Recover the source of `fn`, declared near `location`.

    Raises:
        NodeNotFound: if no pass finds a matching function node
    """
    if name is None:
        name = declared_name(fn)
    label = name or "<lambda>"

    code = getattr(fn, "__code__", None)
    if code is not None:
        def_path = Path(code.co_filename)
        if def_path.is_file():
            source, tree = _parse_file(def_path, label, code.co_firstlineno)
            node = _definition_pass(tree, code, def_path, name)
            if node is not None:
                return _build(source, def_path.resolve(), node)

    source, tree = _parse_file(location.file, label, location.line)
    node = _precise_pass(tree, location.line, name) or _fallback_pass(tree, location.line, name)
    if node is None:
        raise NodeNotFound(function=label, file=location.file, line=location.line)
    return _build(source, location.file, node)
