# synth/scripts.py
from __future__ import annotations

import ast
import builtins
import json
import re
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..errors import BundleFailure, SelfContainmentError
from ..ui.console import get_console
from .arguments import MarshaledArguments, marshal_arguments, python_literal
from .bundler import bundle as run_bundler
from .extractor import ExtractedFunction
from .runtimes import RuntimeFamily, get_runtime

# ---------------------------------------------------------------------
# Script layout
# ---------------------------------------------------------------------
# Every synthesized script is:
#
#   [PEP 723 header, uv only]
#   error-normalizing wrapper   (report + excepthook)
#   loader                      (bundled blob in a module host, or the
#                                downleveled function inline)
#   invoke                      (call, await, print result, exit 0/1)
#
# The exit code is the only thing the hosting job observes.
# ---------------------------------------------------------------------

WRAPPER = '''\
import inspect as _pyactions_inspect
import sys as _pyactions_sys
import traceback as _pyactions_traceback


def _pyactions_report(exc):
    print(f"Error in Python function: {type(exc).__name__}: {exc}", file=_pyactions_sys.stderr)
    frames = _pyactions_traceback.extract_tb(exc.__traceback__)
    if frames:
        print("Stack trace:", file=_pyactions_sys.stderr)
    for frame in frames:
        column = (getattr(frame, "colno", None) or 0) + 1
        where = f"{frame.filename}:{frame.lineno}:{column}"
        print(f"    at {frame.name or '<anonymous>'} ({where})", file=_pyactions_sys.stderr)


_pyactions_sys.excepthook = lambda exc_type, exc, tb: _pyactions_report(exc)
'''

BUNDLE_LOADER = '''\
import __future__ as _pyactions_future
import types as _pyactions_types

_PYACTIONS_BUNDLE = __BUNDLE__


def _pyactions_load():
    module = _pyactions_types.ModuleType("__pyactions_bundle__")
    code = compile(
        _PYACTIONS_BUNDLE,
        "<bundle>",
        "exec",
        flags=_pyactions_future.annotations.compiler_flag,
        dont_inherit=True,
    )
    exec(code, module.__dict__)
    return getattr(module, module.__all__[0])
'''

INLINE_LOADER = '''\
def _pyactions_load():
    return __ENTRY__
'''

INVOKE = '''\
def _pyactions_main():
    result = _pyactions_load()(__ARGS__)
    if _pyactions_inspect.iscoroutine(result):
        import asyncio
        result = asyncio.run(result)
    if result is not None and not (isinstance(result, str) and result == ""):
        print(result)


try:
    _pyactions_main()
except Exception as exc:
    _pyactions_report(exc)
    _pyactions_sys.exit(1)
_pyactions_sys.exit(0)
'''

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)")
_MIN_FEATURE_VERSION = (3, 7)
_BUILTINS = frozenset(dir(builtins))


@dataclass(frozen=True)
class StepScriptRequest:
    function: ExtractedFunction
    args: Tuple[Any, ...] = ()
    runtime: str = "python"
    version: str | None = None
    requirements: Tuple[str, ...] = ()
    env_prefix: str | None = None


@dataclass(frozen=True)
class SynthesizedScript:
    code: str
    dependencies: Tuple[str, ...] = ()
    bundled: bool = False
    env: Dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------
# Self-containment
# ---------------------------------------------------------------------

def _annotation_nodes(tree: ast.AST) -> set[int]:
    """ids of nodes inside annotations; scripts never evaluate those."""
    roots: List[ast.AST] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.arg) and node.annotation is not None:
            roots.append(node.annotation)
        elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)) and node.returns is not None:
            roots.append(node.returns)
        elif isinstance(node, ast.AnnAssign):
            roots.append(node.annotation)
    return {id(n) for root in roots for n in ast.walk(root)}


def unresolved_names(source: str, entry_point: str) -> List[str]:
    """
    Names the function reads but never binds, imports, or gets from builtins.

    Scoping is flattened: a name bound anywhere in the function counts as
    bound everywhere in it.
    """
    tree = ast.parse(source)
    skip = _annotation_nodes(tree)
    loaded: List[str] = []
    bound = {entry_point}

    for node in ast.walk(tree):
        if id(node) in skip:
            continue
        if isinstance(node, ast.Name):
            if isinstance(node.ctx, ast.Load):
                loaded.append(node.id)
            else:
                bound.add(node.id)
        elif isinstance(node, ast.arg):
            bound.add(node.arg)
        elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            bound.add(node.name)
        elif isinstance(node, (ast.Import, ast.ImportFrom)):
            for alias in node.names:
                if alias.name == "*":
                    return []
                bound.add(alias.asname or alias.name.split(".")[0])
        elif isinstance(node, ast.ExceptHandler) and node.name:
            bound.add(node.name)
        elif isinstance(node, (ast.MatchAs, ast.MatchStar)) and node.name:
            bound.add(node.name)
        elif isinstance(node, ast.MatchMapping) and node.rest:
            bound.add(node.rest)

    unresolved = [n for n in loaded if n not in bound and n not in _BUILTINS]
    return list(dict.fromkeys(unresolved))


def check_self_contained(function: ExtractedFunction, fn: Optional[Callable[..., Any]] = None) -> None:
    """
    Reject functions that would fail only once the hosting job runs them.

    Raises:
        SelfContainmentError: closures, or reads of names defined outside the body
    """
    label = function.name or "<lambda>"
    freevars = getattr(getattr(fn, "__code__", None), "co_freevars", ())
    if freevars:
        raise SelfContainmentError(
            function=label,
            names=list(freevars),
            reason="closes over variables from an enclosing scope",
        )
    names = unresolved_names(function.source, function.entry_point)
    if names:
        raise SelfContainmentError(function=label, names=names)


# ---------------------------------------------------------------------
# Imports and dependencies
# ---------------------------------------------------------------------

def _import_statements(source: str) -> List[ast.stmt]:
    stmts = [
        n for n in ast.walk(ast.parse(source))
        if isinstance(n, ast.Import) or (isinstance(n, ast.ImportFrom) and n.level == 0 and n.module)
    ]
    return sorted(stmts, key=lambda n: (n.lineno, n.col_offset))


def _top_modules(stmt: ast.stmt) -> List[str]:
    if isinstance(stmt, ast.Import):
        return [a.name.split(".")[0] for a in stmt.names]
    return [stmt.module.split(".")[0]]


def imported_modules(source: str) -> List[str]:
    """Top-level module names imported anywhere in `source`, in source order."""
    names: List[str] = []
    for stmt in _import_statements(source):
        names.extend(_top_modules(stmt))
    return list(dict.fromkeys(names))


def is_stdlib(module: str) -> bool:
    return module in sys.stdlib_module_names or module == "__future__"


def is_first_party(module: str, search_paths: Iterable[Path]) -> bool:
    for root in search_paths:
        if (root / module).is_dir() or (root / f"{module}.py").is_file():
            return True
    return False


def default_search_paths(function: ExtractedFunction) -> List[Path]:
    paths = [function.file.parent.resolve(), Path.cwd().resolve()]
    return list(dict.fromkeys(paths))


def hoisted_imports(source: str, search_paths: Sequence[Path]) -> List[str]:
    """
    First-party imports from the function body, lifted to module level.

    Bundled modules only exist while the bundle is being loaded, so they
    are imported eagerly at load time.
    """
    lines: List[str] = []
    for stmt in _import_statements(source):
        if isinstance(stmt, ast.Import):
            for alias in stmt.names:
                if is_first_party(alias.name.split(".")[0], search_paths):
                    lines.append(ast.unparse(ast.Import(names=[alias])))
        elif is_first_party(stmt.module.split(".")[0], search_paths):
            lines.append(ast.unparse(stmt))
    return list(dict.fromkeys(lines))


# ---------------------------------------------------------------------
# Downleveling (no bundler)
# ---------------------------------------------------------------------

class _StripSignatureAnnotations(ast.NodeTransformer):
    """Drop parameter and return annotations; they are evaluated at def time."""

    def _visit_def(self, node):
        args = node.args
        for a in (*args.posonlyargs, *args.args, *args.kwonlyargs, args.vararg, args.kwarg):
            if a is not None:
                a.annotation = None
        node.returns = None
        self.generic_visit(node)
        return node

    visit_FunctionDef = _visit_def
    visit_AsyncFunctionDef = _visit_def


class _SplitExpressionOpeners(ast.NodeTransformer):
    """Rewrite string constants so `${{` never appears in the reprinted source."""

    def _literal(self, value: str, like: ast.AST) -> ast.expr:
        return ast.copy_location(ast.parse(python_literal(value), mode="eval").body, like)

    def visit_Constant(self, node):
        if isinstance(node.value, str) and "${{" in node.value:
            return self._literal(node.value, node)
        return node

    def visit_JoinedStr(self, node):
        # literal f-string text is reprinted with doubled braces, so "${" becomes "${{"
        values = []
        for part in node.values:
            if isinstance(part, ast.Constant) and "${" in part.value:
                part = ast.FormattedValue(value=self._literal(part.value, part), conversion=-1, format_spec=None)
            else:
                part = self.visit(part)
            values.append(part)
        node.values = values
        return node

    def visit_MatchValue(self, node):
        # patterns only accept plain literals
        return node


def target_feature_version(version: str | None) -> Optional[Tuple[int, int]]:
    m = _VERSION_RE.match(version or "")
    if not m:
        return None
    return int(m.group(1)), int(m.group(2))


def downlevel(source: str, version: str | None = None) -> str:
    """
    Reprint `source` for an older interpreter, warning if its grammar is too new.

    String constants containing `${{` are split, so GitHub does not evaluate
    them once the script is embedded in a workflow.
    """
    tree = _StripSignatureAnnotations().visit(ast.parse(source))
    tree = _SplitExpressionOpeners().visit(tree)
    code = ast.unparse(ast.fix_missing_locations(tree)) + "\n"

    target = target_feature_version(version)
    if target is not None and target <= sys.version_info[:2]:
        try:
            ast.parse(code, feature_version=max(target, _MIN_FEATURE_VERSION))
        except SyntaxError as e:
            get_console().print_warning(
                f"Function source may not run on Python {version}: {e.msg} (line {e.lineno})"
            )
    return code


# ---------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------

def script_header(runtime: RuntimeFamily, version: str | None, requirements: Sequence[str]) -> str:
    """PEP 723 inline metadata, read by `uv run`."""
    if runtime.name != "uv":
        return ""
    lines = ["# /// script"]
    target = target_feature_version(version)
    if target is not None:
        lines.append(f'# requires-python = ">={target[0]}.{target[1]}"')
    lines.append(f"# dependencies = {json.dumps(list(requirements))}")
    lines.append("# ///")
    return "\n".join(lines) + "\n\n"


def build_entry_module(function: ExtractedFunction, marshaled: MarshaledArguments, hoisted: Sequence[str] = ()) -> str:
    """Virtual entry module: env defaults, imports, the function, and its export."""
    parts = ["import os"]
    parts.extend(marshaled.declarations)
    if hoisted:
        parts.append("")
        parts.extend(hoisted)
    parts.extend(["", "", function.source.rstrip(), "", ""])
    parts.append(f"__all__ = [{function.entry_point!r}]")
    return "\n".join(parts) + "\n"


def _invoke(marshaled: MarshaledArguments) -> str:
    return INVOKE.replace("__ARGS__", ", ".join(marshaled.call_args))


def _bundled_script(
    request: StepScriptRequest,
    marshaled: MarshaledArguments,
    search_paths: Sequence[Path],
    bundler: str | None,
) -> SynthesizedScript:
    function = request.function
    hoisted = hoisted_imports(function.source, search_paths)
    entry = build_entry_module(function, marshaled, hoisted)
    blob = run_bundler(entry, search_paths=search_paths, command=bundler)

    code = "\n\n".join([
        WRAPPER,
        "import os\n",
        BUNDLE_LOADER.replace("__BUNDLE__", python_literal(blob)),
        _invoke(marshaled),
    ])
    deps = [
        m for m in imported_modules(function.source)
        if not is_stdlib(m) and not is_first_party(m, search_paths)
    ]
    return SynthesizedScript(code=code, dependencies=tuple(deps), bundled=True)


def _inline_script(request: StepScriptRequest, marshaled: MarshaledArguments, version: str) -> SynthesizedScript:
    function = request.function
    body = ["import os", *marshaled.declarations, "", "", downlevel(function.source, version)]
    code = "\n\n".join([
        WRAPPER,
        "\n".join(body),
        INLINE_LOADER.replace("__ENTRY__", function.entry_point),
        _invoke(marshaled),
    ])
    deps = [m for m in imported_modules(function.source) if not is_stdlib(m)]
    return SynthesizedScript(code=code, dependencies=tuple(deps), bundled=False)


def synthesize_script(
    request: StepScriptRequest,
    *,
    bundle: bool = True,
    bundler: str | None = None,
    search_paths: Optional[Sequence[Path]] = None,
) -> SynthesizedScript:
    """
    Turn an extracted function plus its arguments into a runnable script.

    With `bundle=True` the external bundler is tried first; if it is missing
    or fails, a warning is printed and the unbundled script is produced.
    """
    runtime = get_runtime(request.runtime)
    version = request.version or runtime.default_version
    marshaled = marshal_arguments(request.args, prefix=request.env_prefix)
    paths = list(search_paths) if search_paths is not None else default_search_paths(request.function)

    script: SynthesizedScript | None = None
    if bundle:
        try:
            script = _bundled_script(request, marshaled, paths, bundler)
        except BundleFailure as e:
            label = request.function.name or "<lambda>"
            get_console().print_warning(
                f"{e}. Falling back to an unbundled script for '{label}'; its imports are not bundled."
            )
    if script is None:
        script = _inline_script(request, marshaled, version)

    header = script_header(runtime, version, request.requirements)
    return replace(script, code=header + script.code, env=dict(marshaled.env))
