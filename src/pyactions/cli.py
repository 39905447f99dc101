# cli.py
from __future__ import annotations

import sys
from pathlib import Path

import click

from . import settings
from .errors import SynthError, WorkflowLoadError
from .loader import WORKFLOW_SOURCE_DIR, find_workflow_files, load_workflows
from .serialize import render, synthesize_multiple, workflow_filename
from .ui.console import Console, get_console, set_console


def discover_workflows(files: tuple[str, ...]) -> list[Path]:
    """
    Resolve workflow files from arguments, or discover them.

    Raises:
        SystemExit: if a file does not exist or nothing is found
    """
    console = get_console()

    if files:
        paths = []
        for f in files:
            p = Path(f)
            if not p.exists() and p.suffix != ".py":
                p = Path(str(p) + ".py")
            if not p.exists():
                console.print_error(
                    "Workflow file not found",
                    f"Could not find workflow file: {f}",
                    suggestion="Specify an existing file:\n  pyactions synth my_workflow.py",
                )
                sys.exit(1)
            paths.append(p)
        return paths

    paths = find_workflow_files()
    if not paths:
        console.print_error(
            "No workflow file found",
            "Could not find any workflow source files.",
            details=[
                "Looked for:",
                f"  {WORKFLOW_SOURCE_DIR}/*.py",
                "  *_workflow.py",
            ],
            suggestion="Create a workflow file:\n  ci_workflow.py\n\nOr specify one explicitly:\n  pyactions synth my_workflow.py",
        )
        sys.exit(1)
    return paths


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """pyactions: write GitHub Actions workflows in Python."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.argument("files", nargs=-1, type=click.Path(dir_okay=False))
@click.option(
    "-o",
    "--output",
    default=None,
    help=f"Output directory (default: $PYACTIONS_OUTPUT_DIR or {settings.OUTPUT_DIR})",
)
@click.option("--bundle/--no-bundle", default=True, show_default=True, help="Bundle first-party imports into step scripts")
@click.option("--bundler", default=None, help=f"Bundler command (default: {settings.BUNDLER})")
@click.option("--workers", default=None, type=int, help="Synthesize function steps in parallel")
@click.option("--stdout", "to_stdout", is_flag=True, default=False, help="Print YAML instead of writing files")
@click.pass_context
def synth(ctx, files, output, bundle, bundler, workers, to_stdout):
    """Synthesize GitHub Actions YAML from Python workflow files."""
    console = get_console()
    paths = discover_workflows(files)
    out_dir = Path(output or settings.OUTPUT_DIR)
    options = dict(bundle=bundle, bundler=bundler, max_workers=workers)

    try:
        # every file is loaded and rendered before anything is emitted
        workflows = []
        for path in paths:
            loaded = load_workflows(path)
            console.print_debug(f"Loaded {len(loaded)} workflow(s) from {path}")
            workflows.extend(loaded)

        if to_stdout:
            rendered = [(workflow_filename(w), render(w, **options)) for w in workflows]
            for name, text in rendered:
                click.echo(f"# {name}")
                click.echo(text, nl=False)
            return

        console.print_synth_started(
            source=", ".join(str(p) for p in paths),
            workflow_count=len(workflows),
            output=str(out_dir),
        )
        written = synthesize_multiple(workflows, out_dir, **options)
        for w, p in zip(workflows, written):
            console.print_written(w.name, str(p))

    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except WorkflowLoadError as e:
        console.print_error(
            "Failed to load workflow",
            f"Could not load workflow from {e.path}",
            details=[e.message],
        )
        if ctx.obj.get("debug", False):
            console.print_exception(e)
        sys.exit(1)
    except SynthError as e:
        where = e.where()
        console.print_error(
            "Synthesis failed",
            str(e),
            details=[where] if where else None,
        )
        if ctx.obj.get("debug", False):
            console.print_exception(e)
        sys.exit(1)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


if __name__ == "__main__":
    cli()
