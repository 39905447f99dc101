"""Tests for synth/processor.py: whole-workflow synthesis."""

import pytest

from pyactions import expr, job, py, sh, wf
from pyactions.errors import SelfContainmentError
from pyactions.model import Step
from pyactions.synth.processor import materialize_step, synthesize_workflow
from pyactions.synth.shell import HEREDOC_DELIMITER

MAX_RETRIES = 3


def check_threshold(data, threshold):
    import sys

    if int(data) > threshold:
        print(f"Value {data} exceeds threshold {threshold}")
        sys.exit(1)


def greet(name):
    print(f"Hello, {name}!")


def retry():
    return MAX_RETRIES


def _heredoc_body(run):
    lines = run.splitlines()
    start = next(i for i, line in enumerate(lines) if line.endswith(f"<< '{HEREDOC_DELIMITER}'"))
    return "\n".join(lines[start + 1:-1]) + "\n"


class TestMaterializeStep:
    """Test replacement of a single function step."""

    def test_metadata_kept(self):
        """Test id, name, if and the rest survive the replacement."""
        step = py(
            greet, "world",
            name="Greet", id="greet", if_="github.event_name == 'push'",
            continue_on_error=True, timeout_minutes=5, working_directory="app",
            env={"MODE": "ci"},
        )
        new = materialize_step(step, bundle=False)

        assert new.function is None
        assert new.run.startswith(f"python - << '{HEREDOC_DELIMITER}'\n")
        assert (new.name, new.id, new.if_) == ("Greet", "greet", "github.event_name == 'push'")
        assert (new.continue_on_error, new.timeout_minutes, new.working_directory) == (True, 5, "app")
        assert new.env == {"MODE": "ci"}

    def test_deferred_env_added(self):
        """Test deferred arguments add env entries for GitHub to fill."""
        step = py(greet, expr("${{ github.actor }}"), env={"MODE": "ci"})
        new = materialize_step(step, bundle=False)
        assert new.env == {"MODE": "ci", "GITHUB_EXPR_0": "${{ github.actor }}"}

    def test_run_script_executes(self, run_script):
        """Test the heredoc body is the runnable script."""
        new = materialize_step(py(check_threshold, "100", 50), bundle=False)
        proc = run_script(_heredoc_body(new.run))
        assert proc.returncode == 1
        assert proc.stdout == "Value 100 exceeds threshold 50\n"

    def test_requirements_installed_first(self):
        """Test pip install runs before the script for the python runtime."""
        new = materialize_step(py(greet, "x", requirements=["rich"]), bundle=False)
        assert new.run.splitlines()[0] == "python -m pip install rich"

    def test_uv_interpreter(self):
        """Test the uv runtime runs the script through uv."""
        new = materialize_step(py(greet, "x", runtime="uv", version="3.11"), bundle=False)
        assert new.run.startswith(f"uv run --no-project --python 3.11 - << '{HEREDOC_DELIMITER}'")

    def test_plain_step_untouched(self):
        """Test non-function steps are returned as-is."""
        step = sh("Test", "pytest")
        assert materialize_step(step) is step


class TestSynthesizeWorkflow:
    """Test the whole-graph pass."""

    def test_function_steps_replaced_in_place(self):
        """Test setup is prepended and every function step becomes a run step."""
        lint = sh("Lint", "ruff check .")
        w = wf(
            "CI",
            job("lint", lint),
            job("build", py(greet, "a", name="A"), sh("Between", "true"), py(lambda: None, name="B")),
        )
        synthesize_workflow(w, bundle=False)

        assert w.job("lint").steps == [lint]
        names = [s.name for s in w.job("build").steps]
        assert names == ["Setup Python", "A", "Between", "B"]
        assert not any(s.is_function for j in w.jobs for s in j.steps)

    def test_parallel_matches_sequential(self):
        """Test max_workers produces the same steps."""
        def build():
            return wf("CI", job("a", py(greet, "x")), job("b", py(greet, "y"), py(greet, "z")))

        seq = synthesize_workflow(build(), bundle=False)
        par = synthesize_workflow(build(), bundle=False, max_workers=4)
        assert [[s.run for s in j.steps] for j in seq.jobs] == [[s.run for s in j.steps] for j in par.jobs]

    def test_lambdas_on_one_line(self, run_script):
        """Test two lambdas declared on the same line each keep their own body."""
        w = wf("CI", job("j", py(lambda: print("first")), py(lambda: print("second"))))
        synthesize_workflow(w, bundle=False)

        outputs = [run_script(_heredoc_body(s.run)).stdout for s in w.job("j").steps[1:]]
        assert outputs == ["first\n", "second\n"]

    def test_fatal_error_leaves_graph_untouched(self):
        """Test no step list changes when any step fails."""
        good = py(greet, "x", name="Good")
        bad = py(retry, name="Bad")
        w = wf("CI", job("first", good), job("second", sh("Setup", "true"), bad))
        before = [list(j.steps) for j in w.jobs]

        with pytest.raises(SelfContainmentError) as exc:
            synthesize_workflow(w, bundle=False)

        assert [list(j.steps) for j in w.jobs] == before
        assert exc.value.job == "second"
        assert exc.value.step == "Bad"
        assert exc.value.names == ["MAX_RETRIES"]

    def test_fatal_error_in_parallel(self):
        """Test the parallel path also aborts without changes."""
        w = wf("CI", job("a", py(greet, "x"), py(retry)))
        before = list(w.job("a").steps)
        with pytest.raises(SelfContainmentError):
            synthesize_workflow(w, bundle=False, max_workers=2)
        assert w.job("a").steps == before

    def test_at_most_one_action(self):
        """Test a step cannot carry both a command and an action."""
        with pytest.raises(ValueError):
            Step(name="x", run="echo", uses="actions/checkout@v4")
        with pytest.raises(ValueError):
            Step(name="x", with_={"a": "b"}, run="echo")
