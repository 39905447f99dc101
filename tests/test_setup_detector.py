"""Tests for synth/setup_detector.py."""

from pyactions import job, py, settings, sh, uses, wf
from pyactions.synth.setup_detector import (
    SetupRequirement,
    add_setup_steps,
    detect_setup_requirements,
)


def build():
    print("building")


def deploy():
    print("deploying")


class TestDetect:
    """Test requirement detection per job."""

    def test_function_step_needs_setup(self):
        """Test a job with a function step requires its runtime."""
        j = job("build", py(build, version="3.11"))
        assert detect_setup_requirements(j) == [SetupRequirement("python", "3.11")]

    def test_default_version(self):
        """Test the runtime default is used when no version is given."""
        j = job("build", py(build))
        (req,) = detect_setup_requirements(j)
        assert req.version == settings.PYTHON_VERSION

    def test_no_function_steps(self):
        """Test plain jobs need nothing."""
        assert detect_setup_requirements(job("lint", sh("Lint", "ruff check ."))) == []

    def test_existing_setup_step_satisfies(self):
        """Test an explicit setup-python step, any ref, satisfies the requirement."""
        j = job(
            "build",
            uses("Setup", "actions/setup-python@v4", {"python-version": "3.10"}),
            py(build, version="3.11"),
        )
        assert detect_setup_requirements(j) == []

    def test_first_version_wins(self, capsys):
        """Test conflicting versions keep the first and warn."""
        j = job("build", py(build, version="3.11"), py(deploy, version="3.13"))
        assert detect_setup_requirements(j) == [SetupRequirement("python", "3.11")]
        assert "3.13" in capsys.readouterr().err

    def test_runtimes_in_first_seen_order(self):
        """Test one requirement per runtime, ordered by first use."""
        j = job("build", py(build, runtime="uv", version="3.12"), py(deploy, version="3.11"))
        assert detect_setup_requirements(j) == [
            SetupRequirement("uv", "3.12"),
            SetupRequirement("python", "3.11"),
        ]


class TestAddSetupSteps:
    """Test setup step injection."""

    def test_setup_prepended(self, capsys):
        """Test the setup step comes first and the rest keep their order."""
        checkout = uses("Checkout", "actions/checkout@v4")
        step = py(build, version="3.11")
        w = wf("CI", job("build", checkout, step))

        add_setup_steps(w)
        steps = w.job("build").steps
        assert steps[0].uses == "actions/setup-python@v5"
        assert steps[0].with_ == {"python-version": "3.11"}
        assert steps[1] is checkout
        assert steps[2] is step
        assert "actions/setup-python@v5" in capsys.readouterr().err

    def test_idempotent(self):
        """Test running twice adds nothing the second time."""
        w = wf("CI", job("build", py(build)), job("deploy", py(deploy, runtime="uv")))
        add_setup_steps(w)
        first = [list(j.steps) for j in w.jobs]
        add_setup_steps(w)
        assert [list(j.steps) for j in w.jobs] == first

    def test_uv_setup(self):
        """Test the uv runtime pulls in setup-uv."""
        w = wf("CI", job("build", py(build, runtime="uv", version="3.13")))
        add_setup_steps(w)
        setup = w.job("build").steps[0]
        assert setup.uses == "astral-sh/setup-uv@v6"
        assert setup.with_ == {"python-version": "3.13"}

    def test_jobs_are_independent(self):
        """Test only jobs with function steps get setup steps."""
        w = wf("CI", job("lint", sh("Lint", "ruff check .")), job("build", py(build)))
        add_setup_steps(w)
        assert len(w.job("lint").steps) == 1
        assert len(w.job("build").steps) == 2
