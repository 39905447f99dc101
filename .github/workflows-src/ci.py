# CI for pyactions itself: lint, test on several Pythons, check the
# synthesized workflow is up to date.
from __future__ import annotations

from pyactions import job, py, sh, uses, wf


def report_python(expected):
    import platform
    import sys

    actual = platform.python_version()
    print(f"Running on Python {actual}")
    if not actual.startswith(expected):
        print(f"Expected Python {expected}")
        sys.exit(1)


def check_generated(path):
    import pathlib
    import subprocess
    import sys

    diff = subprocess.run(["git", "diff", "--exit-code", "--", path], capture_output=True, text=True)
    if diff.returncode != 0:
        print(f"{path} is out of date; run `pyactions synth -o .github/workflows`")
        print(diff.stdout)
        sys.exit(1)
    return f"{pathlib.Path(path).name} is up to date"


def python_job(version):
    return job(
        f"test-py{version.replace('.', '')}",
        uses("Checkout", "actions/checkout@v4"),
        py(report_python, version, version=version, name="Python version"),
        sh("Install", 'pip install -e ".[test]"'),
        sh("Run pytest", "pytest -q"),
        needs=["lint"],
    )


def workflow():
    return wf(
        "CI",
        job(
            "lint",
            uses("Checkout", "actions/checkout@v4"),
            uses("Setup Python", "actions/setup-python@v5", {"python-version": "3.12"}),
            sh("Ruff", "pip install ruff && ruff check src tests"),
        ),
        *[python_job(v) for v in ("3.10", "3.11", "3.12", "3.13")],
        job(
            "generated",
            uses("Checkout", "actions/checkout@v4"),
            sh("Install", "pip install -e ."),
            sh("Synthesize", "pyactions synth -o .github/workflows"),
            py(check_generated, ".github/workflows/ci.yml", name="Check generated YAML"),
            needs=["lint"],
            if_="github.event_name == 'pull_request'",
        ),
        on={"push": {"branches": ["main"]}, "pull_request": {}},
        permissions={"contents": "read"},
    )
