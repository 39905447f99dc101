"""Tests for loader.py."""

from pathlib import Path

import pytest

from pyactions.errors import WorkflowLoadError
from pyactions.loader import find_workflow_files, load_workflows
from pyactions.model import Workflow
from pyactions.serialize import render

WORKFLOWS_DIR = Path(__file__).parent / "workflows"


class TestLoadWorkflows:
    """Test loading workflow source files."""

    def test_workflow_function(self):
        """Test a file defining workflow()."""
        (w,) = load_workflows(WORKFLOWS_DIR / "sample_workflow.py")
        assert isinstance(w, Workflow)
        assert w.name == "Sample CI"
        assert [s.name for s in w.job("build").steps] == ["Checkout", "Install", "Report", "Greet"]

    def test_workflows_list(self):
        """Test a file defining WORKFLOWS."""
        (w,) = load_workflows(WORKFLOWS_DIR / "broken_workflow.py")
        assert w.name == "Broken"

    def test_missing_file(self, tmp_path):
        """Test a missing path raises WorkflowLoadError."""
        with pytest.raises(WorkflowLoadError, match="not found"):
            load_workflows(tmp_path / "nope.py")

    def test_not_python(self, tmp_path):
        """Test non-.py files are rejected."""
        path = tmp_path / "ci.yml"
        path.write_text("name: CI\n")
        with pytest.raises(WorkflowLoadError, match=".py"):
            load_workflows(path)

    def test_import_error_wrapped(self, tmp_path):
        """Test errors while executing the file are wrapped."""
        path = tmp_path / "bad_workflow.py"
        path.write_text("import not_a_real_module_xyz\n")
        with pytest.raises(WorkflowLoadError, match="ModuleNotFoundError"):
            load_workflows(path)

    def test_wrong_return_type(self, tmp_path):
        """Test workflow() must return workflows."""
        path = tmp_path / "odd_workflow.py"
        path.write_text("def workflow():\n    return 42\n")
        with pytest.raises(WorkflowLoadError, match="must define"):
            load_workflows(path)

    def test_helper_name_collision(self, tmp_path):
        """Test importing the workflow alias instead of defining workflow()."""
        path = tmp_path / "alias_workflow.py"
        path.write_text("from pyactions import workflow\n")
        with pytest.raises(WorkflowLoadError, match="name collision"):
            load_workflows(path)


class TestFindWorkflowFiles:
    """Test discovery."""

    def test_finds_sources_and_suffix_files(self, tmp_path):
        """Test .github/workflows-src/*.py and *_workflow.py are found."""
        src = tmp_path / ".github" / "workflows-src"
        src.mkdir(parents=True)
        (src / "ci.py").write_text("")
        (src / "_helpers.py").write_text("")
        (tmp_path / "release_workflow.py").write_text("")
        (tmp_path / "setup.py").write_text("")

        found = find_workflow_files(tmp_path)
        assert [p.name for p in found] == ["ci.py", "release_workflow.py"]

    def test_nothing_found(self, tmp_path):
        """Test an empty directory yields no files."""
        assert find_workflow_files(tmp_path) == []


class TestProjectWorkflow:
    """Test the repository's own CI workflow source."""

    def test_renders(self):
        """Test the project workflow loads and synthesizes."""
        path = Path(__file__).parents[1] / ".github" / "workflows-src" / "ci.py"
        (w,) = load_workflows(path)
        assert [j.name for j in w.jobs] == ["lint", "test-py310", "test-py311", "test-py312", "test-py313", "generated"]

        text = render(w, bundle=False)
        assert "python-version: '3.13'" in text
        assert "PYACTIONS_EOF" in text
