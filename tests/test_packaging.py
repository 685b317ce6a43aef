"""
Checks on the project metadata in pyproject.toml.

Run with: python -m pytest tests/test_packaging.py -v
"""
from pathlib import Path

import pytest

tomllib = pytest.importorskip("tomllib")

PYPROJECT = Path(__file__).resolve().parents[1] / "pyproject.toml"


@pytest.fixture
def project():
    with open(PYPROJECT, "rb") as f:
        return tomllib.load(f)


class TestProjectMetadata:

    def test_design_notes_are_not_the_long_description(self, project):
        assert project["project"].get("readme") != "DESIGN.md"

    def test_pipeline_script_and_test_extra_are_declared(self, project):
        assert "run_pipeline" in project["tool"]["setuptools"]["py-modules"]
        assert "pytest" in project["project"]["optional-dependencies"]["test"]
