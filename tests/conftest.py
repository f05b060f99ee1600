from pathlib import Path

import pytest

from pomd import Renderer, RenderOptions
from pomd.scope import Scope
from pomd.values import from_python

from tests.infrastructure.file_utils import write


@pytest.fixture
def renderer(tmp_path: Path) -> Renderer:
    """Renderer whose string renders resolve includes against tmp_path."""
    return Renderer(RenderOptions(), base_dir=tmp_path)


@pytest.fixture
def render(renderer: Renderer):
    """Shortcut: render(text, **variables) -> Markdown."""
    def _render(text: str, **variables) -> str:
        return renderer.render_string(text, variables)
    return _render


@pytest.fixture
def make_scope():
    def _make(**variables) -> Scope:
        return Scope({name: from_python(value) for name, value in variables.items()})
    return _make


@pytest.fixture
def project(tmp_path: Path):
    """Writes a set of template files: project({"a.poml": "..."}) -> root."""
    def _project(files: dict) -> Path:
        for name, text in files.items():
            write(tmp_path / name, text)
        return tmp_path
    return _project
