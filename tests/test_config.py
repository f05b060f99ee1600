from pathlib import Path

import pytest

from pomd.config import DEFAULT_CFG_FILE, discover_options, load_options
from pomd.errors import ConfigError
from pomd.types import RenderOptions

from tests.infrastructure.file_utils import write, write_template


def test_missing_file_gives_defaults(tmp_path: Path):
    assert load_options(tmp_path / "absent.yaml") == RenderOptions()


def test_empty_file_gives_defaults(tmp_path: Path):
    assert load_options(write(tmp_path / "pomd.yaml", "")) == RenderOptions()


def test_overrides_are_merged_with_defaults(tmp_path: Path):
    path = write_template(tmp_path / "pomd.yaml", """
        max_include_depth: 4
        unknown_tags: passthrough
    """)
    options = load_options(path)
    assert options.max_include_depth == 4
    assert options.unknown_tags == "passthrough"
    assert options.max_nesting_depth == RenderOptions().max_nesting_depth
    assert options.cache_documents is True


def test_discover_reads_default_file(tmp_path: Path):
    write(tmp_path / DEFAULT_CFG_FILE, "cache_documents: false\n")
    assert discover_options(tmp_path).cache_documents is False


@pytest.mark.parametrize("text, message", [
    ("colour: red\n", "Unknown config keys: colour"),
    ("max_include_depth: many\n", "'max_include_depth' must be a positive integer"),
    ("max_include_depth: 0\n", "'max_include_depth' must be a positive integer"),
    ("max_nesting_depth: true\n", "'max_nesting_depth' must be a positive integer"),
    ("cache_documents: 1\n", "'cache_documents' must be a boolean"),
    ("unknown_tags: ignore\n", "'unknown_tags' must be one of error, passthrough"),
    ("- a\n- b\n", "Config must be a mapping"),
    ("a: [1\n", "Cannot read config"),
])
def test_invalid_config(tmp_path: Path, text, message):
    path = write(tmp_path / "pomd.yaml", text)
    with pytest.raises(ConfigError, match=message) as exc:
        load_options(path)
    assert exc.value.source == str(path)
