from pathlib import Path

import pytest

from pomd.context import load_context
from pomd.errors import ContextLoadError
from pomd.values import ArrayValue, NumberValue, ObjectValue, StringValue

from tests.infrastructure.file_utils import write, write_json, write_template


def test_json_context(tmp_path: Path):
    path = write_json(tmp_path / "ctx.json", {"name": "Ada", "tags": [1, 2]})
    assert load_context(path) == {
        "name": StringValue("Ada"),
        "tags": ArrayValue((NumberValue(1.0), NumberValue(2.0))),
    }


def test_yaml_context(tmp_path: Path):
    path = write_template(tmp_path / "ctx.yaml", """
        user:
          name: Ada
          langs: [en, fr]
    """)
    ctx = load_context(path)
    assert isinstance(ctx["user"], ObjectValue)
    assert ctx["user"].fields["name"] == StringValue("Ada")


def test_empty_yaml_is_empty_context(tmp_path: Path):
    assert load_context(write(tmp_path / "ctx.yml", "")) == {}


def test_unknown_suffix_is_read_as_json(tmp_path: Path):
    assert load_context(write(tmp_path / "ctx.txt", '{"a": true}'))["a"].value is True


def test_top_level_must_be_object(tmp_path: Path):
    path = write_json(tmp_path / "ctx.json", [1, 2])
    with pytest.raises(ContextLoadError, match="Context must be an object, got list"):
        load_context(path)


def test_invalid_json_has_position(tmp_path: Path):
    path = write(tmp_path / "ctx.json", '{\n  "a": }')
    with pytest.raises(ContextLoadError, match="Invalid JSON") as exc:
        load_context(path)
    assert (exc.value.line, exc.value.column) == (2, 8)


def test_invalid_yaml(tmp_path: Path):
    with pytest.raises(ContextLoadError, match="Invalid YAML"):
        load_context(write(tmp_path / "ctx.yaml", "a: [1\n"))


def test_unsupported_yaml_value(tmp_path: Path):
    path = write(tmp_path / "ctx.yaml", "when: 2024-01-01\n")
    with pytest.raises(ContextLoadError, match="Unsupported value type: date") as exc:
        load_context(path)
    assert exc.value.source == str(path)


def test_missing_file(tmp_path: Path):
    with pytest.raises(ContextLoadError, match="Cannot read context file"):
        load_context(tmp_path / "absent.json")
