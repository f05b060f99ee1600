"""
Tests for if/for directives and <let> scoping.
"""

import pytest

from pomd import Renderer, RenderOptions
from pomd.errors import EvalError, EvalErrorKind, IncludeError, IncludeErrorKind
from pomd.scope import Scope
from pomd.values import NumberValue


def eval_error(render, source, **variables):
    with pytest.raises(EvalError) as exc:
        render(source, **variables)
    return exc.value


class TestDeterminism:

    def test_same_input_same_output(self, renderer):
        source = '<p for="x in xs">{{ x }}</p>'
        context = {"xs": [1, 2]}
        assert renderer.render_string(source, context) == renderer.render_string(source, context)

    def test_rendering_does_not_mutate_context(self, renderer):
        scope = Scope({"n": NumberValue(1.0)})
        renderer.render_string('<p for="i in [1, 2]"><let name="tmp" value="i"/>{{ tmp }}</p>', scope)
        assert sorted(scope.local_names()) == ["n"]


class TestIf:

    def test_true_condition_renders(self, render):
        assert render('<p if="n > 1">big</p>', n=5) == "big\n\n"

    def test_false_condition_renders_nothing(self, render):
        assert render('<p if="n > 1">big</p>', n=0) == ""

    def test_truthiness(self, render):
        source = '<b if="v">y</b>'
        assert render(source, v=[]) == ""
        assert render(source, v="") == ""
        assert render(source, v=None) == ""
        assert render(source, v=[0]) == "**y**"
        assert render(source, v="0") == "**y**"

    def test_false_condition_skips_nested_let(self, render):
        err = eval_error(render, '<p if="false"><let name="x" value="1"/></p>{{ x }}')
        assert err.kind == EvalErrorKind.UNDEFINED_VARIABLE

    def test_false_condition_skips_evaluation_of_body(self, render):
        assert render('<p if="false">{{ 1 / 0 }}</p>ok') == "ok"

    def test_undefined_variable_in_condition(self, render):
        err = eval_error(render, '<p if="missing">x</p>')
        assert err.kind == EvalErrorKind.UNDEFINED_VARIABLE


class TestFor:

    def test_empty_array_renders_nothing(self, render):
        assert render('<p for="x in []">{{ x }}</p>') == ""

    def test_array_iteration_in_order(self, render):
        assert render('<p for="x in [1, 2, 3]">{{ x }}</p>') == "1\n\n2\n\n3\n\n"

    def test_index_binding(self, render):
        assert render('<b for="i, x in xs">{{ i }}={{ x }} </b>', xs=["a", "b"]) == "**0=a ****1=b **"

    def test_object_iteration(self, render):
        source = '<p for="k, v in obj">{{ k }}: {{ v }}</p>'
        assert render(source, obj={"b": 1, "a": 2}) == "b: 1\n\na: 2\n\n"

    def test_object_iteration_single_name_binds_value(self, render):
        assert render('<i for="v in obj">{{ v }}</i>', obj={"a": 1, "b": 2}) == "*1**2*"

    def test_loop_metadata(self, render):
        source = ('<p for="x in xs">{{ loop.index }}/{{ loop.length }}'
                  '<b if="loop.first">F</b><b if="loop.last">L</b></p>')
        assert render(source, xs=["a", "b", "c"]) == "0/3**F**\n\n1/3\n\n2/3**L**\n\n"

    def test_nested_loops_see_outer_bindings(self, render):
        source = '<p for="row in rows"><i for="cell in row">{{ row[0] }}{{ cell }}</i></p>'
        assert render(source, rows=[[1, 2], [3]]) == "*11**12*\n\n*33*\n\n"

    def test_loop_variable_shadows_and_restores(self, render):
        assert render('<b for="x in [1]">{{ x }}</b>{{ x }}', x="outer") == "**1**outer"

    def test_loop_bindings_do_not_leak(self, render):
        err = eval_error(render, '<p for="x in [1]">{{ x }}</p>{{ x }}')
        assert err.kind == EvalErrorKind.UNDEFINED_VARIABLE

    @pytest.mark.parametrize("value", [5, "abc", True, None])
    def test_not_iterable(self, render, value):
        err = eval_error(render, '<p for="x in v">{{ x }}</p>', v=value)
        assert err.kind == EvalErrorKind.NOT_ITERABLE

    def test_if_is_evaluated_before_for(self, render):
        source = '<p if="xs" for="x in xs">{{ x }}</p>'
        assert render(source, xs=[]) == ""
        assert render(source, xs=[7]) == "7\n\n"
        # the condition sees the outer scope, not the loop variable
        err = eval_error(render, '<p if="x" for="x in [1]">y</p>')
        assert err.kind == EvalErrorKind.UNDEFINED_VARIABLE


class TestLet:

    def test_value_binding(self, render):
        assert render('<let name="x" value="1 + 2"/>{{ x }}') == "3"

    def test_later_siblings_and_descendants_see_binding(self, render):
        assert render('<let name="who" value="\'Ada\'"/><p>Hi <b>{{ who }}</b></p>') == "Hi **Ada**\n\n"

    def test_rebinding_overwrites(self, render):
        assert render('<let name="x" value="1"/><let name="x" value="x + 1"/>{{ x }}') == "2"

    def test_plain_elements_do_not_open_scopes(self, render):
        assert render('<p><let name="x" value="1"/>a</p>{{ x }}') == "a\n\n1"

    def test_binding_inside_loop_stays_in_iteration(self, render):
        source = '<p for="i in [1, 2]"><let name="y" value="i * 10"/>{{ y }}</p>'
        assert render(source) == "10\n\n20\n\n"
        err = eval_error(render, source + "{{ y }}")
        assert err.kind == EvalErrorKind.UNDEFINED_VARIABLE

    def test_body_binding_is_a_string(self, render):
        assert render('<let name="greeting">Hello {{ who }}</let>{{ greeting }}!', who="Bo") == "Hello Bo!"

    def test_nameless_let_spreads_object(self, render):
        assert render("<let value=\"{a: 1, b: 'x'}\"/>{{ a }}{{ b }}") == "1x"

    def test_nameless_let_requires_object(self, render):
        err = eval_error(render, '<let value="[1]"/>')
        assert err.kind == EvalErrorKind.TYPE_MISMATCH

    def test_value_and_body_is_invalid(self, render):
        err = eval_error(render, '<let name="x" value="1">body</let>')
        assert err.kind == EvalErrorKind.INVALID_ATTRIBUTE

    def test_neither_value_nor_body_is_invalid(self, render):
        err = eval_error(render, '<let name="x"/>')
        assert err.kind == EvalErrorKind.INVALID_ATTRIBUTE

    def test_let_renders_nothing(self, render):
        assert render('<let name="x" value="1"/>') == ""

    def test_src_json_file_is_decoded(self, render, project):
        project({"data/cfg.json": '{"langs": ["en", "fr"], "n": 2}'})
        source = '<let name="cfg" src="data/cfg.json"/>{{ cfg.langs[1] }}{{ cfg.n + 1 }}'
        assert render(source) == "fr3"

    def test_src_text_file_is_a_string(self, render, project):
        project({"note.txt": "hello\n"})
        assert render('<let name="note" src="note.txt"/>[{{ note }}]') == "[hello\n]"

    def test_src_is_a_template(self, render, project):
        project({"en.json": '"Hi"'})
        assert render('<let name="g" src="{{ lang }}.json"/>{{ g }}', lang="en") == "Hi"

    def test_nameless_src_spreads_object(self, render, project):
        project({"vars.json": '{"a": 1, "b": "x"}'})
        assert render('<let src="vars.json"/>{{ a }}{{ b }}') == "1x"

    def test_src_missing_file(self, render):
        with pytest.raises(IncludeError) as exc:
            render('<let name="x" src="absent.json"/>')
        assert exc.value.kind == IncludeErrorKind.NOT_FOUND

    def test_src_invalid_json(self, render, project):
        project({"bad.json": "{oops"})
        err = eval_error(render, '<let name="x" src="bad.json"/>')
        assert err.kind == EvalErrorKind.TYPE_MISMATCH
        assert "bad.json" in err.message

    def test_src_with_value_is_invalid(self, render, project):
        project({"v.json": "1"})
        err = eval_error(render, '<let name="x" value="1" src="v.json"/>')
        assert err.kind == EvalErrorKind.INVALID_ATTRIBUTE

    @pytest.mark.parametrize("source, expected", [
        ('<let name="v" type="integer">42</let>{{ v + 1 }}', "43"),
        ('<let name="v" type="number"> 2.5 </let>{{ v * 2 }}', "5"),
        ('<let name="v" type="boolean">false</let><b if="v">y</b>', ""),
        ('<let name="v" type="boolean">yes</let><b if="v">y</b>', "**y**"),
        ('<let name="v" type="array">[1, 2]</let><i for="x in v">{{ x }}</i>', "*1**2*"),
        ('<let name="v" type="object">{"k": "w"}</let>{{ v.k }}', "w"),
        ('<let name="v" type="string" value="1 + 1"/>{{ v }}', "2"),
        ('<let name="v" type="integer" value="\'7\'"/>{{ v * 2 }}', "14"),
    ])
    def test_type_conversion(self, render, source, expected):
        assert render(source) == expected

    def test_string_type_yields_string(self, render):
        err = eval_error(render, '<let name="v" type="string" value="1"/>{{ v + 1 }}')
        assert err.kind == EvalErrorKind.TYPE_MISMATCH

    def test_type_applies_to_src(self, render, project):
        project({"count.txt": "12\n"})
        assert render('<let name="n" type="integer" src="count.txt"/>{{ n / 4 }}') == "3"

    @pytest.mark.parametrize("source", [
        '<let name="v" type="integer">abc</let>',
        '<let name="v" type="integer">2.5</let>',
        '<let name="v" type="number" value="[1]"/>',
        '<let name="v" type="array">{}</let>',
        '<let name="v" type="object">not json</let>',
    ])
    def test_failed_conversion(self, render, source):
        assert eval_error(render, source).kind == EvalErrorKind.TYPE_MISMATCH

    def test_unknown_type(self, render):
        err = eval_error(render, '<let name="v" type="date">x</let>')
        assert err.kind == EvalErrorKind.INVALID_ATTRIBUTE


class TestNestingLimit:

    def test_deep_nesting_is_reported(self):
        renderer = Renderer(RenderOptions(max_nesting_depth=10))
        source = "<section>" * 11 + "x" + "</section>" * 11
        with pytest.raises(EvalError) as exc:
            renderer.render_string(source)
        assert exc.value.kind == EvalErrorKind.DEPTH_EXCEEDED

    def test_nesting_within_limit(self):
        renderer = Renderer(RenderOptions(max_nesting_depth=10))
        source = "<section>" * 10 + "x" + "</section>" * 10
        assert renderer.render_string(source) == "x"

    def test_default_limit_protects_interpreter(self, render):
        source = "<b>" * 500 + "x" + "</b>" * 500
        err = eval_error(render, source)
        assert err.kind == EvalErrorKind.DEPTH_EXCEEDED
