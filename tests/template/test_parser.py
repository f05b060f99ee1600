"""
Tests for the document parser.
"""

import dataclasses

import pytest

from pomd.errors import LexError, ParseError
from pomd.expr.model import BinaryOp, Identifier, Literal, MemberAccess
from pomd.template.nodes import (
    CodeNode,
    Element,
    ExpressionAttr,
    ForClause,
    LiteralAttr,
    TemplateAttr,
    TextNode,
)
from pomd.template.parser import DocumentParser, decode_escapes, parse_document
from pomd.types import RenderOptions
from pomd.values import NumberValue


def text(value):
    return TextNode(value, (value,))


class TestDocumentStructure:

    def test_text_only_document(self):
        doc = parse_document("Hello\n\n  world\n")
        assert doc.nodes == (text("Hello\n\n  world\n"),)

    def test_nested_elements(self):
        doc = parse_document("<p>Hi <b>there</b></p>")
        assert doc.nodes == (
            Element("p", children=(text("Hi "), Element("b", children=(text("there"),)))),
        )

    def test_self_closing_element(self):
        doc = parse_document('<let name="x" value="1"/>')
        element = doc.nodes[0]
        assert element.tag == "let"
        assert element.children == ()

    def test_layout_whitespace_between_elements_is_dropped(self):
        doc = parse_document("<poml>\n  <p>A</p>\n  <p>B</p>\n</poml>\n")
        poml = doc.nodes[0]
        assert [child.tag for child in poml.children] == ["p", "p"]
        assert len(doc.nodes) == 1

    def test_inline_spaces_are_kept(self):
        doc = parse_document("<p><b>a</b> <i>b</i></p>")
        assert doc.nodes[0].children[1] == text(" ")

    def test_text_with_interpolation(self):
        doc = parse_document("Hi {{ user.name }}!")
        node = doc.nodes[0]
        assert node.text == "Hi {{ user.name }}!"
        assert node.parts == ("Hi ", MemberAccess(Identifier("user"), "name"), "!")

    def test_escapes_are_decoded_in_text(self):
        doc = parse_document("#lt;b#gt; #lbrace;#lbrace; x #rbrace;#rbrace; #hash;1 #amp; #quot;#apos;")
        assert doc.nodes[0].parts == ("<b> {{ x }} #1 & \"'",)

    def test_element_positions(self):
        doc = parse_document("<poml>\n  <p>x</p>\n</poml>")
        p = doc.nodes[0].children[0]
        assert (p.pos.line, p.pos.column) == (2, 3)

    def test_document_is_immutable(self):
        doc = parse_document("<p>x</p>")
        with pytest.raises(dataclasses.FrozenInstanceError):
            doc.nodes[0].tag = "b"


class TestAttributes:

    def test_literal_attribute(self):
        element = parse_document('<cp caption="Intro #amp; goals">x</cp>').nodes[0]
        assert element.attribute("caption") == LiteralAttr("Intro & goals")

    def test_template_attribute(self):
        element = parse_document('<cp caption="Hello {{ name }}!">x</cp>').nodes[0]
        assert element.attribute("caption") == TemplateAttr(("Hello ", Identifier("name"), "!"))

    def test_attribute_order_is_preserved(self):
        element = parse_document('<list listStyle="star" extra="1"></list>',
                                 options=None).nodes[0]
        assert [name for name, _ in element.attributes] == ["listStyle", "extra"]

    def test_if_is_lifted_to_condition(self):
        element = parse_document('<p if="n > 1">x</p>').nodes[0]
        assert element.condition == BinaryOp(">", Identifier("n"), Literal(NumberValue(1.0)))
        assert element.attribute("if") is None

    def test_if_accepts_single_interpolation(self):
        element = parse_document('<p if="{{ ready }}">x</p>').nodes[0]
        assert element.condition == Identifier("ready")

    def test_if_rejects_mixed_text(self):
        with pytest.raises(ParseError, match="single expression"):
            parse_document('<p if="a {{ ready }}">x</p>')

    def test_for_is_lifted_to_loop(self):
        element = parse_document('<p for="k, v in obj">x</p>').nodes[0]
        assert element.loop == ForClause(item="v", iterable=Identifier("obj"), key="k")

    def test_let_value_is_an_expression(self):
        element = parse_document('<let name="total" value="a + 1"/>').nodes[0]
        assert element.attribute("value") == ExpressionAttr(BinaryOp("+", Identifier("a"), Literal(NumberValue(1.0))))
        assert element.attribute("name") == LiteralAttr("total")

    def test_expression_positions_point_into_document(self):
        element = parse_document('<p>\n<p if="x &&  y">z</p></p>').nodes[0].children[0]
        right = element.condition.right
        assert (right.pos.line, right.pos.column) == (2, 14)


class TestCodeElements:

    def test_block_code(self):
        element = parse_document('<code lang="python">\nprint(1)\n</code>').nodes[0]
        assert element.tag == "code"
        assert element.children == (CodeNode("\nprint(1)\n", "python", False),)

    def test_inline_code(self):
        element = parse_document('<code inline="true">ls -la</code>').nodes[0]
        assert element.children == (CodeNode("ls -la", None, True),)

    def test_code_body_is_not_parsed(self):
        element = parse_document("<code><b>{{ not parsed</b></code>").nodes[0]
        assert element.children[0].content == "<b>{{ not parsed</b>"

    def test_templated_lang_is_rejected(self):
        with pytest.raises(ParseError, match="must be a literal"):
            parse_document('<code lang="{{ x }}">y</code>')


class TestParseErrors:

    @pytest.mark.parametrize("source, message", [
        ("<p>x", "Unclosed tag <p>"),
        ("<p>x</b>", r"Closing tag </b> does not match <p>"),
        ("x</p>", "Unexpected closing tag </p>"),
        ("<foo>x</foo>", "Unknown tag <foo>"),
        ('<p if="x" if="y">z</p>', "Duplicate attribute 'if'"),
        ("<cp>x</cp>", "requires attribute 'caption'"),
        ("<include/>", "requires attribute 'src'"),
        ('<let name="1x" value="1"/>', "Invalid variable name"),
        ('<p for="x of xs">y</p>', "Expected 'in'"),
        ('<p if="">y</p>', "Empty expression"),
        ("{{ 1 + }}", "Missing operand"),
        ("{{ }}", "Empty expression"),
    ])
    def test_errors(self, source, message):
        with pytest.raises(ParseError, match=message):
            parse_document(source)

    def test_lex_errors_pass_through(self):
        with pytest.raises(LexError):
            parse_document("<p")

    def test_error_carries_source_and_position(self):
        with pytest.raises(ParseError) as exc:
            parse_document("ok\n<p>\n  <q>", source="page.poml")
        assert exc.value.source == "page.poml"
        assert str(exc.value).startswith("page.poml:3:3: Unknown tag <q>")

    def test_unknown_tags_passthrough(self):
        parser = DocumentParser(RenderOptions(unknown_tags="passthrough"))
        doc = parser.parse("<foo>x</foo>")
        assert doc.nodes[0].tag == "foo"

    def test_expression_depth_limit_from_options(self):
        parser = DocumentParser(RenderOptions(max_expression_depth=4))
        with pytest.raises(ParseError, match="nesting exceeds 4"):
            parser.parse("{{ ((((((1)))))) }}")


def test_decode_escapes_leaves_unknown_sequences():
    assert decode_escapes("#foo; #lt") == "#foo; #lt"
