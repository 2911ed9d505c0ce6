import pytest

from stencil.expr import Var
from stencil.node import (
    BlockDef,
    Break,
    Call,
    Comment,
    Extends,
    ExprNode,
    If,
    Import,
    Include,
    Let,
    Lit,
    Loop,
    Macro,
    Match,
    Raw,
    parse_nodes,
    split_ws_parts,
)
from stencil.scanner import Failure, State
from stencil.target import NameTarget, Whitespace, Ws


def parse(src):
    end, nodes = parse_nodes(src, 0, State())
    assert end == len(src)
    return nodes


@pytest.mark.parametrize(
    "s,expected",
    [
        ("", ("", "", "")),
        ("a", ("", "a", "")),
        ("\ta", ("\t", "a", "")),
        ("b\n", ("", "b", "\n")),
        (" \t\r\n", (" \t\r\n", "", "")),
    ],
)
def test_split_ws_parts(s, expected):
    assert split_ws_parts(s) == Lit(*expected)


def test_plain_text():
    assert parse("hello") == [Lit("", "hello", "")]


def test_expression_node():
    assert parse("{{ foo }}") == [ExprNode(Ws(None, None), Var("foo"))]


def test_comment_markers():
    (node,) = parse("{#- foo\n {#- bar\n -#} baz -#}")
    assert isinstance(node, Comment)
    assert node.ws == Ws(Whitespace.SUPPRESS, Whitespace.SUPPRESS)


def test_let_and_if():
    nodes = parse("{% let x = y %}{% if x %}a{% else %}b{% endif %}")
    assert nodes[0] == Let(Ws(None, None), NameTarget("x"), Var("y"))
    assert isinstance(nodes[1], If)
    assert len(nodes[1].branches) == 2
    assert nodes[1].branches[1].cond is None


def test_elif_is_rejected():
    with pytest.raises(Failure, match="did you mean `else if`"):
        parse_nodes("{% if a %}{% elif b %}{% endif %}", 0, State())


def test_loop_with_else_and_break():
    (node,) = parse("{% for v in values %}{% break %}{% else %}empty{% endfor %}")
    assert isinstance(node, Loop)
    assert node.var == NameTarget("v")
    assert node.iter == Var("values")
    assert node.body == (Break(Ws(None, None)),)
    assert node.else_nodes == (Lit("", "empty", ""),)


def test_loop_whitespace_markers():
    (node,) = parse("{%-for v in values-%}x{%-else-%}y{%-endfor-%}")
    s = Whitespace.SUPPRESS
    assert node.ws1 == Ws(s, s)
    assert node.ws2 == Ws(s, s)
    assert node.ws3 == Ws(s, s)


def test_break_outside_loop_fails():
    with pytest.raises(Failure):
        parse_nodes("{% break %}", 0, State())


def test_match_with_else_arm():
    (node,) = parse("{% match foo %}{% when Some(bar) %}{{ bar }}{% else %}x{% endmatch %}")
    assert isinstance(node, Match)
    assert len(node.arms) == 2
    assert node.arms[1].target == NameTarget("_")


def test_extends_include_import():
    nodes = parse('{% extends "base.html" %}{% include "a.html" %}{% import "m.html" as m %}')
    assert nodes == [
        Extends("base.html"),
        Include(Ws(None, None), "a.html"),
        Import(Ws(None, None), "m.html", "m"),
    ]


def test_block_named_end():
    (node,) = parse("{% block content %}x{% endblock content %}")
    assert isinstance(node, BlockDef)
    assert node.name == "content"


def test_block_wrong_end_name():
    with pytest.raises(Failure, match="expected name `content` in `endblock` tag, found `other`"):
        parse_nodes("{% block content %}x{% endblock other %}", 0, State())


def test_macro_and_call():
    nodes = parse("{% macro button(label , ) %}{{ label }}{% endmacro %}{% call button(label=x) %}")
    assert isinstance(nodes[0], Macro)
    assert nodes[0].args == ("label",)
    assert isinstance(nodes[1], Call)
    assert nodes[1].name == "button"
    assert nodes[1].scope is None


def test_macro_named_super_fails():
    with pytest.raises(Failure):
        parse_nodes("{%macro super%}{%endmacro%}", 0, State())


def test_raw_keeps_text():
    (node,) = parse("{% raw %} {{ x }} {% endraw %}")
    assert isinstance(node, Raw)
    assert node.lit == Lit(" ", "{{ x }}", " ")


def test_unknown_tag_stops_parsing():
    end, nodes = parse_nodes('a{% extend "blah" %}', 0, State())
    assert end == 1
    assert nodes == [Lit("", "a", "")]