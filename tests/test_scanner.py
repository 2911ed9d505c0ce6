import pytest

from stencil.scanner import (
    Backtrack,
    Failure,
    Level,
    ParseError,
    PathOrIdentifier,
    State,
    Syntax,
    bool_lit,
    char_lit,
    expect,
    identifier,
    is_ws,
    keyword,
    num_lit,
    path_or_identifier,
    skip_till,
    skip_ws,
    str_lit,
)


def test_syntax_defaults():
    assert Syntax() == Syntax("{%", "%}", "{{", "}}", "{#", "#}")


def test_syntax_override():
    syntax = Syntax(expr_start="{=", expr_end="=}")
    assert (syntax.expr_start, syntax.expr_end) == ("{=", "=}")
    assert syntax.block_start == Syntax().block_start


@pytest.mark.parametrize("c", [" ", "\t", "\r", "\n"])
def test_is_ws_true(c):
    assert is_ws(c) is True


@pytest.mark.parametrize("c", ["a", "\v", "_"])
def test_is_ws_false(c):
    assert is_ws(c) is False


def test_skip_ws():
    src = "  \t\r\nx"
    assert skip_ws(src, 0) == src.index("x")
    assert skip_ws(src, src.index("x")) == src.index("x")
    assert skip_ws("   ", 0) == len("   ")


def test_expect():
    src = "{% x"
    assert expect(src, 0, "{%") == len("{%")
    with pytest.raises(Backtrack) as info:
        expect(src, 1, "{%")
    assert info.value.pos == 1


@pytest.mark.parametrize("name", ["foo", "_x1", "foo_bar", "h\u00e9llo", "\u00e9t\u00e9"])
def test_identifier(name):
    assert identifier(name + " rest", 0) == (len(name), name)


@pytest.mark.parametrize("src", ["1abc", "", " foo", "-x"])
def test_identifier_rejects(src):
    with pytest.raises(Backtrack):
        identifier(src, 0)


def test_keyword():
    assert keyword("let x", 0, "let") == (len("let"), "let")
    with pytest.raises(Backtrack):
        keyword("letx", 0, "let")
    with pytest.raises(Backtrack):
        keyword("set x", 0, "let")


@pytest.mark.parametrize("word", ["true", "false"])
def test_bool_lit(word):
    assert bool_lit(word + "}}", 0) == (len(word), word)


def test_bool_lit_rejects_longer_identifier():
    with pytest.raises(Backtrack):
        bool_lit("trueish", 0)


@pytest.mark.parametrize(
    "lit",
    ["2", "2.5", "-2", "0", "0x1F", "0o77", "0b1010_u8", "1_000i64", "1e10", "1.5e-3f32", "3f64", "123"],
)
def test_num_lit(lit):
    assert num_lit(lit + " }}", 0) == (len(lit), lit)


def test_num_lit_stops_before_range():
    src = "1..5"
    head = src.partition("..")[0]
    assert num_lit(src, 0) == (len(head), head)


def test_num_lit_rejects():
    with pytest.raises(Backtrack):
        num_lit("abc", 0)


@pytest.mark.parametrize("body", ["", "123", 'a\\"b', "x\\\\"])
def test_str_lit(body):
    quoted = '"' + body + '"'
    assert str_lit(quoted + " tail", 0) == (len(quoted), body)


def test_str_lit_unterminated():
    with pytest.raises(Backtrack):
        str_lit('"abc', 0)
    with pytest.raises(Backtrack):
        str_lit("abc", 0)


@pytest.mark.parametrize("body", ["a", "\\'", "\\n"])
def test_char_lit(body):
    quoted = "'" + body + "'"
    assert char_lit(quoted + ")", 0) == (len(quoted), body)


def test_char_lit_unterminated():
    with pytest.raises(Backtrack):
        char_lit("'a", 0)


def test_path_or_identifier_plain_name():
    pos, value = path_or_identifier("foo }}", 0)
    assert pos == len("foo")
    assert value == PathOrIdentifier(("foo",), False)
    assert value.name == "foo"


@pytest.mark.parametrize(
    "src, parts",
    [
        ("FOO", ("FOO",)),
        ("None", ("None",)),
        ("Option::None", ("Option", "None")),
        ("self::function", ("self", "function")),
        ("std::string::String::new", ("std", "string", "String", "new")),
        ("::std::string::String::new", ("", "std", "string", "String", "new")),
    ],
)
def test_path_or_identifier_paths(src, parts):
    pos, value = path_or_identifier(src + "()", 0)
    assert pos == len(src)
    assert value.is_path
    assert value.parts == parts


def test_path_or_identifier_dangling_separator():
    pos, value = path_or_identifier("foo::", 0)
    assert pos == len("foo")
    assert value.is_path is False


def test_skip_till():
    src = "abc%}d"

    def end(s, p):
        return expect(s, p, "%}"), "%}"

    start, (after, value) = skip_till(src, 0, end)
    assert start == src.index("%}")
    assert after == start + len("%}")
    assert value == "%}"


def test_skip_till_without_end():
    def end(s, p):
        return expect(s, p, "%}"), None

    with pytest.raises(Backtrack):
        skip_till("abc", 0, end)


def test_level_nesting_limit():
    level = Level()
    for _ in range(Level.MAX_DEPTH):
        level = level.nest(0)
    assert level.depth == Level.MAX_DEPTH
    with pytest.raises(Failure) as info:
        level.nest(7)
    assert info.value.pos == 7
    assert level.leave().depth == Level.MAX_DEPTH - 1


def test_level_leave_outermost():
    with pytest.raises(ValueError):
        Level().leave()


def test_state_loop_tracking():
    state = State(Syntax())
    assert state.is_in_loop() is False
    state.enter_loop()
    state.enter_loop()
    state.leave_loop()
    assert state.is_in_loop() is True
    state.leave_loop()
    assert state.is_in_loop() is False


def test_state_level():
    state = State()
    state.nest(0)
    state.nest(0)
    assert state.level.depth == 2
    state.leave()
    assert state.level == Level(1)


def test_parse_error_message():
    err = ParseError("problems parsing template source")
    assert str(err) == "problems parsing template source"
    with pytest.raises(ParseError, match="problems"):
        raise err