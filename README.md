# stencil

HTML and JSON escaping helpers, and a parser that turns Jinja-like template
source into a tree of nodes.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Escaping (`stencil.escape`)

```python
from stencil.escape import Html, Text, MarkupDisplay, escape

str(escape("<&>", Html()))          # '&lt;&amp;&gt;'
str(escape("<&>", Text()))          # '<&>'

value = MarkupDisplay.new_unsafe("<b>hi</b>", Html())
str(value)                          # '&lt;b&gt;hi&lt;/b&gt;'
str(value.mark_safe())              # '<b>hi</b>'
```

- `Html` escapes `<`, `>`, `&`, `"` and `'` (as `&lt;`, `&gt;`, `&amp;`,
  `&quot;` and `&#x27;`).
- `Text` passes its input through unchanged.
- `Escaper` is the abstract base; subclasses implement
  `write_escaped(out, string)`, writing to any object with a `write` method.
- `EscapeWriter(out, escaper)` is a text sink that escapes everything written
  to it before passing it on to `out`.
- `escape(string, escaper)` returns an `Escaped` object that is escaped when
  converted with `str()`.
- `MarkupDisplay` holds any value; `str()` of an unsafe one escapes the
  value's text, a safe one is returned verbatim. `mark_safe()` returns a safe
  copy.

`JsonEscapeBuffer` is a byte sink for JSON output. It escapes `&`, `'`, `<`
and `>` as `\u0026`, `\u0027`, `\u003c` and `\u003e` so the result can be
embedded in HTML:

```python
from stencil.escape import JsonEscapeBuffer

buf = JsonEscapeBuffer()
buf.write(b'"</script>"')
buf.finish()                        # '"\\u003c/script\\u003e"'
```

## Parsing templates

```python
from stencil.ast import parse
from stencil.scanner import Syntax, ParseError

ast = parse("Hello, {{ name|upper }}!", Syntax())
for node in ast.nodes:
    print(node)
```

`parse(source, syntax=None)` and `Ast.from_str(source, syntax=None)` both
return an `Ast` whose `nodes` is a tuple of node objects from
`stencil.node`:

- `Lit` for literal text, split into leading whitespace, value and trailing
  whitespace;
- `Comment` for `{# ... #}` comments, which may nest;
- `ExprNode` for `{{ expression }}`;
- block tags: `If` (with `Cond` branches for `else if` and `else`), `Loop`
  (`for` … `else` … `endfor`, with `Break` and `Continue` allowed only inside
  a loop body), `Match` (with `When` arms and an optional `else`), `Let`
  (`let` or `set`), `BlockDef`, `Extends`, `Include`, `Import`, `Macro`,
  `Call` and `Raw`.

Whitespace-control markers `-`, `+` and `~` are recorded on every tag as a
`Ws(left, right)` pair of `Whitespace` values (`stencil.target`).

Expressions (`stencil.expr`) are trees of `Var`, `Path`, `NumLit`, `StrLit`,
`CharLit`, `BoolLit`, `Array`, `Tuple`, `Group`, `Attr`, `Index`, `Call`,
`Filter`, `Unary`, `BinOp`, `Range`, `Try`, `NamedArgument` and
`NativeMacro` nodes. Binary operators follow the usual precedence and are
left-associative. A filter written `a|f` (no space before the bar) becomes
`Filter`, while `a |f` is a bitwise-or `BinOp`. Named macro arguments
(`name=value`) are accepted only in `call` tags and must come last.

Patterns in `let`, `for`, `if let` and `when` (`stencil.target`) are
`NameTarget`, `TupleTarget`, `StructTarget`, `PathTarget`, literal targets
and `OrChain` for alternatives separated by `or`. `self` and `writer` cannot
be bound as names.

Delimiters can be changed through `Syntax`:

```python
parse("{= value =}", Syntax(expr_start="{=", expr_end="=}"))
```

Nesting is limited to 128 levels. Invalid input raises `ParseError`, whose
message gives the row and column of the problem and up to 40 characters of
the text that follows it:

```python
try:
    parse("{%leta=b%}", Syntax())
except ParseError as err:
    print(err)
# problems parsing template source at row 1, column 0 near:
# "{%leta=b%}"
```

The scanning primitives the parsers are built from (`identifier`,
`num_lit`, `str_lit`, `path_or_identifier`, `skip_till` and others) live in
`stencil.scanner`, along with `Syntax`, `State`, `Level` and the internal
`Backtrack` and `Failure` signals.

## What this package does not do

It parses templates but does not render them: there is no evaluator for the
node tree, no filter implementations, no loading of templates from files and
no resolution of `extends`, `include` or `import`. Those are left to code
built on top of the parsed `Ast`.