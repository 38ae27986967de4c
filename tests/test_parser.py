import pytest
import yaml
from lark.exceptions import UnexpectedInput

from jrq.jrq_runtime import ScriptRunner
from jrq.jrq_printer import Printer
from jrq.jrq_transformer import JrqSyntaxError
from jrq.jrq_datatypes import (
    Code, IString, ArrayLiteral, ObjectLiteral,
    Name, Member, Index, Call, BinaryOp, UnaryOp, Conditional, Lambda,
    Assign, Delete
)

# --- Fixtures ---

@pytest.fixture(scope="module")
def runner():
    return ScriptRunner()


def parse(runner, source):
    return runner.parse(source)


# Each case: source, then the fully parenthesised rendering of the parsed AST.
PRECEDENCE_CASES = yaml.safe_load(r"""
- id: product_binds_tighter_than_sum
  source: 1 + 2 * 3
  expected: (1 + (2 * 3))
- id: parentheses_override_precedence
  source: (1 + 2) * 3
  expected: ((1 + 2) * 3)
- id: sum_is_left_associative
  source: 1 - 2 - 3
  expected: ((1 - 2) - 3)
- id: comparison_below_sum
  source: a + 1 == b
  expected: ((a + 1) == b)
- id: comparisons_chain_left
  source: a == b != c
  expected: ((a == b) != c)
- id: not_binds_tighter_than_and
  source: not a and b
  expected: (not a and b)
- id: and_binds_tighter_than_or
  source: true and null or false
  expected: ((true and null) or false)
- id: conditional_is_lowest
  source: x + 1 if c else y
  expected: ((x + 1) if c else y)
- id: membership
  source: 1 in [1, 2]
  expected: (1 in [1, 2])
- id: postfix_chain
  source: item.a[0].b
  expected: item.a[0].b
- id: call_with_arguments
  source: f(1, x.y)
  expected: f(1, x.y)
- id: call_result_indexed
  source: keys(item)[0]
  expected: keys(item)[0]
- id: unary_minus_on_name
  source: -x * 2
  expected: (-x * 2)
- id: negative_literal_folds
  source: -1
  expected: "-1"
- id: lambda_body_extends_right
  source: "|x, y| x + y"
  expected: "|x, y| (x + y)"
- id: lambda_without_params
  source: "|| 5"
  expected: "|| 5"
- id: assignment
  source: item.a = 1
  expected: item.a = 1
- id: augmented_assignment
  source: n += 2
  expected: n += 2
- id: assignment_of_block
  source: x = (a = 1; a + 1)
  expected: x = (a = 1; (a + 1))
- id: deletion
  source: del item.a
  expected: del item.a
- id: statements
  source: a; b
  expected: a; b
- id: empty_statements_are_skipped
  source: ;a;;b;
  expected: a; b
- id: comment_is_ignored
  source: "1 # one"
  expected: "1"
- id: object_literal_keys
  source: '{a: 1, "b c": [true, null]}'
  expected: '{"a": 1, "b c": [true, null]}'
- id: single_quoted_string
  source: "'it\\'s'"
  expected: "\"it's\""
- id: interpolated_string
  source: i"hi {{name}}"
  expected: i"hi {{name}}"
- id: keyword_prefix_is_a_name
  source: android or iffy
  expected: (android or iffy)
- id: float_and_exponent
  source: 1.5 + 2e3
  expected: (1.5 + 2000.0)
""")


@pytest.mark.parametrize("case", PRECEDENCE_CASES, ids=[c["id"] for c in PRECEDENCE_CASES])
def test_parse_and_print(runner, case):
    code = parse(runner, str(case["source"]))
    assert Printer().pformat(code) == str(case["expected"])


# --- AST shape ---

def test_program_is_a_code_block(runner):
    code = parse(runner, "1; 2")
    assert isinstance(code, Code)
    assert code.nodes == [1, 2]


def test_empty_program(runner):
    assert parse(runner, "").nodes == []


def test_single_statement_group_unwraps(runner):
    (stmt,) = parse(runner, "(x)")
    assert stmt == Name("x")


def test_multi_statement_group_stays_a_block(runner):
    (stmt,) = parse(runner, "(x; y)")
    assert stmt == Code([Name("x"), Name("y")])


def test_empty_group_is_an_empty_block(runner):
    (stmt,) = parse(runner, "()")
    assert stmt == Code([])


def test_literals(runner):
    code = parse(runner, '1; 2.5; "s"; true; false; null')
    assert code.nodes == [1, 2.5, "s", True, False, None]
    assert isinstance(code.nodes[0], int)


def test_string_escapes(runner):
    (s,) = parse(runner, r'"a\n\"b\""')
    assert s == 'a\n"b"'


def test_interpolated_string_node(runner):
    (s,) = parse(runner, 'i"x {{y}}"')
    assert isinstance(s, IString)
    assert str(s) == "x {{y}}"


def test_assignment_node(runner):
    (stmt,) = parse(runner, "item.a = 1")
    assert stmt == Assign(Member(Name("item"), "a"), "=", 1)


def test_equality_is_not_assignment(runner):
    (stmt,) = parse(runner, "a == 1")
    assert stmt == BinaryOp("==", Name("a"), 1)


def test_index_assignment_node(runner):
    (stmt,) = parse(runner, "xs[0] -= 1")
    assert stmt == Assign(Index(Name("xs"), 0), "-=", 1)


def test_delete_node(runner):
    (stmt,) = parse(runner, "del d[\"k\"]")
    assert stmt == Delete(Index(Name("d"), "k"))


def test_conditional_node(runner):
    (stmt,) = parse(runner, "a if b else c")
    assert stmt == Conditional(Name("b"), Name("a"), Name("c"))


def test_lambda_node(runner):
    (stmt,) = parse(runner, "|x| x.a")
    assert stmt == Lambda(["x"], Member(Name("x"), "a"))


def test_call_node(runner):
    (stmt,) = parse(runner, "map(xs, |x| -x)")
    assert stmt == Call(Name("map"), [Name("xs"), Lambda(["x"], UnaryOp("-", Name("x")))])


def test_collection_literal_nodes(runner):
    (arr,) = parse(runner, "[1, x,]")
    assert arr == ArrayLiteral([1, Name("x")])
    (obj,) = parse(runner, '{a: 1, "b": x}')
    assert obj == ObjectLiteral([("a", 1), ("b", Name("x"))])


def test_nodes_carry_source_locations(runner):
    (_, stmt) = parse(runner, "1;\n  item.a")
    assert stmt.loc["line"] == 2
    assert stmt.loc["col"] == 3


# --- Errors ---

@pytest.mark.parametrize("source", ["1 +", "(", "a b", "{a 1}", "@", "[1,,2]", "del 1 +"])
def test_malformed_source_raises_parse_error(runner, source):
    with pytest.raises(UnexpectedInput):
        parse(runner, source)


@pytest.mark.parametrize("source", ["1 = 2", "f(x) = 1", "a + b = c", "del f(x)", "(|x| x) = 1"])
def test_invalid_targets_raise_syntax_error(runner, source):
    with pytest.raises(JrqSyntaxError):
        parse(runner, source)
