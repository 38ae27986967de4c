import pytest

from jrq.jrq_runtime import ScriptRunner
from jrq.jrq_interpreter import is_truthy, values_equal, type_name
from jrq.jrq_datatypes import Function


def run(source):
    result = ScriptRunner().run(source)
    assert result.status == 'success', result.format_error()
    return result.value


def fails(source):
    result = ScriptRunner().run(source)
    assert result.status == 'error'
    return result.error_message


# --- Arithmetic ---

@pytest.mark.parametrize(
    "source,expected",
    [
        ("1 + 2 * 3", 7),
        ("(1 + 2) * 3", 9),
        ("10 - 4 - 3", 3),
        ("7 % 3", 1),
        ("6 / 3", 2),
        ("7 / 2", 3.5),
        ("1.5 * 2", 3.0),
        ("-(2 + 3)", -5),
        ("--4", 4),
    ],
)
def test_arithmetic(source, expected):
    assert run(source) == expected


def test_exact_integer_division_stays_an_integer():
    assert isinstance(run("6 / 3"), int)
    assert isinstance(run("6.0 / 3"), float)


def test_addition_concatenates_and_merges():
    assert run('"a" + "b"') == "ab"
    assert run("[1] + [2, 3]") == [1, 2, 3]
    assert run("{a: 1, b: 1} + {b: 2}") == {"a": 1, "b": 2}


@pytest.mark.parametrize("source", ['1 + "a"', "true + 1", "null * 2", '"a" - "b"', "[1] * 2"])
def test_mixed_operands_are_rejected(source):
    assert fails(source).startswith("TypeError: unsupported operand types")


def test_unary_minus_needs_a_number():
    assert fails('-"x"').startswith("TypeError: bad operand type for unary -: string")


def test_division_by_zero():
    assert fails("1 / 0").startswith("ZeroDivisionError: division by zero")


# --- Comparison and logic ---

@pytest.mark.parametrize(
    "source,expected",
    [
        ("1 == 1.0", True),
        ("1 == true", False),
        ("0 == false", False),
        ("null == null", True),
        ('[1, {a: "x"}] == [1, {a: "x"}]', True),
        ("{a: 1} == {a: 1, b: 2}", False),
        ("1 != 2", True),
        ("2 < 3", True),
        ('"b" >= "a"', True),
        ("3 <= 2", False),
        ("2 in [1, 2]", True),
        ('"a" in {a: 1}', True),
        ('"ell" in "hello"', True),
        ("true in [1]", False),
    ],
)
def test_comparisons(source, expected):
    assert run(source) is expected


def test_ordering_needs_like_types():
    assert fails('1 < "2"').startswith("TypeError: cannot compare number < string")


@pytest.mark.parametrize(
    "value,expected",
    [(None, False), (False, False), (True, True), (0, True), ("", True), ([], True), ({}, True)],
)
def test_truthiness(value, expected):
    assert is_truthy(value) is expected


def test_and_or_short_circuit_and_return_operands():
    assert run("null or 5") == 5
    assert run("0 or 5") == 0
    assert run("false and undefined_name") is False
    assert run("1 and 2") == 2
    assert run("not null") is True
    assert run("not 0") is False


def test_conditional_evaluates_one_branch():
    assert run('"yes" if [] else undefined_name') == "yes"
    assert run("undefined_name if null else 2") == 2


# --- Names and scopes ---

def test_assignment_returns_the_value():
    assert run("x = 3") == 3
    assert run("x = 3; x * 2") == 6


def test_augmented_assignment():
    assert run("n = 1; n += 2; n *= 5; n -= 1") == 14
    assert run('s = "a"; s += "b"') == "ab"


def test_unbound_name():
    assert fails("nope").startswith("NameError: nope")


def test_builtins_can_be_shadowed():
    assert run("len = 5; len") == 5


def test_delete_name():
    assert fails("x = 1; del x; x").startswith("NameError: x")
    assert run("x = 1; del x") == 1


def test_block_value_is_last_statement():
    assert run("(a = 1; a + 1)") == 2
    assert run("()") is None
    assert run("") is None


# --- Documents ---

def test_member_and_index_reads():
    assert run('d = {a: [10, {b: "x"}]}; d.a[1].b') == "x"
    assert run('d = {"k k": 1}; d["k k"]') == 1
    assert run('"abc"[1]') == "b"
    assert run("[1, 2, 3][-1]") == 3


def test_missing_reads_are_null():
    assert run("{a: 1}.b") is None
    assert run("[1][5]") is None
    assert run('{}["x"]') is None


def test_reading_a_field_of_a_non_object():
    assert fails("x = 1; x.a").startswith("TypeError: cannot read field 'a' of number")
    assert fails('[1]["a"]').startswith("TypeError: cannot index array with string")


def test_nested_writes_mutate_in_place():
    assert run("d = {a: {b: 1}}; d.a.b = 2; d.a.c = [0]; d.a.c[0] += 1; d") == {"a": {"b": 2, "c": [1]}}


def test_write_past_the_end_of_an_array():
    assert fails("xs = [1]; xs[3] = 0").startswith("IndexError: array index 3 out of range")


def test_delete_field_and_element():
    assert run('d = {a: 1, b: 2}; del d.a; d') == {"b": 2}
    assert run("xs = [1, 2, 3]; del xs[0]; xs") == [2, 3]
    assert run("d = {}; del d.missing") is None


def test_object_literal_keeps_key_order():
    assert list(run('{z: 1, a: 2, "m": 3}')) == ["z", "a", "m"]


# --- Functions ---

def test_lambda_call():
    assert run("add = |a, b| a + b; add(2, 3)") == 5
    assert run("(|| 42)()") == 42


def test_lambda_closes_over_its_scope():
    assert run("k = 10; f = |x| x + k; k = 20; f(1)") == 21


def test_lambda_parameters_do_not_leak():
    assert fails("f = |x| x; f(1); x").startswith("NameError: x")


def test_lambda_arity_is_checked():
    assert fails("f = |x| x; f(1, 2)").startswith("TypeError: f expects 1 argument(s), got 2")


def test_calling_a_non_function():
    assert fails("x = 1; x()").startswith("TypeError: number is not callable")


def test_lambda_value_is_a_function():
    fn = run("|x| x")
    assert isinstance(fn, Function)
    assert type_name(fn) == "function"


# --- Interpolated strings ---

def test_istring_renders_visible_bindings():
    assert run('name = "jrq"; i"hello {{name}}"') == "hello jrq"


def test_istring_reads_nested_fields_and_skips_missing():
    assert run('item = {a: {b: 2}}; i"{{item.a.b}}-{{missing}}"') == "2-"


def test_istring_sees_lambda_locals():
    assert run('f = |n| i"n={{n}}"; f(3)') == "n=3"


# --- Helpers ---

def test_values_equal_is_type_aware():
    assert values_equal(1, 1.0)
    assert not values_equal(True, 1)
    assert not values_equal([True], [1])
    assert values_equal({"a": [1]}, {"a": [1]})


@pytest.mark.parametrize(
    "value,name",
    [(None, "null"), (True, "boolean"), (1, "number"), (1.5, "number"), ("s", "string"),
     ([], "array"), ({}, "object"), (len, "function")],
)
def test_type_name(value, name):
    assert type_name(value) == name
