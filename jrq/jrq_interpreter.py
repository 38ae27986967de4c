"""
The core jrq interpreter: a tree-walking Evaluator over jrq_datatypes nodes.
"""
import os
import sys
import collections.abc
from typing import Any, List

import pystache

from jrq.jrq_datatypes import (
    Code, IString, ArrayLiteral, ObjectLiteral,
    Name, Member, Index, Call, BinaryOp, UnaryOp, Conditional, Lambda,
    Assign, Delete, Scope, Function, PathNotFound
)


# ===================================================================
# 1. Value helpers
# ===================================================================

def type_name(value: Any) -> str:
    """The jrq type name of a value, as reported by `type(x)` and in errors."""
    match value:
        case None:
            return "null"
        case bool():
            return "boolean"
        case int() | float():
            return "number"
        case str():
            return "string"
        case list():
            return "array"
        case collections.abc.Mapping():
            return "object"
    if isinstance(value, Function) or callable(value):
        return "function"
    return type(value).__name__


def is_truthy(value: Any) -> bool:
    # Only false and null are falsy; 0, "" and [] are true.
    return value is not None and value is not False


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def values_equal(a: Any, b: Any) -> bool:
    """Type-aware equality: booleans never equal numbers, containers compare deeply."""
    if is_number(a) and is_number(b):
        return a == b
    if type_name(a) != type_name(b):
        return False
    if isinstance(a, list):
        return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, collections.abc.Mapping):
        if a.keys() != b.keys():
            return False
        return all(values_equal(a[k], b[k]) for k in a)
    return a == b


def _template_context(scope: Scope) -> dict:
    """Plain-data view of the visible bindings for Mustache rendering."""
    return {k: v for k, v in scope.flatten().items() if not callable(v) and not isinstance(v, Function)}


def render_template(template: str, context: Any) -> str:
    renderer = pystache.Renderer(escape=lambda u: u, missing_tags='ignore')
    return renderer.render(template, context)


# ===================================================================
# 2. The Evaluator
# ===================================================================

class Evaluator:
    """Evaluates AST nodes against a Scope."""

    def __init__(self):
        # The node being evaluated when an error escapes; used for error locations.
        self.current_node: Any = None
        self.call_stack: List[dict] = []
        # Snapshot of call_stack at the innermost failing call
        self.error_stack: List[dict] = []
        self.side_effects: List[dict] = []

    def _dbg(self, *parts):
        if os.environ.get("JRQ_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def _track(self, node):
        if getattr(node, 'loc', None):
            self.current_node = node

    # --- Entry points ---
    def eval(self, node: Any, scope: Scope) -> Any:
        """Public entry point for evaluation."""
        self._track(node)
        return self._eval(node, scope)

    def run_code(self, code: Code, scope: Scope) -> Any:
        result = None
        for statement in code:
            self._dbg("statement", statement)
            result = self._eval(statement, scope)
        return result

    def _eval(self, node: Any, scope: Scope) -> Any:
        self._track(node)
        match node:
            case Code():
                return self.run_code(node, scope)

            case Name(text=text):
                return scope[text]

            case Member(target=target, name=name):
                container = self._eval(target, scope)
                self._track(node)
                return self._read_field(container, name)

            case Index(target=target, key=key):
                container = self._eval(target, scope)
                key_value = self._eval(key, scope)
                self._track(node)
                return self._read_index(container, key_value)

            case Call(func=func, args=arg_nodes):
                fn = self._eval(func, scope)
                args = [self._eval(a, scope) for a in arg_nodes]
                self._track(node)
                return self.call(fn, args, name=self._call_name(func))

            case BinaryOp(op='and', left=left, right=right):
                lhs = self._eval(left, scope)
                return self._eval(right, scope) if is_truthy(lhs) else lhs

            case BinaryOp(op='or', left=left, right=right):
                lhs = self._eval(left, scope)
                return lhs if is_truthy(lhs) else self._eval(right, scope)

            case BinaryOp(op=op, left=left, right=right):
                lhs = self._eval(left, scope)
                rhs = self._eval(right, scope)
                self._track(node)
                return self.binary(op, lhs, rhs)

            case UnaryOp(op='not', operand=operand):
                return not is_truthy(self._eval(operand, scope))

            case UnaryOp(op='-', operand=operand):
                value = self._eval(operand, scope)
                if not is_number(value):
                    self._track(node)
                    raise TypeError(f"bad operand type for unary -: {type_name(value)}")
                return -value

            case Conditional(test=test, then=then, otherwise=otherwise):
                if is_truthy(self._eval(test, scope)):
                    return self._eval(then, scope)
                return self._eval(otherwise, scope)

            case Lambda(params=params, body=body):
                return Function(params, body, scope)

            case ArrayLiteral(items=items):
                return [self._eval(item, scope) for item in items]

            case ObjectLiteral(pairs=pairs):
                return {key: self._eval(value, scope) for key, value in pairs}

            case Assign():
                return self._assign(node, scope)

            case Delete(target=target):
                return self._delete(target, scope)

            case IString():
                return render_template(str(node), _template_context(scope))

            case _:
                # It's a literal (int, float, str, bool, None)
                return node

    # --- Calls ---
    def _call_name(self, func_node) -> str:
        match func_node:
            case Name(text=text):
                return text
            case Member(name=name):
                return name
        return "<call>"

    def call(self, fn: Any, args: list, name: str = "<call>") -> Any:
        """Invokes a lambda or a Python builtin with evaluated arguments."""
        self.call_stack.append({'name': name, 'args': args})
        self._dbg("call", name, args)
        try:
            if isinstance(fn, Function):
                if len(args) != len(fn.params):
                    raise TypeError(
                        f"{name} expects {len(fn.params)} argument(s), got {len(args)}"
                    )
                local = Scope(parent=fn.closure)
                for param, arg in zip(fn.params, args):
                    local[param] = arg
                return self._eval(fn.body, local)
            if callable(fn):
                return fn(*args)
            raise TypeError(f"{type_name(fn)} is not callable")
        except Exception:
            if not self.error_stack:
                self.error_stack = list(self.call_stack)
            raise
        finally:
            self.call_stack.pop()

    # --- Field and index access ---
    def _read_field(self, container: Any, name: str) -> Any:
        if isinstance(container, collections.abc.Mapping):
            return container.get(name)
        raise TypeError(f"cannot read field '{name}' of {type_name(container)}")

    def _read_index(self, container: Any, key: Any) -> Any:
        match container:
            case list() | str() if is_number(key) and isinstance(key, int):
                try:
                    return container[key]
                except IndexError:
                    return None
            case collections.abc.Mapping() if isinstance(key, str):
                return container.get(key)
        raise TypeError(f"cannot index {type_name(container)} with {type_name(key)}")

    def _write(self, container: Any, key: Any, value: Any):
        match container:
            case list() if is_number(key) and isinstance(key, int):
                try:
                    container[key] = value
                except IndexError:
                    raise IndexError(f"array index {key} out of range (length {len(container)})") from None
            case collections.abc.MutableMapping() if isinstance(key, str):
                container[key] = value
            case _:
                raise TypeError(f"cannot set {type_name(key)} key on {type_name(container)}")

    def _resolve_target(self, target, scope: Scope):
        """Evaluates everything but the last step of an assignment target."""
        match target:
            case Member(target=inner, name=name):
                return self._eval(inner, scope), name
            case Index(target=inner, key=key):
                container = self._eval(inner, scope)
                return container, self._eval(key, scope)
        raise SyntaxError("invalid assignment target")

    def _assign(self, node: Assign, scope: Scope) -> Any:
        target = node.target
        value = self._eval(node.value, scope)
        if isinstance(target, Name):
            if node.op != '=':
                value = self.binary(node.op[0], scope[target.text], value)
            scope[target.text] = value
            return value
        container, key = self._resolve_target(target, scope)
        self._track(node)
        if node.op != '=':
            current = self._read_index(container, key) if isinstance(target, Index) else self._read_field(container, key)
            value = self.binary(node.op[0], current, value)
        self._write(container, key, value)
        return value

    def _delete(self, target, scope: Scope) -> Any:
        if isinstance(target, Name):
            owner = scope.find_owner(target.text)
            if owner is None:
                raise PathNotFound(target.text)
            return owner.bindings.pop(target.text)
        container, key = self._resolve_target(target, scope)
        match container:
            case list() if is_number(key) and isinstance(key, int):
                try:
                    return container.pop(key)
                except IndexError:
                    raise IndexError(f"array index {key} out of range (length {len(container)})") from None
            case collections.abc.MutableMapping() if isinstance(key, str):
                return container.pop(key, None)
        raise TypeError(f"cannot delete {type_name(key)} key from {type_name(container)}")

    # --- Operators ---
    def binary(self, op: str, a: Any, b: Any) -> Any:
        match op:
            case '==':
                return values_equal(a, b)
            case '!=':
                return not values_equal(a, b)
            case '<' | '<=' | '>' | '>=':
                return self._compare(op, a, b)
            case 'in':
                return self._contains(b, a)
            case '+':
                return self._add(a, b)
        if not (is_number(a) and is_number(b)):
            raise TypeError(f"unsupported operand types for {op}: {type_name(a)} and {type_name(b)}")
        match op:
            case '-':
                return a - b
            case '*':
                return a * b
            case '%':
                return a % b
            case '/':
                if isinstance(a, int) and isinstance(b, int) and b != 0 and a % b == 0:
                    return a // b
                return a / b
        raise SyntaxError(f"unknown operator {op!r}")

    def _add(self, a: Any, b: Any) -> Any:
        if is_number(a) and is_number(b):
            return a + b
        if isinstance(a, str) and isinstance(b, str):
            return a + b
        if isinstance(a, list) and isinstance(b, list):
            return a + b
        if isinstance(a, collections.abc.Mapping) and isinstance(b, collections.abc.Mapping):
            return {**a, **b}
        raise TypeError(f"unsupported operand types for +: {type_name(a)} and {type_name(b)}")

    def _compare(self, op: str, a: Any, b: Any) -> bool:
        comparable = (is_number(a) and is_number(b)) or (isinstance(a, str) and isinstance(b, str))
        if not comparable:
            raise TypeError(f"cannot compare {type_name(a)} {op} {type_name(b)}")
        match op:
            case '<':
                return a < b
            case '<=':
                return a <= b
            case '>':
                return a > b
        return a >= b

    def _contains(self, container: Any, needle: Any) -> bool:
        match container:
            case list():
                return any(values_equal(x, needle) for x in container)
            case collections.abc.Mapping():
                return isinstance(needle, str) and needle in container
            case str() if isinstance(needle, str):
                return needle in container
        raise TypeError(f"cannot test membership of {type_name(needle)} in {type_name(container)}")
