"""
Transforms the raw lark parse tree into a semantic AST using jrq_datatypes.
"""
import ast

from lark import Transformer, Token, v_args

from jrq.jrq_datatypes import (
    Code, IString, ArrayLiteral, ObjectLiteral,
    Name, Member, Index, Call, BinaryOp, UnaryOp, Conditional, Lambda,
    Assign, Delete, Target
)


class JrqSyntaxError(SyntaxError):
    """A parse tree that is well-formed but has no meaning, e.g. `1 = 2`."""
    def __init__(self, message: str, node=None):
        super().__init__(message)
        self.node = node


# Parse-tree alias -> operator spelling
_BINARY_OPS = {
    'add': '+', 'sub': '-', 'mul': '*', 'div': '/', 'mod': '%',
    'eq': '==', 'ne': '!=', 'lt': '<', 'le': '<=', 'gt': '>', 'ge': '>=',
    'contains': 'in', 'and_op': 'and', 'or_op': 'or',
}


def _unquote(text: str) -> str:
    # Both quote styles use Python escape rules.
    return ast.literal_eval(text)


@v_args(meta=True)
class JrqTransformer(Transformer):
    def _attach_loc(self, obj, meta, tag):
        line = getattr(meta, 'line', None)
        col = getattr(meta, 'column', None)
        if line is not None and col is not None and hasattr(obj, 'loc'):
            obj.loc = {'line': line, 'col': col, 'tag': tag}
        return obj

    def __default__(self, data, children, meta):
        # Binary operators share one shape; everything else is unexpected.
        op = _BINARY_OPS.get(data)
        if op is None:
            raise JrqSyntaxError(f"unexpected parse node {data!r}")
        left, right = children
        return self._attach_loc(BinaryOp(op, left, right), meta, data)

    # --- Structure ---
    def start(self, meta, children):
        return children[0]

    def program(self, meta, children):
        return self._attach_loc(Code(children), meta, 'program')

    def group(self, meta, children):
        code = children[0]
        # `(expr)` is just expr; only multi-statement or empty groups stay blocks.
        if len(code) == 1:
            return code[0]
        return code

    # --- Statements ---
    def assignment(self, meta, children):
        target, op, value = children
        if not isinstance(target, Target):
            raise JrqSyntaxError("cannot assign to this expression", target)
        return self._attach_loc(Assign(target, str(op), value), meta, 'assignment')

    def deletion(self, meta, children):
        (target,) = children
        if not isinstance(target, Target):
            raise JrqSyntaxError("cannot delete this expression", target)
        return self._attach_loc(Delete(target), meta, 'deletion')

    # --- Expressions ---
    def conditional(self, meta, children):
        then, test, otherwise = children
        return self._attach_loc(Conditional(test, then, otherwise), meta, 'conditional')

    def lambda_(self, meta, children):
        if len(children) == 2:
            params, body = children
        else:
            params, body = [], children[0]
        return self._attach_loc(Lambda(params, body), meta, 'lambda')

    def params(self, meta, children):
        return [str(tok) for tok in children]

    def not_op(self, meta, children):
        return self._attach_loc(UnaryOp('not', children[0]), meta, 'not')

    def neg(self, meta, children):
        operand = children[0]
        # Fold negative numeric literals so the printer shows `-1`, not `-(1)`.
        if isinstance(operand, (int, float)) and not isinstance(operand, bool):
            return -operand
        return self._attach_loc(UnaryOp('-', operand), meta, 'neg')

    def member(self, meta, children):
        target, name = children
        return self._attach_loc(Member(target, str(name)), meta, 'member')

    def index(self, meta, children):
        target, key = children
        return self._attach_loc(Index(target, key), meta, 'index')

    def call(self, meta, children):
        func = children[0]
        args = children[1] if len(children) > 1 else []
        return self._attach_loc(Call(func, args), meta, 'call')

    def arguments(self, meta, children):
        return list(children)

    # --- Atoms ---
    def number(self, meta, children):
        text = str(children[0])
        # Integers (no '.', no exponent) stay exact Python ints.
        if '.' not in text and 'e' not in text.lower():
            return int(text)
        return float(text)

    def string(self, meta, children):
        return _unquote(str(children[0]))

    def istring(self, meta, children):
        return IString(_unquote(str(children[0])[1:]))

    def true(self, meta, children):
        return True

    def false(self, meta, children):
        return False

    def null(self, meta, children):
        return None

    def name(self, meta, children):
        return self._attach_loc(Name(str(children[0])), meta, 'name')

    def array(self, meta, children):
        items = children[0] if children else []
        return self._attach_loc(ArrayLiteral(items), meta, 'array')

    def items(self, meta, children):
        return list(children)

    def object(self, meta, children):
        pairs = children[0] if children else []
        return self._attach_loc(ObjectLiteral(pairs), meta, 'object')

    def pairs(self, meta, children):
        return list(children)

    def pair(self, meta, children):
        key, value = children
        if isinstance(key, Token) and key.type == 'STRING':
            key = _unquote(str(key))
        return (str(key), value)
