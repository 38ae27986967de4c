"""
A pretty-printer for jrq values and AST nodes.
"""
import json
import collections.abc

from jrq.jrq_datatypes import (
    Code, IString, ArrayLiteral, ObjectLiteral,
    Name, Member, Index, Call, BinaryOp, UnaryOp, Conditional, Lambda,
    Assign, Delete, Function, Scope
)


class Printer:
    """Formats jrq objects into readable jrq source strings."""

    # Containers longer than this are broken over several lines.
    max_inline_width = 60

    def __init__(self, indent_width=2):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()
        # ids of the containers on the current recursion path
        self._active = set()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def _get_handler(self, obj):
        """Dispatcher to find the correct formatting method."""
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, collections.abc.Mapping): return self._pformat_dict
        if isinstance(obj, list): return self._pformat_list
        if callable(obj): return self._pformat_builtin
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            str: self._pformat_str,
            IString: self._pformat_istring,
            int: self._pformat_primitive,
            float: self._pformat_primitive,
            bool: self._pformat_bool,
            type(None): self._pformat_none,
            dict: self._pformat_dict,
            list: self._pformat_list,
            Code: self._pformat_code,
            ArrayLiteral: self._pformat_array_literal,
            ObjectLiteral: self._pformat_object_literal,
            Name: self._pformat_name,
            Member: self._pformat_member,
            Index: self._pformat_index,
            Call: self._pformat_call,
            BinaryOp: self._pformat_binary,
            UnaryOp: self._pformat_unary,
            Conditional: self._pformat_conditional,
            Lambda: self._pformat_lambda,
            Assign: self._pformat_assign,
            Delete: self._pformat_delete,
            Function: self._pformat_function,
            Scope: self._pformat_scope,
        }

    # --- Values ---
    def _pformat_primitive(self, obj, level):
        return json.dumps(obj)

    def _pformat_str(self, obj, level):
        return json.dumps(obj, ensure_ascii=False)

    def _pformat_istring(self, obj, level):
        return "i" + json.dumps(str(obj), ensure_ascii=False)

    def _pformat_bool(self, obj, level):
        return "true" if obj else "false"

    def _pformat_none(self, obj, level):
        return "null"

    def _wrap(self, open_, parts, close, level):
        inline = f"{open_}{', '.join(parts)}{close}"
        if len(inline) <= self.max_inline_width and not any("\n" in p for p in parts):
            return inline
        inner = self._indent_char * (level + 1)
        outer = self._indent_char * level
        body = ",\n".join(f"{inner}{p}" for p in parts)
        return f"{open_}\n{body}\n{outer}{close}"

    def _enter(self, obj):
        """Marks a container as being printed; False if it is already on the path."""
        if id(obj) in self._active:
            return False
        self._active.add(id(obj))
        return True

    def _pformat_list(self, obj, level):
        if not obj:
            return "[]"
        if not self._enter(obj):
            return "<cycle>"
        try:
            parts = [self.pformat(x, level + 1) for x in obj]
        finally:
            self._active.discard(id(obj))
        return self._wrap("[", parts, "]", level)

    def _pformat_dict(self, obj, level):
        if not obj:
            return "{}"
        if not self._enter(obj):
            return "<cycle>"
        try:
            parts = [f"{self._pformat_str(str(k), level)}: {self.pformat(v, level + 1)}" for k, v in obj.items()]
        finally:
            self._active.discard(id(obj))
        return self._wrap("{", parts, "}", level)

    def _pformat_function(self, obj, level):
        return f"<fn |{', '.join(obj.params)}|>"

    def _pformat_builtin(self, obj, level):
        name = getattr(obj, '__name__', 'builtin').lstrip('_')
        return f"<builtin {name}>"

    def _pformat_scope(self, obj, level):
        return f"<scope {', '.join(obj.keys())}>"

    # --- AST nodes ---
    def _pformat_code(self, obj, level):
        return "; ".join(self.pformat(s, level) for s in obj)

    def _pformat_array_literal(self, obj, level):
        return "[" + ", ".join(self.pformat(x, level) for x in obj.items) + "]"

    def _pformat_object_literal(self, obj, level):
        parts = [f"{self._pformat_str(k, level)}: {self.pformat(v, level)}" for k, v in obj.pairs]
        return "{" + ", ".join(parts) + "}"

    def _pformat_name(self, obj, level):
        return obj.text

    def _pformat_member(self, obj, level):
        return f"{self.pformat(obj.target, level)}.{obj.name}"

    def _pformat_index(self, obj, level):
        return f"{self.pformat(obj.target, level)}[{self.pformat(obj.key, level)}]"

    def _pformat_call(self, obj, level):
        args = ", ".join(self.pformat(a, level) for a in obj.args)
        return f"{self.pformat(obj.func, level)}({args})"

    def _pformat_binary(self, obj, level):
        return f"({self.pformat(obj.left, level)} {obj.op} {self.pformat(obj.right, level)})"

    def _pformat_unary(self, obj, level):
        sep = " " if obj.op == "not" else ""
        return f"{obj.op}{sep}{self.pformat(obj.operand, level)}"

    def _pformat_conditional(self, obj, level):
        return (f"({self.pformat(obj.then, level)} if {self.pformat(obj.test, level)} "
                f"else {self.pformat(obj.otherwise, level)})")

    def _pformat_lambda(self, obj, level):
        return f"|{', '.join(obj.params)}| {self.pformat(obj.body, level)}"

    def _pformat_assign(self, obj, level):
        value = self.pformat(obj.value, level)
        if isinstance(obj.value, Code):
            value = f"({value})"
        return f"{self.pformat(obj.target, level)} {obj.op} {value}"

    def _pformat_delete(self, obj, level):
        return f"del {self.pformat(obj.target, level)}"
