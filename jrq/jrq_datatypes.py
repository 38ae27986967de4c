"""
Defines the core data types for the jrq script runtime.

The transformer produces these nodes from the lark parse tree and the
interpreter walks them. Literal scalars (numbers, strings, booleans and
null) are carried as plain Python values; everything else gets a node.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional
import collections.abc


class PathNotFound(Exception):
    """Raised when a name is not bound in any visible scope."""
    def __init__(self, key: str):
        super().__init__(key)
        self.key = key


# =================================================================
# Abstract Base Classes
# =================================================================

class Node:
    """Base class for all AST nodes produced by the transformer."""
    # Source location: {'line', 'col', 'tag', 'text'}; attached by the transformer.
    loc: Optional[dict] = None


class Target(Node):
    """Base class for nodes that may appear on the left of an assignment."""
    pass


# =================================================================
# Blocks and Literals
# =================================================================

class Code(collections.abc.Sequence):
    """A sequence of statements; the value of a Code block is its last statement's value."""
    def __init__(self, statements: List[Any]):
        self.nodes = list(statements)
        self.loc: Optional[dict] = None

    def __getitem__(self, index):
        return self.nodes[index]

    def __len__(self) -> int:
        return len(self.nodes)

    def __eq__(self, other):
        if isinstance(other, Code):
            return self.nodes == other.nodes
        return NotImplemented

    def __repr__(self) -> str:
        return f"Code({self.nodes!r})"


class IString(str):
    """An interpolated string literal, rendered with Mustache at evaluation time."""
    pass


@dataclass(eq=True)
class ArrayLiteral(Node):
    items: List[Any]
    loc: Optional[dict] = field(default=None, compare=False, repr=False)


@dataclass(eq=True)
class ObjectLiteral(Node):
    # Ordered (key, value-expression) pairs; keys are already plain strings.
    pairs: List[tuple]
    loc: Optional[dict] = field(default=None, compare=False, repr=False)


# =================================================================
# References and Operations
# =================================================================

@dataclass(eq=True)
class Name(Target):
    text: str
    loc: Optional[dict] = field(default=None, compare=False, repr=False)


@dataclass(eq=True)
class Member(Target):
    """Field access: `target.name`."""
    target: Any
    name: str
    loc: Optional[dict] = field(default=None, compare=False, repr=False)


@dataclass(eq=True)
class Index(Target):
    """Subscript access: `target[key]`."""
    target: Any
    key: Any
    loc: Optional[dict] = field(default=None, compare=False, repr=False)


@dataclass(eq=True)
class Call(Node):
    func: Any
    args: List[Any]
    loc: Optional[dict] = field(default=None, compare=False, repr=False)


@dataclass(eq=True)
class BinaryOp(Node):
    """Arithmetic, comparison and logical operators. `op` is the source spelling."""
    op: str
    left: Any
    right: Any
    loc: Optional[dict] = field(default=None, compare=False, repr=False)


@dataclass(eq=True)
class UnaryOp(Node):
    op: str
    operand: Any
    loc: Optional[dict] = field(default=None, compare=False, repr=False)


@dataclass(eq=True)
class Conditional(Node):
    """`then if test else otherwise`"""
    test: Any
    then: Any
    otherwise: Any
    loc: Optional[dict] = field(default=None, compare=False, repr=False)


@dataclass(eq=True)
class Lambda(Node):
    params: List[str]
    body: Any
    loc: Optional[dict] = field(default=None, compare=False, repr=False)


# =================================================================
# Statements
# =================================================================

@dataclass(eq=True)
class Assign(Node):
    """`target = value`, or an augmented form when `op` is '+=', '-=' or '*='."""
    target: Target
    op: str
    value: Any
    loc: Optional[dict] = field(default=None, compare=False, repr=False)


@dataclass(eq=True)
class Delete(Node):
    target: Target
    loc: Optional[dict] = field(default=None, compare=False, repr=False)


# =================================================================
# Core Runtime Types
# =================================================================

class Scope:
    """A set of name bindings with an optional parent.

    Lookups walk the parent chain; writes always land on the scope they are
    made on, so a lambda call can shadow but never rebind an outer name.
    """
    def __init__(self, parent: Optional['Scope'] = None):
        self.bindings: Dict[str, Any] = {}
        self.parent = parent

    def __setitem__(self, key: str, value: Any):
        if not isinstance(key, str):
            raise TypeError(f"Scope key must be a str, not {type(key)}")
        self.bindings[key] = value

    def __getitem__(self, key: str) -> Any:
        owner = self.find_owner(key)
        if owner is None:
            raise PathNotFound(key)
        return owner.bindings[key]

    def __delitem__(self, key: str):
        if key not in self.bindings:
            raise PathNotFound(key)
        del self.bindings[key]

    def __contains__(self, key: Any) -> bool:
        return isinstance(key, str) and self.find_owner(key) is not None

    def find_owner(self, key: str) -> Optional['Scope']:
        """Finds the Scope in the lookup chain that binds key."""
        if key in self.bindings:
            return self
        if self.parent is not None:
            return self.parent.find_owner(key)
        return None

    def get(self, key: str, default: Any = None) -> Any:
        owner = self.find_owner(key)
        if owner is None:
            return default
        return owner.bindings[key]

    def keys(self) -> collections.abc.KeysView:
        """Returns a view of keys bound directly on this scope."""
        return self.bindings.keys()

    def flatten(self) -> Dict[str, Any]:
        """All visible bindings, inner scopes overriding outer ones."""
        chain = []
        cur = self
        while cur is not None:
            chain.append(cur)
            cur = cur.parent
        out: Dict[str, Any] = {}
        for s in reversed(chain):
            out.update(s.bindings)
        return out

    def __repr__(self) -> str:
        return f"<Scope bindings={list(self.bindings)!r}>"


class Function:
    """A lambda closed over the scope it was created in."""
    def __init__(self, params: List[str], body: Any, closure: Scope):
        self.params = list(params)
        self.body = body
        self.closure = closure

    def __repr__(self) -> str:
        return f"<Function |{', '.join(self.params)}|>"
