# jrq_runtime.py

import sys
import inspect
import collections.abc
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional, Literal, Dict, TextIO

import lark
from lark import Lark
from lark.exceptions import UnexpectedInput, VisitError

from jrq.jrq_transformer import JrqTransformer, JrqSyntaxError
from jrq.jrq_interpreter import Evaluator, type_name, is_truthy, render_template
from jrq.jrq_datatypes import Scope, Code, PathNotFound
from jrq.jrq_serialize import serialize, deserialize
from jrq.jrq_printer import Printer

LANGUAGE_VERSION = "0.1.0"


# ===================================================================
# 1. The Engine Contract
# ===================================================================

class ScriptEngine(ABC):
    """What the pipeline driver needs from a script engine.

    Bindings made by one `eval` call must be visible to the next one.
    """

    @abstractmethod
    def eval(self, source: str) -> bool:
        """Runs statement text; returns False and keeps a diagnostic on failure."""
        raise NotImplementedError

    @abstractmethod
    def print_error(self, stream: Optional[TextIO] = None) -> None:
        """Writes the diagnostic of the last failed `eval` to stream (stderr by default)."""
        raise NotImplementedError

    @property
    @abstractmethod
    def version(self) -> str:
        raise NotImplementedError

    @property
    def side_effects(self) -> List[Dict]:
        """`emit` records produced by the last `eval`."""
        return []


# ===================================================================
# 2. The Standard Library
# ===================================================================

class StdLib:
    """Contains Python implementations for all jrq built-ins.

    Every method named `_name` is bound into the builtins scope as `name`.
    """
    # Methods that support other builtins rather than being builtins themselves
    helpers = ("_apply", "_mapping", "_sequence")

    def __init__(self, runner: 'ScriptRunner'):
        self.runner = runner
        self.evaluator = runner.evaluator

    def _apply(self, fn, *args):
        return self.evaluator.call(fn, list(args))

    # --- Document I/O ---
    def _read_json(self):
        return deserialize(self.runner.stdin.read(), fmt='json')

    def _print_json(self, value):
        stream = self.runner.stdout
        stream.write(serialize(value, fmt='json', pretty=True) + "\n")
        stream.flush()

    # --- Codecs ---
    def _from_json(self, text): return deserialize(text, fmt='json')
    def _to_json(self, value): return serialize(value, fmt='json', pretty=False)
    def _from_yaml(self, text): return deserialize(text, fmt='yaml')
    def _to_yaml(self, value): return serialize(value, fmt='yaml')
    def _render(self, template, data=None): return render_template(template, data or {})

    # --- Objects ---
    def _keys(self, obj): return list(self._mapping(obj, "keys").keys())
    def _values(self, obj): return list(self._mapping(obj, "values").values())
    def _has(self, obj, key): return key in self._mapping(obj, "has")

    def _merge(self, a, b):
        return {**self._mapping(a, "merge"), **self._mapping(b, "merge")}

    def _mapping(self, obj, fname):
        if not isinstance(obj, collections.abc.Mapping):
            raise TypeError(f"{fname} expects an object, got {type_name(obj)}")
        return obj

    # --- Arrays ---
    def _sequence(self, obj, fname):
        if not isinstance(obj, list):
            raise TypeError(f"{fname} expects an array, got {type_name(obj)}")
        return obj

    def _len(self, collection):
        if isinstance(collection, (list, str, collections.abc.Mapping)):
            return len(collection)
        raise TypeError(f"len expects an array, object or string, got {type_name(collection)}")

    def _map(self, items, fn): return [self._apply(fn, x) for x in self._sequence(items, "map")]
    def _select(self, items, fn): return [x for x in self._sequence(items, "select") if is_truthy(self._apply(fn, x))]
    def _reject(self, items, fn): return [x for x in self._sequence(items, "reject") if not is_truthy(self._apply(fn, x))]
    def _sort(self, items): return sorted(self._sequence(items, "sort"))
    def _sort_by(self, items, fn): return sorted(self._sequence(items, "sort_by"), key=lambda x: self._apply(fn, x))
    def _reverse(self, items): return list(reversed(self._sequence(items, "reverse")))
    def _sum(self, items): return sum(self._sequence(items, "sum"))
    def _min(self, items): return min(self._sequence(items, "min"), default=None)
    def _max(self, items): return max(self._sequence(items, "max"), default=None)
    def _range(self, *args): return list(range(*args))

    # --- Strings and conversions ---
    def _str(self, value):
        if isinstance(value, str):
            return value
        return Printer().pformat(value)

    def _int(self, value): return int(value)
    def _float(self, value): return float(value)
    def _type(self, value): return type_name(value)
    def _upcase(self, string): return string.upper()
    def _downcase(self, string): return string.lower()
    def _split(self, string, separator): return string.split(separator)
    def _join(self, list_of_strings, separator): return separator.join(map(self._str, list_of_strings))
    def _replace(self, string, old, new): return string.replace(old, new)
    def _inspect(self, value): return Printer().pformat(value)

    # --- Side effects ---
    def _emit(self, topic_or_topics, *message_parts):
        topics = topic_or_topics if isinstance(topic_or_topics, list) else [topic_or_topics]
        message = " ".join(self._str(p) for p in message_parts)
        self.evaluator.side_effects.append({'topics': [str(t) for t in topics], 'message': message})


# ===================================================================
# 3. Script Execution
# ===================================================================

Token = Dict[str, Any]

@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_token: Optional[Token] = None
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        """Formats an error message with line and column if available."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.error_token and 'line' in self.error_token:
            line = self.error_token.get('line')
            col = self.error_token.get('col')
            if not msg.startswith("Error on line "):
                col_info = f", col {col}" if col is not None else ""
                return f"Error on line {line}{col_info}: {msg}"
        return msg


class ScriptRunner(ScriptEngine):
    """Parses, transforms, and executes jrq script against a persistent root scope."""

    _parser: Optional[Lark] = None
    _transformer: Optional[JrqTransformer] = None

    def __init__(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None):
        self._stdin = stdin
        self._stdout = stdout

        if ScriptRunner._parser is None:
            ScriptRunner._parser = Lark.open(
                "jrq_grammar.lark", rel_to=__file__,
                parser="lalr", propagate_positions=True,
            )
        if ScriptRunner._transformer is None:
            ScriptRunner._transformer = JrqTransformer()

        self.parser = ScriptRunner._parser
        self.transformer = ScriptRunner._transformer
        self.evaluator = Evaluator()
        self.last_result: Optional[ExecutionResult] = None

        # Builtins live one level up so scripts may shadow them.
        self.core_scope = Scope()
        stdlib = StdLib(self)
        for name, member in inspect.getmembers(stdlib):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                if name in StdLib.helpers:
                    continue
                self.core_scope[name[1:]] = member
        self.root_scope = Scope(parent=self.core_scope)

    # --- Streams resolve late so pytest's capture sees them ---
    @property
    def stdin(self) -> TextIO:
        return self._stdin if self._stdin is not None else sys.stdin

    @property
    def stdout(self) -> TextIO:
        return self._stdout if self._stdout is not None else sys.stdout

    @classmethod
    def engine_version(cls) -> str:
        return f"jrq-script {LANGUAGE_VERSION}, lark {lark.__version__}"

    @property
    def version(self) -> str:
        return self.engine_version()

    @property
    def side_effects(self) -> List[Dict]:
        return self.evaluator.side_effects

    # --- ScriptEngine ---
    def eval(self, source: str) -> bool:
        self.last_result = self.run(source)
        return self.last_result.status == 'success'

    def print_error(self, stream: Optional[TextIO] = None) -> None:
        if self.last_result is None or self.last_result.status != 'error':
            return
        print(self.last_result.format_error(), file=stream if stream is not None else sys.stderr)

    # --- Error formatting ---
    def _format_parse_error(self, e: UnexpectedInput, source: str) -> tuple[str, Optional[dict]]:
        line = getattr(e, 'line', None)
        col = getattr(e, 'column', None)
        expected = sorted(getattr(e, 'expected', None) or getattr(e, 'allowed', None) or [])
        base = "unexpected input"
        token = getattr(e, 'token', None)
        char = getattr(e, 'char', None)
        if char is not None:
            base = f"unexpected character {char!r}"
        elif token is not None:
            base = f"unexpected {str(token)!r}" if str(token) else "unexpected end of input"
        if expected:
            base += f", expected one of: {', '.join(expected)}"
        if isinstance(line, int) and isinstance(col, int) and line > 0:
            msg = f"ParseError: {base} (line {line}, col {col})"
            context = self._source_context(source, line, col)
            if context:
                msg += "\n" + context
            return msg, {'line': line, 'col': col}
        return f"ParseError: {base}", None

    def _format_runtime_error(self, e: Exception, source: str, node) -> tuple[str, Optional[dict]]:
        match e:
            case JrqSyntaxError():
                msg = f"SyntaxError: {e.msg}"
                node = e.node if e.node is not None else node
            case SyntaxError():
                msg = f"SyntaxError: {e.msg}"
            case PathNotFound() as pn:
                msg = f"NameError: {pn.key}"
            case ZeroDivisionError():
                msg = f"ZeroDivisionError: {e}"
            case IndexError():
                msg = f"IndexError: {e}"
            case TypeError():
                msg = f"TypeError: {e}"
            case ValueError():
                msg = f"ValueError: {e}"
            case _:
                msg = f"InternalError: {e}"

        token = None
        loc = getattr(node, 'loc', None) if node is not None else None
        if loc and isinstance(loc, dict):
            line = loc.get('line'); col = loc.get('col')
            token = {'line': line, 'col': col, 'tag': loc.get('tag')}
            if line is not None and col is not None:
                try:
                    rendered = Printer().pformat(node)
                except Exception:
                    rendered = repr(node)
                msg = f"{msg}\nIn: {rendered}"
                context = self._source_context(source, line, col)
                if context:
                    msg = f"{msg}\n{context}"

        stack = self._format_stacktrace()
        if stack:
            msg += "\n" + stack
        return msg, token

    def _source_context(self, source: str, line: int, col: Optional[int], radius: int = 2) -> str:
        lines = source.splitlines()
        if not line or line < 1 or line > len(lines):
            return ""
        start = max(1, line - radius)
        end = min(len(lines), line + radius)
        width = len(str(end))
        out = []
        for i in range(start, end + 1):
            prefix = ">" if i == line else " "
            ln = str(i).rjust(width)
            out.append(f"{prefix} {ln} | {lines[i - 1]}")
            if i == line and col is not None:
                caret = " " * max(col - 1, 0)
                out.append(f"  {' ' * width} | {caret}^")
        return "\n".join(out)

    def _format_stacktrace(self) -> str:
        stack = self.evaluator.error_stack
        if not stack:
            return ""

        def pf(value):
            try:
                return Printer().pformat(value)
            except Exception:
                return repr(value)

        frames = []
        for frame in stack:
            args = " ".join(pf(a) for a in frame.get('args') or [])
            frames.append(f"({frame.get('name') or '<call>'}{' ' + args if args else ''})")
        return "jrq stacktrace: " + " ".join(frames)

    # --- Execution ---
    def parse(self, source: str) -> Code:
        """Parses and transforms source into a Code block; raises on failure."""
        tree = self.parser.parse(source)
        try:
            return self.transformer.transform(tree)
        except VisitError as e:
            raise e.orig_exc from None

    def run(self, source: str) -> ExecutionResult:
        """The main entry point to execute a script."""
        self.evaluator.side_effects.clear()
        self.evaluator.call_stack.clear()
        self.evaluator.error_stack.clear()
        self.evaluator.current_node = None

        # 1. Parse and transform
        try:
            code = self.parse(source)
        except UnexpectedInput as e:
            msg, token = self._format_parse_error(e, source)
            return ExecutionResult(status='error', error_message=msg, error_token=token,
                                   side_effects=list(self.evaluator.side_effects))
        except Exception as e:
            msg, token = self._format_runtime_error(e, source, None)
            return ExecutionResult(status='error', error_message=msg, error_token=token,
                                   side_effects=list(self.evaluator.side_effects))

        # 2. Evaluate
        try:
            result = self.evaluator.eval(code, self.root_scope)
        except Exception as e:
            node = self.evaluator.current_node
            msg, token = self._format_runtime_error(e, source, node)
            return ExecutionResult(status='error', error_message=msg, error_token=token,
                                   side_effects=list(self.evaluator.side_effects))

        return ExecutionResult(status='success', value=result, side_effects=list(self.evaluator.side_effects))
