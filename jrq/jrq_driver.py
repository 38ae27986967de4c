"""
The pipeline driver: read the document, run each expression, print the result.

Every stage is one `eval` call on a ScriptEngine, made strictly in order. The
first failing stage ends the run; nothing is retried and no partial document
is printed.
"""
import sys
from enum import Enum
from typing import Iterable, Optional, TextIO

from jrq.jrq_runtime import ScriptEngine
from jrq.jrq_wrapper import wrap, READ_STATEMENT, PRINT_STATEMENT

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class Stage(Enum):
    READ = "read"
    EXPRESSION = "expression"
    PRINT = "print"


class PipelineState(Enum):
    INIT = "init"
    READ_DOCUMENT = "read-document"
    RUN_EXPRESSION = "run-expression"
    WRITE_DOCUMENT = "write-document"
    DONE = "done"
    FAILED = "failed"


class PipelineFailure(Exception):
    """A stage's evaluation failed. `detail` identifies what was being evaluated."""
    stage: Stage

    def __init__(self, detail: Optional[str] = None):
        super().__init__(self.headline(detail))
        self.detail = detail

    def headline(self, detail: Optional[str]) -> str:
        raise NotImplementedError


class ReadFailure(PipelineFailure):
    stage = Stage.READ

    def headline(self, detail):
        return "read from stdin failed:"


class ExpressionFailure(PipelineFailure):
    stage = Stage.EXPRESSION

    def headline(self, detail):
        return f"expression {detail} failed to run:"


class PrintFailure(PipelineFailure):
    stage = Stage.PRINT

    def headline(self, detail):
        return "printing item failed"


class Pipeline:
    """Threads one document through the wrapped expressions on a single engine."""

    def __init__(self, engine: ScriptEngine, out: Optional[TextIO] = None, err: Optional[TextIO] = None):
        self.engine = engine
        self._out = out
        self._err = err
        self.state = PipelineState.INIT
        self.expression_index: Optional[int] = None
        self.failure: Optional[PipelineFailure] = None

    @property
    def out(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    @property
    def err(self) -> TextIO:
        return self._err if self._err is not None else sys.stderr

    def _flush_side_effects(self):
        for effect in self.engine.side_effects:
            stream = self.out if effect.get('topics') == ['stdout'] else self.err
            print(effect.get('message', ''), file=stream)

    def _eval(self, statement: str) -> bool:
        ok = self.engine.eval(statement)
        self._flush_side_effects()
        return ok

    def run(self, expressions: Iterable[str]) -> int:
        """Runs the whole pipeline and returns the process exit status."""
        expressions = list(expressions)
        try:
            self._run(expressions)
        except PipelineFailure as failure:
            self.state = PipelineState.FAILED
            self.failure = failure
            print(f"jrq: {failure}", file=self.err)
            self.engine.print_error(self.err)
            return EXIT_FAILURE
        self.state = PipelineState.DONE
        return EXIT_SUCCESS

    def _run(self, expressions: list):
        self.state = PipelineState.READ_DOCUMENT
        print("reading from stdin", file=self.out)
        if not self._eval(READ_STATEMENT):
            raise ReadFailure()

        print(f"running {len(expressions)} expressions", file=self.out)
        for i, expr in enumerate(expressions):
            self.state = PipelineState.RUN_EXPRESSION
            self.expression_index = i
            wrapped = wrap(expr)
            print(f"----> {wrapped}", file=self.out)
            if not self._eval(wrapped):
                raise ExpressionFailure(expr)

        self.state = PipelineState.WRITE_DOCUMENT
        print("printing item", file=self.out)
        if not self._eval(PRINT_STATEMENT):
            raise PrintFailure()
