import sys
from typing import List, Optional, TextIO

from jrq.jrq_options import parse, format_usage, format_version, ArgumentError
from jrq.jrq_runtime import ScriptRunner
from jrq.jrq_driver import Pipeline, EXIT_SUCCESS, EXIT_FAILURE


def main(argv: Optional[List[str]] = None,
         stdin: Optional[TextIO] = None,
         stdout: Optional[TextIO] = None,
         stderr: Optional[TextIO] = None) -> int:
    """Run jrq over one JSON document and return the exit status."""
    args = sys.argv[1:] if argv is None else argv
    out = stdout if stdout is not None else sys.stdout
    err = stderr if stderr is not None else sys.stderr

    try:
        opts = parse(args)
    except ArgumentError as e:
        print(f"jrq: {e}\n", file=err)
        print(format_usage(), file=err)
        return EXIT_FAILURE

    if opts.help:
        print(format_usage(), file=out)
        return EXIT_SUCCESS

    if opts.version:
        print(format_version(ScriptRunner.engine_version()), file=out)
        return EXIT_SUCCESS

    runner = ScriptRunner(stdin=stdin, stdout=out)
    return Pipeline(runner, out=out, err=err).run(opts.expressions)


def run():
    raise SystemExit(main())
