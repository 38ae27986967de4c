"""
Command line parsing and the fixed usage/version texts.
"""
from dataclasses import dataclass
from typing import Iterable, List, Tuple

PROGRAM_NAME = "jrq"
PROGRAM_VERSION = "0.1.0"

# Short flag character -> ProgramOptions field
SHORT_FLAGS = {
    'h': 'help',
    'v': 'version',
}

LONG_FLAGS = {
    '--help': 'help',
    '--version': 'version',
}


class ArgumentError(Exception):
    """An unrecognized short flag on the command line."""
    def __init__(self, option: str, token: str = ""):
        super().__init__(f"invalid option -{option}")
        self.option = option
        self.token = token or f"-{option}"


@dataclass(frozen=True)
class ProgramOptions:
    """Parsed command line: two flags plus the expressions in command line order."""
    help: bool = False
    version: bool = False
    expressions: Tuple[str, ...] = ()


def parse(args: Iterable[str]) -> ProgramOptions:
    """Parses command line arguments (without the program name).

    Flags may be clustered (`-hv`) and mixed with expressions. A bare `--`
    ends flag scanning; every token after it is an expression. A lone `-`
    is an expression, and empty tokens are dropped.
    """
    flags = {'help': False, 'version': False}
    expressions: List[str] = []

    remaining = iter(args)
    for arg in remaining:
        if len(arg) == 0:
            continue

        if arg == "--":
            expressions.extend(remaining)
            break

        if arg in LONG_FLAGS:
            flags[LONG_FLAGS[arg]] = True
            continue

        if len(arg) > 1 and arg[0] == '-':
            for ch in arg[1:]:
                field_name = SHORT_FLAGS.get(ch)
                if field_name is None:
                    raise ArgumentError(ch, arg)
                flags[field_name] = True
            continue

        expressions.append(arg)

    return ProgramOptions(help=flags['help'], version=flags['version'], expressions=tuple(expressions))


def format_version(engine_version: str) -> str:
    return f"{PROGRAM_NAME} {PROGRAM_VERSION} ({engine_version})"


def format_usage() -> str:
    return (
        f"Usage: {PROGRAM_NAME} [options] [--] [EXPRESSION...]\n"
        "  -v, --version   print the version number\n"
        "  -h, --help      show this message"
    )
