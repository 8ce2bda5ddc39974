"""``doc-batch`` entry point: dispatches to the per-command CLIs."""

from __future__ import annotations

import inspect
import sys
from dataclasses import dataclass
from importlib import import_module, metadata
from typing import Callable, Mapping, Optional, Sequence


@dataclass(frozen=True)
class CommandSpec:
    """A subcommand and the module whose ``main`` implements it."""

    name: str
    summary: str
    module: str

    @property
    def prog(self) -> str:
        return f"doc-batch {self.name}"

    def run(self, argv: Sequence[str]) -> int:
        entry = getattr(import_module(self.module), "main")
        return _call_with_argv(entry, self.prog, argv)


COMMANDS: Mapping[str, CommandSpec] = {
    spec.name: spec
    for spec in (
        CommandSpec(
            name="init",
            summary="Bootstrap the doc-batch workspace.",
            module="doc_batch.workspace.cli",
        ),
        CommandSpec(
            name="convert",
            summary="Convert every matching document under a directory.",
            module="doc_batch.convert.cli",
        ),
    )
}


def format_command_table() -> str:
    width = max(map(len, COMMANDS), default=0)
    rows = [f"  {name.ljust(width)}  {spec.summary}" for name, spec in COMMANDS.items()]
    return "\n".join(["Available commands:", *rows])


def format_usage() -> str:
    return (
        "Usage: doc-batch <command> [args...]\n"
        "Run `doc-batch list` for commands or `doc-batch help <name>` for "
        "details.\n\n" + format_command_table()
    )


def _out(text: str) -> None:
    sys.stdout.write(text + "\n")


def _err(text: str) -> None:
    sys.stderr.write(text + "\n")


def _unknown(name: str) -> int:
    _err(f"Unknown command '{name}'.")
    _err(format_command_table())
    return 2


def _version() -> int:
    try:
        _out(metadata.version("doc-batch"))
    except metadata.PackageNotFoundError:
        _out("unknown")
    return 0


def _help(topic: Sequence[str]) -> int:
    if not topic:
        _out(format_usage())
        return 0
    spec = COMMANDS.get(topic[0])
    if spec is None:
        return _unknown(topic[0])
    _out(f"{spec.name}: {spec.summary}")
    _out(f"Run `{spec.prog} --help` for CLI-specific options.")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        _out(format_usage())
        return 2

    head, rest = args[0], args[1:]
    if head in ("-h", "--help"):
        _out(format_usage())
        return 0
    if head in ("-V", "--version", "version"):
        return _version()
    if head == "list":
        _out(format_command_table())
        return 0
    if head == "help":
        return _help(rest)

    spec = COMMANDS.get(head)
    if spec is None:
        return _unknown(head)
    return spec.run(rest)


def _call_with_argv(
    entry: Callable[..., object], prog: str, argv: Sequence[str]
) -> int:
    """Run a command ``main`` with ``sys.argv`` pointing at ``prog``.

    ``main(argv)`` and ``main()`` signatures are both supported; a
    ``SystemExit`` raised by argparse becomes the return code.
    """

    saved = sys.argv
    sys.argv = [prog, *argv]
    try:
        result = entry(list(argv)) if _takes_argv(entry) else entry()
    except SystemExit as exc:
        return _exit_code(exc)
    finally:
        sys.argv = saved
    return result if isinstance(result, int) else 0


def _takes_argv(entry: Callable[..., object]) -> bool:
    try:
        parameters = inspect.signature(entry).parameters.values()
    except (TypeError, ValueError):
        return False
    positional = (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
        inspect.Parameter.VAR_POSITIONAL,
    )
    return any(param.kind in positional for param in parameters)


def _exit_code(exc: SystemExit) -> int:
    if exc.code is None:
        return 0
    if isinstance(exc.code, int):
        return exc.code
    _err(str(exc.code))
    return 1


if __name__ == "__main__":  # pragma: no cover - manual invocation guard
    raise SystemExit(main())
