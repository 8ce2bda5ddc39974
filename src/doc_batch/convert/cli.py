"""CLI entry point for batch document conversion."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from doc_batch.core import config_templates
from doc_batch.core import workspace as workspace_mod
from doc_batch.core.config_templates import ConfigTemplateError
from doc_batch.core.logging import configure_logger
from doc_batch.core.workspace import WorkspaceError

from .backends import get_backend, iter_backend_names
from .config import (
    CONFIG_FILENAME,
    ConfigOverrides,
    ConvertConfigError,
    load_config,
)
from .errors import (
    BackendUnavailableError,
    OutputDirectoryError,
    RootDirectoryError,
    UnknownBackendError,
)
from .models import ConversionOutcome
from .pipeline import BatchRequest, run_batch
from .report import BatchReport


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="doc-batch convert",
        description=(
            "Find documents under a directory and convert each one with an "
            "external converter (pandoc by default)."
        ),
        epilog=(
            "Run `doc-batch convert config init` to scaffold the default "
            "convert.toml template."
        ),
    )
    parser.add_argument(
        "root",
        type=Path,
        help="Directory searched recursively for documents.",
    )
    parser.add_argument(
        "--from",
        dest="input_extension",
        help="Extension of the documents to convert (default: docx).",
    )
    parser.add_argument(
        "--to",
        dest="output_extension",
        help="Extension of the converted files (default: md).",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help=(
            "Write outputs under this directory, mirroring the input tree, "
            "instead of next to each source."
        ),
    )
    jobs = parser.add_mutually_exclusive_group()
    jobs.add_argument(
        "-j",
        "--jobs",
        type=_positive_int,
        help="Maximum number of conversions running at once.",
    )
    jobs.add_argument(
        "--unlimited",
        action="store_true",
        help="Start every conversion at once.",
    )
    parser.add_argument(
        "--backend",
        choices=tuple(iter_backend_names()),
        help="Conversion backend to use (default: pandoc).",
    )
    parser.add_argument(
        "--program",
        help="Path or name of the converter program to run.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help=(
            "Path to a TOML config file (defaults to the workspace config "
            "directory)."
        ),
    )
    parser.add_argument(
        "--workspace",
        type=Path,
        help="Override the workspace root used for config and log files.",
    )
    parser.add_argument(
        "--log-level",
        help="Set the logging level for the run (defaults to INFO).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Mirror log records to stderr.",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only print the final summary.",
    )
    return parser


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from exc
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def main(argv: Sequence[str] | None = None) -> int:
    args_list = list(argv) if argv is not None else list(sys.argv[1:])

    if args_list[:1] == ["config"]:
        return _handle_config(args_list[1:])

    parser = _build_parser()
    args = parser.parse_args(args_list)

    overrides = ConfigOverrides(
        input_extension=args.input_extension,
        output_extension=args.output_extension,
        output_dir=args.output_dir,
        concurrency=args.jobs,
        unlimited=args.unlimited,
        backend=args.backend,
        program=args.program,
        log_level=args.log_level,
    )

    try:
        load_result = load_config(
            config_path=args.config,
            overrides=overrides,
            workspace_path=args.workspace,
        )
    except (ConvertConfigError, WorkspaceError) as exc:
        parser.error(str(exc))

    config = load_result.config
    try:
        backend = get_backend(config.backend, config.backend_options)
    except UnknownBackendError as exc:
        parser.error(str(exc))

    logger, log_path = configure_logger(
        "doc_batch.convert",
        log_dir=load_result.layout.path_for("logs"),
        level=config.log_level,
        verbose=args.verbose,
    )
    logger.debug("convert CLI invoked")

    console = Console()
    request = BatchRequest(
        root=args.root,
        input_extension=config.input_extension,
        output_extension=config.output_extension,
        output_root=config.output_dir,
    )
    cancel_event = threading.Event()
    on_outcome = None if args.quiet else _progress_printer(console)

    try:
        with _cancel_on_signals(cancel_event, logger):
            result = run_batch(
                request,
                backend=backend,
                config=config.orchestrator,
                logger=logger,
                cancel_event=cancel_event,
                on_outcome=on_outcome,
            )
    except (
        BackendUnavailableError,
        OutputDirectoryError,
        RootDirectoryError,
    ) as exc:
        logger.error(str(exc))
        sys.stderr.write(str(exc) + "\n")
        return 1

    _print_summary(
        console,
        result.report,
        log_path=log_path,
        backend_name=backend.name(),
        stopped_early=cancel_event.is_set(),
    )
    return 1 if result.report.is_total_failure else 0


@contextmanager
def _cancel_on_signals(
    event: threading.Event, logger: logging.Logger
) -> Iterator[None]:
    """Turn SIGINT/SIGTERM into ``event.set()`` for the duration."""

    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum, _frame) -> None:
        logger.warning(
            "Cancellation requested; finishing in-flight conversions",
            extra={"signal": signal.Signals(signum).name},
        )
        event.set()

    previous = {
        sig: signal.signal(sig, _handler)
        for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def _progress_printer(console: Console):
    def _print(outcome: ConversionOutcome) -> None:
        if outcome.succeeded:
            console.print(
                f"[green]converted[/] {escape(str(outcome.source))} "
                f"-> {escape(str(outcome.output_path))}",
                soft_wrap=True,
            )
        else:
            console.print(
                f"[red]failed[/]    {escape(str(outcome.source))}: "
                f"{escape((outcome.reason or '').strip())}",
                soft_wrap=True,
            )

    return _print


def _print_summary(
    console: Console,
    report: BatchReport,
    *,
    log_path: Path,
    backend_name: str,
    stopped_early: bool,
) -> None:
    overview = Table(
        title="Conversion summary",
        show_header=False,
        box=box.MINIMAL_DOUBLE_HEAD,
        expand=False,
    )
    overview.add_column("Metric", style="bold")
    overview.add_column("Value", justify="right")
    overview.add_row("Attempted", str(report.attempted))
    overview.add_row("Succeeded", str(report.succeeded))
    overview.add_row("Failed", str(report.failed))
    overview.add_row("Success rate", report.success_rate_display)
    overview.add_row("Backend", escape(backend_name))
    overview.add_row("Log file", escape(str(log_path)))
    console.print(overview)

    if report.failures:
        failures = Table(title="Failures", box=box.SIMPLE, expand=True)
        failures.add_column("Source", overflow="fold")
        failures.add_column("Reason", overflow="fold")
        for outcome in report.failures:
            failures.add_row(
                escape(str(outcome.source)),
                escape((outcome.reason or "").strip()),
            )
        console.print(failures)

    if stopped_early:
        console.print(
            "[yellow]Dispatch stopped early; files that never started are "
            "listed as failures.[/]"
        )
    if report.is_total_failure:
        console.print("[bold red]No documents were converted.[/]")


def _handle_config(argv: Sequence[str]) -> int:
    args = _build_config_parser().parse_args(argv)
    template = config_templates.get_template("convert")
    try:
        target = args.path or _default_config_path(args.workspace)
        written = template.write(_absolute(target), overwrite=args.force)
    except (WorkspaceError, ConfigTemplateError) as exc:
        sys.stderr.write(f"{exc}\n")
        return 1
    sys.stdout.write(f"Wrote convert config to {written}\n")
    return 0


def _build_config_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="doc-batch convert config",
        description="Create the convert.toml config file.",
        epilog=_template_listing(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    actions = parser.add_subparsers(dest="action", required=True)
    init = actions.add_parser("init", help="Write the commented convert.toml.")
    init.add_argument(
        "--path",
        type=Path,
        help="Where to write the file (defaults to <workspace>/config/convert.toml).",
    )
    init.add_argument(
        "--workspace",
        type=Path,
        help="Workspace whose config directory receives the default file.",
    )
    init.add_argument(
        "--force",
        action="store_true",
        help="Replace an existing file.",
    )
    return parser


def _template_listing() -> str:
    templates = tuple(config_templates.iter_templates())
    width = max((len(template.name) for template in templates), default=0)
    rows = [
        f"  {template.name:<{width}}  {template.description}"
        for template in templates
    ]
    return "\n".join(["Bundled templates:", *rows])


def _default_config_path(workspace: Path | None) -> Path:
    layout = workspace_mod.ensure_workspace(path=workspace)
    return layout.path_for("config") / CONFIG_FILENAME


def _absolute(path: Path) -> Path:
    path = path.expanduser()
    return path if path.is_absolute() else (Path.cwd() / path).resolve()


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
