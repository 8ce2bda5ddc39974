"""``doc-batch init``: create the workspace directories."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from doc_batch.core import workspace as workspace_mod


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="doc-batch init",
        description="Create the doc-batch workspace holding config and log files.",
    )
    parser.add_argument(
        "--path",
        type=Path,
        help="Workspace root to use instead of DOC_BATCH_HOME or ~/.doc-batch.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Print nothing when the workspace is ready.",
    )
    return parser


def describe_layout(layout: workspace_mod.WorkspaceLayout) -> list[str]:
    """One line for the root, then one per subdirectory with its status."""

    def status(key: str) -> str:
        return "(created)" if layout.created.get(key) else "(exists)"

    entries = layout.items()
    pad = max((len(name) for name, _ in entries), default=0)
    return [f"Workspace ready at {layout.home} {status('home')}"] + [
        f"  {name:<{pad}}  {directory} {status(name)}"
        for name, directory in entries
    ]


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(None if argv is None else list(argv))

    try:
        layout = workspace_mod.ensure_workspace(path=args.path)
    except workspace_mod.WorkspaceError as exc:
        print(exc, file=sys.stderr)
        return 1

    if not args.quiet:
        print("\n".join(describe_layout(layout)))
    return 0


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
