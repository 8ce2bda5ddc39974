from __future__ import annotations

import json
import os
import signal
import subprocess
import sys
import threading
import time
from pathlib import Path

import pytest

from doc_batch.convert import cli as convert_cli
from doc_batch.convert import config as convert_config
from doc_batch.convert.pipeline import BatchResult
from doc_batch.convert.report import fold
from doc_batch.core import config_templates
from fixtures import WritingBackend


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    return tmp_path / "ws"


@pytest.fixture
def wired(monkeypatch, logger, tmp_path):
    """Route the CLI to a synthetic backend and a silent logger."""

    state: dict[str, object] = {"backend": WritingBackend()}

    def fake_get_backend(name, options=None):
        state["backend_name"] = name
        state["backend_options"] = options
        return state["backend"]

    def fake_configure_logger(name, *, log_dir, level, verbose):
        state["logger_args"] = {
            "name": name,
            "log_dir": log_dir,
            "level": level,
            "verbose": verbose,
        }
        return logger, tmp_path / "convert.log"

    monkeypatch.setattr(convert_cli, "get_backend", fake_get_backend)
    monkeypatch.setattr(convert_cli, "configure_logger", fake_configure_logger)
    # Wide enough that rich never folds table cells.
    monkeypatch.setenv("COLUMNS", "400")
    return state


def test_run_prints_progress_and_summary(documents, workspace, wired, capsys):
    documents.create({"a.docx": "a", "b.docx": "b", "skip.txt": "s"})

    code = convert_cli.main([str(documents.root), "--workspace", str(workspace)])

    captured = capsys.readouterr()
    assert code == 0
    assert "converted" in captured.out
    assert "Conversion summary" in captured.out
    assert "100.00%" in captured.out
    assert "synthetic" in captured.out
    assert (documents.root / "a.md").exists()
    assert wired["backend_name"] == "pandoc"
    assert wired["logger_args"]["name"] == "doc_batch.convert"
    assert wired["logger_args"]["log_dir"] == workspace.resolve() / "logs"


def test_partial_failure_lists_failures_and_exits_zero(
    documents, workspace, wired, capsys
):
    documents.create({"a.docx": "a", "b.docx": "b"})
    wired["backend"] = WritingBackend(fail_for={"b.docx"})

    code = convert_cli.main([str(documents.root), "--workspace", str(workspace)])

    captured = capsys.readouterr()
    assert code == 0
    assert "Failures" in captured.out
    assert "cannot convert b.docx" in captured.out
    assert "50.00%" in captured.out


def test_total_failure_exits_one(documents, workspace, wired, capsys):
    documents.create({"a.docx": "a"})
    wired["backend"] = WritingBackend(fail_for={"a.docx"})

    code = convert_cli.main([str(documents.root), "--workspace", str(workspace)])

    captured = capsys.readouterr()
    assert code == 1
    assert "No documents were converted." in captured.out


def test_empty_tree_exits_zero(documents, workspace, wired, capsys):
    code = convert_cli.main([str(documents.root), "--workspace", str(workspace)])

    captured = capsys.readouterr()
    assert code == 0
    assert "0.00%" in captured.out


def test_quiet_suppresses_progress(documents, workspace, wired, capsys):
    documents.create({"a.docx": "a"})

    code = convert_cli.main(
        [str(documents.root), "--workspace", str(workspace), "--quiet"]
    )

    captured = capsys.readouterr()
    assert code == 0
    assert "->" not in captured.out
    assert "Conversion summary" in captured.out


def test_backend_unavailable_exits_one(documents, workspace, wired, capsys):
    documents.create({"a.docx": "a"})
    wired["backend"] = WritingBackend(installed=False)

    code = convert_cli.main([str(documents.root), "--workspace", str(workspace)])

    captured = capsys.readouterr()
    assert code == 1
    assert "Conversion program not installed: synthetic" in captured.err
    assert not (documents.root / "a.md").exists()


def test_missing_root_exits_one(tmp_path, workspace, wired, capsys):
    code = convert_cli.main(
        [str(tmp_path / "missing"), "--workspace", str(workspace)]
    )

    captured = capsys.readouterr()
    assert code == 1
    assert "Input directory not found" in captured.err


def test_output_dir_that_is_a_file_exits_one(
    documents, workspace, wired, tmp_path, capsys
):
    documents.create({"a.docx": "a"})
    occupied = tmp_path / "out"
    occupied.write_text("x", encoding="utf-8")

    code = convert_cli.main(
        [
            str(documents.root),
            "--workspace",
            str(workspace),
            "--output-dir",
            str(occupied),
        ]
    )

    captured = capsys.readouterr()
    assert code == 1
    assert "Cannot use output directory" in captured.err
    assert not (documents.root / "a.md").exists()


def test_missing_root_does_not_create_output_dir(
    tmp_path, workspace, wired, capsys
):
    out = tmp_path / "out"

    code = convert_cli.main(
        [
            str(tmp_path / "missing"),
            "--workspace",
            str(workspace),
            "--output-dir",
            str(out),
        ]
    )

    assert code == 1
    assert "Input directory not found" in capsys.readouterr().err
    assert not out.exists()


def test_flags_flow_into_request_and_config(
    documents, workspace, wired, monkeypatch, tmp_path
):
    captured: dict[str, object] = {}

    def fake_run_batch(
        request, *, backend, config, logger, cancel_event, on_outcome
    ):
        captured["request"] = request
        captured["config"] = config
        captured["cancel_event"] = cancel_event
        return BatchResult(discovered=(), outcomes=(), report=fold(()))

    monkeypatch.setattr(convert_cli, "run_batch", fake_run_batch)

    code = convert_cli.main(
        [
            str(documents.root),
            "--workspace",
            str(workspace),
            "--from",
            "ODT",
            "--to",
            ".pdf",
            "--output-dir",
            str(tmp_path / "out"),
            "-j",
            "3",
            "--backend",
            "command",
            "--program",
            "soffice",
            "--log-level",
            "debug",
            "-v",
        ]
    )

    assert code == 0
    request = captured["request"]
    assert request.root == documents.root
    assert request.input_extension == "odt"
    assert request.output_extension == "pdf"
    assert request.output_root == (tmp_path / "out").resolve()
    assert captured["config"].concurrency == 3
    assert isinstance(captured["cancel_event"], threading.Event)
    assert wired["backend_name"] == "command"
    assert wired["backend_options"].program == "soffice"
    assert wired["logger_args"]["level"] == "DEBUG"
    assert wired["logger_args"]["verbose"] is True


def test_unlimited_flag(documents, workspace, wired, monkeypatch):
    captured: dict[str, object] = {}

    def fake_run_batch(request, *, config, **kwargs):
        captured["config"] = config
        return BatchResult(discovered=(), outcomes=(), report=fold(()))

    monkeypatch.setattr(convert_cli, "run_batch", fake_run_batch)

    convert_cli.main(
        [str(documents.root), "--workspace", str(workspace), "--unlimited"]
    )

    assert captured["config"].concurrency is None


def test_jobs_and_unlimited_are_exclusive(documents, capsys):
    with pytest.raises(SystemExit) as exc_info:
        convert_cli.main([str(documents.root), "-j", "2", "--unlimited"])

    assert exc_info.value.code == 2
    assert "not allowed with" in capsys.readouterr().err


def test_config_errors_are_usage_errors(documents, workspace, tmp_path, capsys):
    bad = tmp_path / "bad.toml"
    bad.write_text("[execution]\nconcurrency = -3\n", encoding="utf-8")

    with pytest.raises(SystemExit) as exc_info:
        convert_cli.main(
            [
                str(documents.root),
                "--workspace",
                str(workspace),
                "--config",
                str(bad),
            ]
        )

    assert exc_info.value.code == 2
    assert "concurrency" in capsys.readouterr().err


def test_stopped_early_is_reported(
    documents, workspace, wired, monkeypatch, capsys
):
    documents.create({"a.docx": "", "b.docx": ""})
    real_run_batch = convert_cli.run_batch

    def cancelling_run_batch(request, *, cancel_event, **kwargs):
        cancel_event.set()
        return real_run_batch(request, cancel_event=cancel_event, **kwargs)

    monkeypatch.setattr(convert_cli, "run_batch", cancelling_run_batch)

    code = convert_cli.main(
        [str(documents.root), "--workspace", str(workspace), "-q"]
    )

    captured = capsys.readouterr()
    assert code == 1
    assert "Dispatch stopped early" in captured.out
    assert "Cancelled before dispatch" in captured.out
    assert wired["backend"].calls == []


def test_signal_handlers_set_event_and_are_restored(logger):
    event = threading.Event()
    before = signal.getsignal(signal.SIGINT)

    with convert_cli._cancel_on_signals(event, logger):
        handler = signal.getsignal(signal.SIGINT)
        assert handler is not before
        handler(signal.SIGINT, None)
        assert event.is_set()

    assert signal.getsignal(signal.SIGINT) is before


def test_signal_context_is_noop_off_main_thread(logger):
    event = threading.Event()
    seen: dict[str, object] = {}

    def body():
        with convert_cli._cancel_on_signals(event, logger):
            seen["handler"] = signal.getsignal(signal.SIGINT)

    before = signal.getsignal(signal.SIGINT)
    worker = threading.Thread(target=body)
    worker.start()
    worker.join()

    assert seen["handler"] is before
    assert not event.is_set()


def test_config_init_writes_workspace_template(workspace, capsys):
    code = convert_cli.main(["config", "init", "--workspace", str(workspace)])

    target = workspace.resolve() / "config" / convert_config.CONFIG_FILENAME
    captured = capsys.readouterr()
    assert code == 0
    assert target.read_text(encoding="utf-8") == (
        config_templates.get_template("convert").read_text()
    )
    assert str(target) in captured.out


def test_config_init_requires_force(tmp_path, capsys):
    custom = tmp_path / "custom.toml"
    custom.write_text("existing", encoding="utf-8")

    code = convert_cli.main(["config", "init", "--path", str(custom)])

    assert code == 1
    assert "Config already exists" in capsys.readouterr().err
    assert custom.read_text(encoding="utf-8") == "existing"

    code = convert_cli.main(["config", "init", "--path", str(custom), "--force"])

    assert code == 0
    assert custom.read_text(encoding="utf-8") != "existing"


def test_config_init_relative_path(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)

    code = convert_cli.main(["config", "init", "--path", "local.toml"])

    assert code == 0
    assert (tmp_path / "local.toml").exists()
    assert str((tmp_path / "local.toml").resolve()) in capsys.readouterr().out


def test_config_help_lists_bundled_templates(capsys):
    with pytest.raises(SystemExit) as exc_info:
        convert_cli.main(["config", "--help"])

    out = capsys.readouterr().out
    assert exc_info.value.code == 0
    assert "Bundled templates:" in out
    assert config_templates.get_template("convert").description in out


SLOW_COPY_SCRIPT = (
    "import pathlib, shutil, sys, time; "
    "pathlib.Path(sys.argv[2] + '.started').touch(); "
    "time.sleep(2); "
    "shutil.copyfile(sys.argv[1], sys.argv[2])"
)


@pytest.mark.skipif(not hasattr(os, "killpg"), reason="needs POSIX process groups")
def test_terminal_interrupt_lets_running_converter_finish(documents, tmp_path):
    documents.create({"a.docx": "first", "b.docx": "second"})
    config = tmp_path / "convert.toml"
    config.write_text(
        "[backend]\n"
        'name = "command"\n'
        f"program = {json.dumps(sys.executable)}\n"
        f"arguments = {json.dumps(['-c', SLOW_COPY_SCRIPT, '{input}', '{output}'])}\n",
        encoding="utf-8",
    )
    src_dir = Path(convert_cli.__file__).resolve().parents[2]
    env = dict(os.environ, PYTHONPATH=str(src_dir), COLUMNS="400")
    command = [
        sys.executable,
        "-m",
        "doc_batch.convert.cli",
        str(documents.root),
        "--config",
        str(config),
        "--workspace",
        str(tmp_path / "ws"),
        "-j",
        "1",
    ]

    # Its own session stands in for a terminal's foreground process group.
    child = subprocess.Popen(
        command,
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        start_new_session=True,
    )
    marker = documents.root / "a.md.started"
    deadline = time.monotonic() + 30
    while not marker.exists() and child.poll() is None:
        assert time.monotonic() < deadline, "converter never started"
        time.sleep(0.05)

    os.killpg(child.pid, signal.SIGINT)
    out, err = child.communicate(timeout=60)

    assert child.returncode == 0, err.decode()
    assert (documents.root / "a.md").read_text(encoding="utf-8") == "first"
    assert not (documents.root / "b.md").exists()
    assert "Dispatch stopped early" in out.decode()
