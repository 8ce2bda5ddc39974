from __future__ import annotations

import os
from pathlib import Path

import pytest

from doc_batch.convert import discovery
from doc_batch.convert.errors import RootDirectoryError


def _relative(found) -> list[str]:
    return [item.relative.as_posix() for item in found]


def test_discover_matches_extension_case_and_dot_insensitively(documents):
    documents.create(
        {
            "a.docx": "a",
            "b.DOCX": "b",
            "c.txt": "c",
            "nested": {"d.Docx": "d", "e.pdf": "e"},
        }
    )

    for extension in ("docx", ".DOCX", " .docx "):
        found = list(discovery.discover(documents.root, extension))
        assert _relative(found) == ["a.docx", "b.DOCX", "nested/d.Docx"]


def test_discover_yields_each_file_once_with_absolute_paths(documents):
    documents.create({"one.docx": "1", "sub": {"two.docx": "2"}})

    found = list(discovery.discover(documents.root, "docx"))

    assert len(found) == len({item.path for item in found}) == 2
    for item in found:
        assert item.path.is_absolute()
        assert item.path == documents.root.resolve() / item.relative
        assert item.extension == "docx"


def test_discover_walks_in_sorted_order(documents):
    documents.create(
        {
            "zeta.docx": "",
            "alpha.docx": "",
            "beta": {"inner.docx": ""},
            "Gamma.docx": "",
        }
    )

    first = _relative(discovery.discover(documents.root, "docx"))
    second = _relative(discovery.discover(documents.root, "docx"))

    assert first == second
    assert first == ["Gamma.docx", "alpha.docx", "zeta.docx", "beta/inner.docx"]


def test_discover_skips_directories_with_matching_suffix(documents):
    documents.create({"folder.docx": {"real.docx": "x"}})

    found = _relative(discovery.discover(documents.root, "docx"))

    assert found == ["folder.docx/real.docx"]


def test_discover_validates_root_eagerly(tmp_path):
    missing = tmp_path / "missing"
    with pytest.raises(RootDirectoryError, match="not found"):
        discovery.discover(missing, "docx")

    a_file = tmp_path / "file.docx"
    a_file.write_text("x", encoding="utf-8")
    with pytest.raises(RootDirectoryError, match="not a directory"):
        discovery.discover(a_file, "docx")


def test_discover_rejects_empty_extension(documents):
    with pytest.raises(ValueError):
        discovery.discover(documents.root, " . ")


def test_discover_is_lazy(documents):
    documents.create({"a.docx": "a"})

    iterator = discovery.discover(documents.root, "docx")
    (documents.root / "b.docx").write_text("b", encoding="utf-8")

    assert _relative(iterator) == ["a.docx", "b.docx"]


def test_discover_does_not_follow_symlink_loops(documents):
    documents.create({"sub": {"doc.docx": "x"}})
    try:
        os.symlink(documents.root, documents.root / "sub" / "loop")
    except (OSError, NotImplementedError):  # pragma: no cover - platform
        pytest.skip("symlinks not supported")

    found = _relative(discovery.discover(documents.root, "docx"))

    assert found == ["sub/doc.docx"]


@pytest.mark.skipif(
    not hasattr(os, "geteuid") or os.geteuid() == 0,
    reason="permission checks do not apply to root",
)
def test_discover_skips_unreadable_directory(documents, monkeypatch):
    documents.create(
        {"ok.docx": "x", "locked": {"hidden.docx": "y"}}
    )
    locked = documents.root / "locked"
    warnings: list[str] = []

    class _Recorder:
        def warning(self, message, *args, **kwargs):
            warnings.append(message)

        def debug(self, *args, **kwargs):
            pass

    monkeypatch.setattr(discovery, "logger", _Recorder())
    locked.chmod(0o000)
    try:
        found = _relative(discovery.discover(documents.root, "docx"))
    finally:
        locked.chmod(0o700)

    assert found == ["ok.docx"]
    assert warnings and "locked" in warnings[0]


def test_walk_error_is_logged_not_raised(monkeypatch):
    warnings: list[tuple[str, dict]] = []

    class _Recorder:
        def warning(self, message, *args, **kwargs):
            warnings.append((message, kwargs.get("extra", {})))

    monkeypatch.setattr(discovery, "logger", _Recorder())

    error = PermissionError(13, "Permission denied", str(Path("/x/locked")))
    discovery._log_walk_error(error)

    message, extra = warnings[0]
    assert "Skipping unreadable entry" in message
    assert extra["errno"] == 13
