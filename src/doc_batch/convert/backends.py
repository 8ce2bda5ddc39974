"""Conversion backends and their registry.

Every backend exposes the same three operations: :meth:`name`,
:meth:`check_installed` and :meth:`convert`. ``convert`` is shared; it
reserves the output path, delegates to the backend-specific
:meth:`ConverterBackend.invoke`, and turns any exception into a failed
:class:`ConversionOutcome`. New backends subclass
:class:`ConverterBackend` and register a factory in ``_FACTORIES``.
"""

from __future__ import annotations

import importlib
import logging
import shutil
import subprocess
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Sequence

from doc_batch.core.files import ensure_directory

from .errors import ConversionError, OutputExistsError, UnknownBackendError
from .models import ConversionOutcome

logger = logging.getLogger(__name__)

PANDOC_CANDIDATES: tuple[str, ...] = ("pandoc", "pandoc-bin", "pandoc-cli")
DEFAULT_COMMAND_ARGUMENTS: tuple[str, ...] = ("{input}", "-o", "{output}")


class ConverterBackend(ABC):
    """Capability interface implemented by every conversion backend."""

    @abstractmethod
    def name(self) -> str:
        """Return a stable identifier used in logs and reports."""

    @abstractmethod
    def check_installed(self) -> bool:
        """Return whether the backend can run on this machine."""

    @abstractmethod
    def invoke(self, source: Path, output: Path) -> None:
        """Write the converted form of ``source`` to ``output``.

        ``output`` already exists as an empty placeholder owned by this
        call. Raise on failure; the message becomes the failure reason.
        """

    def convert(self, source: Path, output: Path) -> ConversionOutcome:
        """Convert ``source`` into ``output`` without overwriting anything."""

        try:
            _reserve_output(output)
        except OutputExistsError as exc:
            return ConversionOutcome.failure(
                source, str(exc), output_path=output, error=exc
            )
        except OSError as exc:
            return ConversionOutcome.failure(
                source,
                f"Cannot prepare output {output}: {exc}",
                output_path=output,
                error=exc,
            )

        try:
            self.invoke(source, output)
        except Exception as exc:
            _discard(output)
            return ConversionOutcome.failure(
                source, str(exc), output_path=output, error=exc
            )
        return ConversionOutcome.success(source, output)


class ExternalProcessBackend(ConverterBackend):
    """Run an external converter program once per document.

    ``arguments`` is a template; ``{input}`` and ``{output}`` are replaced
    with the resolved paths for each call.
    """

    version_arguments: tuple[str, ...] = ("--version",)

    def __init__(
        self,
        program: str | Path,
        *,
        arguments: Sequence[str] = DEFAULT_COMMAND_ARGUMENTS,
        timeout: Optional[float] = None,
    ) -> None:
        self.program = str(program)
        self.arguments = tuple(arguments)
        self.timeout = timeout

    def name(self) -> str:
        return self.program

    def check_installed(self) -> bool:
        command = [self.program, *self.version_arguments]
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                check=False,
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            logger.warning(
                "Converter program is not available",
                extra={"program": self.program, "error": str(exc)},
            )
            return False
        return completed.returncode == 0

    def build_command(self, source: Path, output: Path) -> list[str]:
        values = {"input": str(source), "output": str(output)}
        return [
            self.program,
            *(argument.format(**values) for argument in self.arguments),
        ]

    def invoke(self, source: Path, output: Path) -> None:
        command = self.build_command(source, output)
        logger.debug("Running converter", extra={"command": command})
        # Own session: a terminal Ctrl-C must not reach in-flight converters.
        completed = subprocess.run(
            command,
            capture_output=True,
            check=False,
            timeout=self.timeout,
            start_new_session=True,
        )
        if completed.returncode != 0:
            stderr = completed.stderr.decode("utf-8", errors="replace")
            if not stderr.strip():
                stderr = "{0} exited with status {1}".format(
                    self.name(), completed.returncode
                )
            raise ConversionError(stderr)


class PandocBackend(ExternalProcessBackend):
    """Convert documents with pandoc, extracting embedded media.

    Media lands in a directory next to the output, named after the output
    file without its extension.
    """

    def __init__(
        self,
        program: str | Path | None = None,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        super().__init__(
            program if program is not None else resolve_program(),
            timeout=timeout,
        )

    def name(self) -> str:
        return "pandoc"

    def build_command(self, source: Path, output: Path) -> list[str]:
        return [
            self.program,
            "--extract-media",
            str(media_directory(output)),
            "-s",
            str(source),
            "-o",
            str(output),
        ]

    def invoke(self, source: Path, output: Path) -> None:
        media = media_directory(output)
        media_existed = media.exists()
        try:
            super().invoke(source, output)
        except Exception:
            if not media_existed:
                shutil.rmtree(media, ignore_errors=True)
            raise


class MarkItDownBackend(ConverterBackend):
    """Convert documents in-process with the optional ``markitdown`` package."""

    def __init__(self, factory: Optional[Callable[[], Any]] = None) -> None:
        self._factory = factory
        self._local = threading.local()

    def name(self) -> str:
        return "markitdown"

    def check_installed(self) -> bool:
        try:
            self._resolve_factory()
        except ConversionError as exc:
            logger.warning(str(exc))
            return False
        return True

    def invoke(self, source: Path, output: Path) -> None:
        result = self._engine().convert(str(source))
        markdown = _coerce_markdown_result(result)
        if markdown is None:
            raise ConversionError(
                "markitdown returned an unsupported response; "
                "expected Markdown text."
            )
        output.write_text(markdown, encoding="utf-8")

    def _engine(self) -> Any:
        # One engine per worker thread.
        engine = getattr(self._local, "engine", None)
        if engine is None:
            engine = self._resolve_factory()()
            self._local.engine = engine
        return engine

    def _resolve_factory(self) -> Callable[[], Any]:
        if self._factory is not None:
            return self._factory
        try:
            module = importlib.import_module("markitdown")
        except ImportError as exc:
            raise ConversionError(
                "Optional dependency 'markitdown' is required for the "
                'markitdown backend. Install it with `pip install '
                '"doc-batch[markitdown]"`.'
            ) from exc
        factory = getattr(module, "MarkItDown", None)
        if factory is None:
            raise ConversionError(
                "Dependency 'markitdown' is installed but missing the "
                "'MarkItDown' attribute. Upgrade or reinstall the package."
            )
        self._factory = factory
        return factory


@dataclass(frozen=True)
class BackendOptions:
    """Backend settings resolved from configuration."""

    program: Optional[str] = None
    arguments: Optional[tuple[str, ...]] = None
    timeout: Optional[float] = None


def _build_pandoc(options: BackendOptions) -> ConverterBackend:
    return PandocBackend(options.program, timeout=options.timeout)


def _build_command(options: BackendOptions) -> ConverterBackend:
    if not options.program:
        raise UnknownBackendError(
            "The 'command' backend requires a program to run."
        )
    return ExternalProcessBackend(
        options.program,
        arguments=options.arguments or DEFAULT_COMMAND_ARGUMENTS,
        timeout=options.timeout,
    )


def _build_markitdown(options: BackendOptions) -> ConverterBackend:
    return MarkItDownBackend()


_FACTORIES: dict[str, Callable[[BackendOptions], ConverterBackend]] = {
    "pandoc": _build_pandoc,
    "command": _build_command,
    "markitdown": _build_markitdown,
}


def get_backend(
    name: str, options: Optional[BackendOptions] = None
) -> ConverterBackend:
    """Build the backend registered as ``name``."""

    key = name.strip().lower()
    try:
        factory = _FACTORIES[key]
    except KeyError as exc:
        expected = ", ".join(iter_backend_names())
        raise UnknownBackendError(
            f"Unknown backend '{name}'. Expected one of: {expected}."
        ) from exc
    return factory(options or BackendOptions())


def iter_backend_names() -> Iterable[str]:
    return tuple(sorted(_FACTORIES))


def resolve_program(candidates: Sequence[str] = PANDOC_CANDIDATES) -> str:
    """Return the first of ``candidates`` found on ``PATH``.

    Falls back to the first candidate so the availability probe reports a
    missing program instead of failing here.
    """

    for candidate in candidates:
        found = shutil.which(candidate)
        if found:
            return found
    return candidates[0]


def media_directory(output: Path) -> Path:
    return output.with_suffix("")


def _reserve_output(output: Path) -> None:
    ensure_directory(output.parent)
    try:
        with output.open("x", encoding="utf-8"):
            pass
    except FileExistsError as exc:
        raise OutputExistsError(output) from exc


def _discard(output: Path) -> None:
    try:
        output.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning(
            "Failed to remove incomplete output",
            extra={"output_path": str(output), "error": str(exc)},
        )


def _coerce_markdown_result(result: Any) -> str | None:
    markdown_value = getattr(result, "markdown", None)
    if isinstance(markdown_value, str):
        return markdown_value

    text_content = getattr(result, "text_content", None)
    if isinstance(text_content, str):
        return text_content

    if isinstance(result, str):
        return result

    return None


__all__ = [
    "BackendOptions",
    "ConverterBackend",
    "ExternalProcessBackend",
    "MarkItDownBackend",
    "PandocBackend",
    "get_backend",
    "iter_backend_names",
    "media_directory",
    "resolve_program",
]
