"""Public APIs for batch document conversion."""

from __future__ import annotations

from .backends import (
    BackendOptions,
    ConverterBackend,
    ExternalProcessBackend,
    MarkItDownBackend,
    PandocBackend,
    get_backend,
    iter_backend_names,
)
from .config import (
    ConfigOverrides,
    ConvertConfig,
    ConvertConfigError,
    LoadResult,
    load_config,
)
from .discovery import discover
from .errors import (
    BackendUnavailableError,
    ConversionError,
    DiscoveryError,
    DocBatchError,
    NameCollisionError,
    OutputDirectoryError,
    OutputExistsError,
    RootDirectoryError,
    SanitizationError,
    UnknownBackendError,
)
from .models import (
    ConversionOutcome,
    ConversionStatus,
    ConversionTask,
    DiscoveredFile,
    derive_output_path,
)
from .orchestrator import ConversionOrchestrator, OrchestratorConfig
from .pipeline import BatchRequest, BatchResult, build_tasks, run_batch
from .report import BatchReport, fold
from .sanitize import sanitize, sanitize_discovered, sanitize_name

__all__ = [
    "BackendOptions",
    "ConverterBackend",
    "ExternalProcessBackend",
    "MarkItDownBackend",
    "PandocBackend",
    "get_backend",
    "iter_backend_names",
    "ConfigOverrides",
    "ConvertConfig",
    "ConvertConfigError",
    "LoadResult",
    "load_config",
    "discover",
    "BackendUnavailableError",
    "ConversionError",
    "DiscoveryError",
    "DocBatchError",
    "NameCollisionError",
    "OutputDirectoryError",
    "OutputExistsError",
    "RootDirectoryError",
    "SanitizationError",
    "UnknownBackendError",
    "ConversionOutcome",
    "ConversionStatus",
    "ConversionTask",
    "DiscoveredFile",
    "derive_output_path",
    "ConversionOrchestrator",
    "OrchestratorConfig",
    "BatchRequest",
    "BatchResult",
    "build_tasks",
    "run_batch",
    "BatchReport",
    "fold",
    "sanitize",
    "sanitize_discovered",
    "sanitize_name",
]
