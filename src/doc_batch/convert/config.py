"""Configuration loader for batch conversion runs."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, MutableMapping, Optional, Sequence

from doc_batch.core import config as core_config
from doc_batch.core import workspace as workspace_mod
from doc_batch.core.files import normalize_extension

from .backends import BackendOptions, iter_backend_names
from .orchestrator import DEFAULT_CONCURRENCY, OrchestratorConfig

CONFIG_FILENAME = "convert.toml"
ENV_FILENAME = ".env"
CONFIG_ENV = "DOC_BATCH_CONFIG"
ENV_PREFIX = "DOC_BATCH_"

_DEFAULT_INPUT_EXTENSION = "docx"
_DEFAULT_OUTPUT_EXTENSION = "md"
_DEFAULT_BACKEND = "pandoc"
_DEFAULT_LOG_LEVEL = "INFO"


class ConvertConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


@dataclass(frozen=True)
class ConvertConfig:
    """Fully resolved configuration for a conversion run."""

    input_extension: str
    output_extension: str
    output_dir: Optional[Path]
    concurrency: Optional[int]
    backend: str
    backend_options: BackendOptions
    log_level: str

    @property
    def orchestrator(self) -> OrchestratorConfig:
        return OrchestratorConfig(concurrency=self.concurrency)


@dataclass(frozen=True)
class ConfigOverrides:
    """CLI-sourced overrides applied on top of file/env options."""

    input_extension: Optional[str] = None
    output_extension: Optional[str] = None
    output_dir: Optional[Path] = None
    concurrency: Optional[int] = None
    unlimited: bool = False
    backend: Optional[str] = None
    program: Optional[str] = None
    log_level: Optional[str] = None


@dataclass(frozen=True)
class LoadResult:
    """Result of loading configuration, including workspace context."""

    config: ConvertConfig
    layout: workspace_mod.WorkspaceLayout
    config_path: Optional[Path]


def load_config(
    *,
    config_path: Optional[Path] = None,
    overrides: Optional[ConfigOverrides] = None,
    env: Optional[Mapping[str, str]] = None,
    workspace_path: Optional[Path] = None,
) -> LoadResult:
    """Load configuration applying precedence CLI > env > TOML defaults.

    Environment values come from the process environment first and then
    from a ``.env`` file in the workspace home.
    """

    overrides = overrides or ConfigOverrides()
    process_env = os.environ if env is None else env

    layout = workspace_mod.ensure_workspace(env=process_env, path=workspace_path)
    env_map: dict[str, str] = core_config.load_env_file(
        layout.home / ENV_FILENAME, prefix=ENV_PREFIX
    )
    env_map.update(process_env)

    requested_path = _resolve_config_path(
        config_path=config_path,
        env_map=env_map,
        default_path=layout.path_for("config") / CONFIG_FILENAME,
    )

    file_options = _default_table()
    loaded_path: Optional[Path] = None
    if requested_path.exists():
        loaded_path = requested_path
        try:
            parsed = core_config.load_toml(requested_path)
            core_config.merge_defaults(file_options, parsed)
        except core_config.TomlConfigError as exc:
            raise ConvertConfigError(str(exc)) from exc
    elif config_path is not None or _parse_env_string(env_map, "CONFIG"):
        raise ConvertConfigError(f"Config file not found: {requested_path}")

    execution = file_options["execution"]
    backend_table = file_options["backend"]

    input_extension = _resolve_extension(
        "execution.input_extension",
        _pick_first(
            overrides.input_extension,
            _parse_env_string(env_map, "INPUT_EXTENSION"),
            execution["input_extension"],
        ),
    )
    output_extension = _resolve_extension(
        "execution.output_extension",
        _pick_first(
            overrides.output_extension,
            _parse_env_string(env_map, "OUTPUT_EXTENSION"),
            execution["output_extension"],
        ),
    )

    output_dir = _resolve_output_dir(
        _pick_first(
            overrides.output_dir,
            _parse_env_path(env_map, "OUTPUT_DIR"),
            _coerce_optional_path(file_options["paths"]["output_dir"]),
        )
    )

    if overrides.unlimited:
        concurrency: Optional[int] = None
    else:
        concurrency = _resolve_concurrency(
            _pick_first(
                overrides.concurrency,
                _parse_env_int(env_map, "CONCURRENCY"),
                execution["concurrency"],
            )
        )

    backend = _resolve_backend(
        _pick_first(
            overrides.backend,
            _parse_env_string(env_map, "BACKEND"),
            backend_table["name"],
        )
    )

    backend_options = BackendOptions(
        program=_optional_string(
            "backend.program",
            _pick_first(
                overrides.program,
                _parse_env_string(env_map, "PROGRAM"),
                backend_table["program"],
            ),
        ),
        arguments=_resolve_arguments(backend_table["arguments"]),
        timeout=_resolve_timeout(backend_table["timeout"]),
    )

    log_level = _resolve_log_level(
        _pick_first(
            overrides.log_level,
            _parse_env_string(env_map, "LOG_LEVEL"),
            file_options["logging"]["level"],
        )
    )

    config = ConvertConfig(
        input_extension=input_extension,
        output_extension=output_extension,
        output_dir=output_dir,
        concurrency=concurrency,
        backend=backend,
        backend_options=backend_options,
        log_level=log_level,
    )
    return LoadResult(config=config, layout=layout, config_path=loaded_path)


def _default_table() -> MutableMapping[str, MutableMapping[str, object]]:
    return {
        "paths": {"output_dir": ""},
        "execution": {
            "input_extension": _DEFAULT_INPUT_EXTENSION,
            "output_extension": _DEFAULT_OUTPUT_EXTENSION,
            "concurrency": DEFAULT_CONCURRENCY,
        },
        "backend": {
            "name": _DEFAULT_BACKEND,
            "program": "",
            "arguments": [],
            "timeout": 0,
        },
        "logging": {"level": _DEFAULT_LOG_LEVEL},
    }


def _resolve_config_path(
    *,
    config_path: Optional[Path],
    env_map: Mapping[str, str],
    default_path: Path,
) -> Path:
    if config_path is not None:
        return config_path.expanduser()
    env_candidate = _parse_env_string(env_map, "CONFIG")
    if env_candidate:
        return Path(env_candidate).expanduser()
    return default_path


def _resolve_extension(key: str, value: object) -> str:
    if not isinstance(value, str):
        raise ConvertConfigError(f"{key} must be a string.")
    try:
        return normalize_extension(value)
    except ValueError as exc:
        raise ConvertConfigError(f"{key} must be a non-empty string.") from exc


def _coerce_optional_path(value: object) -> Optional[Path]:
    if value is None:
        return None
    if isinstance(value, str):
        raw = value.strip()
        return Path(raw) if raw else None
    raise ConvertConfigError("paths.output_dir must be a string when provided.")


def _resolve_output_dir(candidate: object) -> Optional[Path]:
    if candidate is None:
        return None
    path = Path(candidate).expanduser()  # type: ignore[arg-type]
    if not path.is_absolute():
        path = Path.cwd() / path
    return path.resolve()


def _resolve_concurrency(value: object) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConvertConfigError("execution.concurrency must be an integer.")
    if value < 0:
        raise ConvertConfigError(
            "execution.concurrency must be >= 0 (0 means unlimited)."
        )
    return value or None


def _resolve_backend(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConvertConfigError("backend.name must be a non-empty string.")
    name = value.strip().lower()
    known = tuple(iter_backend_names())
    if name not in known:
        raise ConvertConfigError(
            "Unknown backend '{0}'. Expected one of: {1}.".format(
                value, ", ".join(known)
            )
        )
    return name


def _resolve_arguments(value: object) -> Optional[tuple[str, ...]]:
    if not isinstance(value, Sequence) or isinstance(value, str):
        raise ConvertConfigError("backend.arguments must be a list of strings.")
    if not all(isinstance(item, str) for item in value):
        raise ConvertConfigError("backend.arguments must be a list of strings.")
    return tuple(value) or None


def _resolve_timeout(value: object) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConvertConfigError("backend.timeout must be a number.")
    if value < 0:
        raise ConvertConfigError("backend.timeout must be >= 0.")
    return float(value) or None


def _optional_string(key: str, value: object) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConvertConfigError(f"{key} must be a string.")
    return value.strip() or None


def _resolve_log_level(value: object) -> str:
    if not isinstance(value, str):
        raise ConvertConfigError("logging.level must be a string.")
    level = value.strip()
    if not level:
        raise ConvertConfigError("logging.level must be a non-empty string.")
    return level.upper()


def _parse_env_int(env_map: Mapping[str, str], key: str) -> Optional[int]:
    raw = _parse_env_string(env_map, key)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ConvertConfigError(
            f"{ENV_PREFIX}{key} must be an integer, got '{raw}'."
        ) from exc


def _parse_env_path(env_map: Mapping[str, str], key: str) -> Optional[Path]:
    raw = _parse_env_string(env_map, key)
    if raw is None:
        return None
    return Path(raw).expanduser()


def _parse_env_string(env_map: Mapping[str, str], key: str) -> Optional[str]:
    raw = env_map.get(f"{ENV_PREFIX}{key}")
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def _pick_first(*candidates: object) -> object:
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None
