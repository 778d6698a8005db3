from __future__ import annotations

import os
import tempfile
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}

ENV_PREFIX = "SCR_"


def _default_settings_path() -> Path:
    """Return bundled default settings TOML path.

    Example:
        ```python
        path = _default_settings_path()
        ```
    """
    return Path(__file__).with_name("default_settings.toml")


def _read_settings_toml(path: Path) -> dict[str, Any]:
    """Read a settings TOML file and return the `[runner]` table.

    Example:
        ```python
        raw = _read_settings_toml(Path("/etc/scr.toml"))
        ```
    """
    if not path.exists():
        return {
            "timeout_seconds": 10,
            "memory_limit_mb": 128,
            "enforce_memory_limit": False,
            "max_code_chars": 50000,
            "max_output_kb": 1024,
            "probe_timeout_seconds": 10,
        }
    raw = tomllib.loads(path.read_text(encoding="utf-8"))
    runner_obj = raw.get("runner", raw)
    if not isinstance(runner_obj, dict):
        raise ValueError("Runner settings must be a TOML table")
    return runner_obj


def _as_bool(value: Any, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"'{field_name}' must be a boolean")


def default_temp_dir() -> str:
    return str(Path(tempfile.gettempdir()) / "safe-code-runner")


_DEFAULTS_RAW = _read_settings_toml(_default_settings_path())
DEFAULT_TIMEOUT_SECONDS = float(_DEFAULTS_RAW.get("timeout_seconds", 10))
DEFAULT_MEMORY_LIMIT_MB = int(_DEFAULTS_RAW.get("memory_limit_mb", 128))
DEFAULT_ENFORCE_MEMORY_LIMIT = _as_bool(
    _DEFAULTS_RAW.get("enforce_memory_limit", False), "enforce_memory_limit"
)
DEFAULT_MAX_CODE_CHARS = int(_DEFAULTS_RAW.get("max_code_chars", 50000))
DEFAULT_MAX_OUTPUT_KB = int(_DEFAULTS_RAW.get("max_output_kb", 1024))
DEFAULT_PROBE_TIMEOUT_SECONDS = float(_DEFAULTS_RAW.get("probe_timeout_seconds", 10))


@dataclass(frozen=True, slots=True)
class RunnerSettings:
    """Limits and locations used by the execution engine.

    `memory_limit_mb` is declared but only applied when
    `enforce_memory_limit` is true, and then only on POSIX run stages.

    Example:
        ```python
        settings = RunnerSettings(timeout_seconds=5, max_code_chars=10_000)
        ```
    """

    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    memory_limit_mb: int = DEFAULT_MEMORY_LIMIT_MB
    enforce_memory_limit: bool = DEFAULT_ENFORCE_MEMORY_LIMIT
    max_code_chars: int = DEFAULT_MAX_CODE_CHARS
    max_output_kb: int = DEFAULT_MAX_OUTPUT_KB
    probe_timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS
    temp_dir: str | None = None

    def __post_init__(self) -> None:
        """Validate limits after dataclass initialization.

        Example:
            ```python
            RunnerSettings(timeout_seconds=0)  # raises ValueError
            ```
        """
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.probe_timeout_seconds <= 0:
            raise ValueError("probe_timeout_seconds must be positive")
        if self.memory_limit_mb <= 0:
            raise ValueError("memory_limit_mb must be positive")
        if self.max_code_chars <= 0:
            raise ValueError("max_code_chars must be positive")
        if self.max_output_kb <= 0:
            raise ValueError("max_output_kb must be positive")

    @property
    def temp_root(self) -> Path:
        return Path(self.temp_dir or default_temp_dir()).expanduser()

    @property
    def effective_memory_limit_mb(self) -> int | None:
        return self.memory_limit_mb if self.enforce_memory_limit else None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "RunnerSettings":
        """Build settings from a plain mapping, ignoring unknown keys.

        Example:
            ```python
            settings = RunnerSettings.from_mapping({"timeout_seconds": 3})
            ```
        """
        base = cls()
        return replace(base, **_coerce(raw))

    @classmethod
    def from_file(cls, config_path: str) -> "RunnerSettings":
        """Create settings from a TOML file.

        Example:
            ```python
            settings = RunnerSettings.from_file("/etc/safe-code-runner.toml")
            ```
        """
        path = Path(config_path)
        if not path.exists():
            raise ValueError(f"Settings file not found: {config_path}")
        return cls.from_mapping(_read_settings_toml(path))

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] | None = None,
        *,
        base: "RunnerSettings | None" = None,
    ) -> "RunnerSettings":
        """Overlay `SCR_*` environment variables on top of `base`.

        Example:
            ```python
            settings = RunnerSettings.from_env({"SCR_TIMEOUT_SECONDS": "3"})
            ```
        """
        environ = os.environ if env is None else env
        raw: dict[str, Any] = {}
        for item in fields(cls):
            value = environ.get(f"{ENV_PREFIX}{item.name.upper()}")
            if value is not None:
                raw[item.name] = value
        return replace(base or cls(), **_coerce(raw))


def _coerce(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Convert raw TOML/env values into typed settings fields.

    Example:
        ```python
        values = _coerce({"timeout_seconds": "2.5", "enforce_memory_limit": "true"})
        ```
    """
    out: dict[str, Any] = {}
    try:
        for key in ("timeout_seconds", "probe_timeout_seconds"):
            if key in raw:
                out[key] = float(raw[key])
        for key in ("memory_limit_mb", "max_code_chars", "max_output_kb"):
            if key in raw:
                out[key] = int(raw[key])
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid runner setting: {exc}") from exc
    if "enforce_memory_limit" in raw:
        out["enforce_memory_limit"] = _as_bool(raw["enforce_memory_limit"], "enforce_memory_limit")
    if "temp_dir" in raw:
        out["temp_dir"] = str(raw["temp_dir"]) or None
    return out


def load_settings(config_path: str | None = None, env: Mapping[str, str] | None = None) -> RunnerSettings:
    """Resolve effective settings: bundled defaults, then file, then environment.

    Example:
        ```python
        settings = load_settings("/etc/safe-code-runner.toml")
        ```
    """
    base = RunnerSettings.from_file(config_path) if config_path else RunnerSettings()
    return RunnerSettings.from_env(env, base=base)
