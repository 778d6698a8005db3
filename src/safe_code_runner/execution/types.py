from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path


class FailureKind(str, enum.Enum):
    """Why an execution did not end with exit code 0."""

    TOOLCHAIN_UNAVAILABLE = "toolchain_unavailable"
    COMPILE_FAILURE = "compile_failure"
    RUNTIME_FAILURE = "runtime_failure"
    TIMEOUT = "timeout"
    INTERNAL_ERROR = "internal_error"


@dataclass(frozen=True, slots=True)
class ExecutionRequest:
    """Accepted (code, language, input) triple handed to the orchestrator.

    Example:
        ```python
        req = ExecutionRequest(code="print('OK')", language="python", input_text=None)
        ```
    """

    code: str
    language: str
    input_text: str | None = None


@dataclass(frozen=True, slots=True)
class ProcessRequest:
    """One subprocess stage for a process supervisor.

    Example:
        ```python
        req = ProcessRequest(binary="gcc", args=("main.c", "-o", "main"), cwd=Path("/tmp/x"), timeout_seconds=10)
        ```
    """

    binary: str
    args: tuple[str, ...]
    cwd: Path | None
    timeout_seconds: float
    input_text: str | None = None
    memory_limit_mb: int | None = None


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Normalized outcome of a stage or a whole pipeline.

    Example:
        ```python
        out = ExecutionResult(stdout="OK", stderr="", exit_code=0, duration_ms=12.5)
        ```
    """

    stdout: str
    stderr: str
    exit_code: int | None
    duration_ms: float
    timed_out: bool = False
    failure: FailureKind | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True, slots=True)
class BinaryStatus:
    """Availability report for one toolchain binary.

    Example:
        ```python
        status = BinaryStatus("gcc", "gcc", True, "gcc (GCC) 13.2.0", "", "")
        ```
    """

    name: str
    path: str
    available: bool
    version: str
    error: str
    hint: str
