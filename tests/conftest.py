from __future__ import annotations

import sys
from pathlib import Path

import pytest

from safe_code_runner import RunnerSettings
from safe_code_runner.execution.types import ExecutionResult, FailureKind, ProcessRequest


class RecordingEngine:
    """Process supervisor stand-in that replays canned results in order."""

    def __init__(self, *results: ExecutionResult) -> None:
        self.results = list(results)
        self.requests: list[ProcessRequest] = []
        self.cwd_existed: list[bool] = []

    def execute(self, request: ProcessRequest) -> ExecutionResult:
        self.requests.append(request)
        self.cwd_existed.append(request.cwd is not None and request.cwd.is_dir())
        if self.results:
            return self.results.pop(0)
        return ok_result()


def ok_result(stdout: str = "OK") -> ExecutionResult:
    return ExecutionResult(stdout=stdout, stderr="", exit_code=0, duration_ms=1.0)


def failed_result(stderr: str, exit_code: int = 1) -> ExecutionResult:
    return ExecutionResult(
        stdout="",
        stderr=stderr,
        exit_code=exit_code,
        duration_ms=1.0,
        failure=FailureKind.RUNTIME_FAILURE,
    )


def spawn_failure(message: str = "[Errno 2] No such file or directory") -> ExecutionResult:
    return ExecutionResult(
        stdout="",
        stderr=message,
        exit_code=1,
        duration_ms=0.5,
        failure=FailureKind.TOOLCHAIN_UNAVAILABLE,
    )


@pytest.fixture
def sessions_root(tmp_path: Path) -> Path:
    return tmp_path / "sessions"


@pytest.fixture
def settings(sessions_root: Path) -> RunnerSettings:
    return RunnerSettings(timeout_seconds=10, temp_dir=str(sessions_root))


@pytest.fixture
def host_python(monkeypatch: pytest.MonkeyPatch) -> str:
    """Point the python toolchain at the interpreter running the tests."""
    monkeypatch.setenv("PYTHON_BINARY", sys.executable)
    return sys.executable
