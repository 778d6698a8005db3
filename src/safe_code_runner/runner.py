from __future__ import annotations

import logging
import time

from .errors import ContentRejectedError, InvalidCodeError
from .execution.drivers import get_driver, toolchain_names, validate_content
from .execution.engine import ProcessSupervisor
from .execution.local_engine import LocalEngine
from .execution.pipeline import run_pipeline
from .execution.probe import probe_binaries
from .execution.types import BinaryStatus, ExecutionRequest, ExecutionResult, FailureKind
from .session import ExecutionSession, SessionState, outcome_state
from .settings import RunnerSettings, load_settings

logger = logging.getLogger(__name__)


def _resolve_settings(settings: RunnerSettings | None) -> RunnerSettings:
    return settings if settings is not None else load_settings()


def build_request(
    code: object,
    language: object,
    input_text: str | None = None,
    *,
    settings: RunnerSettings | None = None,
) -> ExecutionRequest:
    """Check and normalize a raw submission into an `ExecutionRequest`.

    Raises a `RejectedBeforeExecution` subclass for an unknown language or for
    code that is missing, blank, not text or over the size ceiling.

    Example:
        ```python
        request = build_request("print('OK')", "Python")
        ```
    """
    resolved = _resolve_settings(settings)
    if not code or not language:
        raise InvalidCodeError("Code and language are required")
    if not isinstance(code, str):
        raise InvalidCodeError("Code must be a string")
    if not code.strip():
        raise InvalidCodeError("Code cannot be empty")
    driver = get_driver(str(language))
    if len(code) > resolved.max_code_chars:
        raise InvalidCodeError(f"Code is too long (max {resolved.max_code_chars} characters)")
    return ExecutionRequest(code=code, language=driver.language, input_text=input_text)


def execute_request(
    request: ExecutionRequest,
    *,
    settings: RunnerSettings | None = None,
    engine: ProcessSupervisor | None = None,
) -> ExecutionResult:
    """Run an accepted request in its own session directory.

    Example:
        ```python
        result = execute_request(ExecutionRequest("print('OK')", "python"))
        ```
    """
    resolved = _resolve_settings(settings)
    supervisor = engine or LocalEngine(max_output_kb=resolved.max_output_kb)
    driver = get_driver(request.language)

    session = ExecutionSession.new(driver.language, resolved.temp_root)
    session.transition(SessionState.VALIDATING)
    try:
        validate_content(request.code, driver.language)
    except ContentRejectedError as exc:
        session.transition(SessionState.REJECTED)
        logger.info("Session %s rejected: %s", session.id, exc.reason)
        raise
    session.transition(SessionState.VALIDATED)

    start = time.perf_counter()
    try:
        with session.workspace() as workdir:
            result = run_pipeline(
                driver,
                request.code,
                workdir=workdir,
                engine=supervisor,
                timeout_seconds=resolved.timeout_seconds,
                input_text=request.input_text,
                memory_limit_mb=resolved.effective_memory_limit_mb,
            )
            session.transition(outcome_state(result))
    except OSError as exc:
        logger.exception("Session %s crashed while running %s code", session.id, driver.language)
        return ExecutionResult(
            stdout="",
            stderr=f"Internal error: {exc}",
            exit_code=1,
            duration_ms=round((time.perf_counter() - start) * 1000, 3),
            failure=FailureKind.INTERNAL_ERROR,
        )
    logger.debug(
        "Session %s finished %s run with exit code %s in %.1fms",
        session.id,
        driver.language,
        result.exit_code,
        result.duration_ms,
    )
    return result


def execute_code(
    code: str,
    language: str,
    input_text: str | None = None,
    *,
    settings: RunnerSettings | None = None,
    engine: ProcessSupervisor | None = None,
) -> ExecutionResult:
    """Execute a code snippet and return its captured output and exit status.

    Only pre-execution rejections are raised; toolchain absence, compile
    errors, program failures and timeouts all come back as an
    `ExecutionResult`.

    Example:
        ```python
        from safe_code_runner import execute_code
        result = execute_code("print(input())", "python", input_text="hello")
        ```
    """
    resolved = _resolve_settings(settings)
    request = build_request(code, language, input_text, settings=resolved)
    return execute_request(request, settings=resolved, engine=engine)


def get_binary_statuses(
    *,
    settings: RunnerSettings | None = None,
    engine: ProcessSupervisor | None = None,
) -> list[BinaryStatus]:
    """Probe every toolchain used by the supported languages.

    Example:
        ```python
        missing = [s.name for s in get_binary_statuses() if not s.available]
        ```
    """
    resolved = _resolve_settings(settings)
    return probe_binaries(
        toolchain_names(),
        engine=engine,
        timeout_seconds=resolved.probe_timeout_seconds,
    )
