from __future__ import annotations

import dataclasses
import time
from pathlib import Path

from .binaries import resolve_binary
from .drivers import LanguageDriver, StageSpec, artifact_name
from .engine import ProcessSupervisor
from .types import ExecutionResult, FailureKind, ProcessRequest


def _stage_binary(stage: StageSpec, fields: dict[str, str]) -> str:
    if stage.tool is None:
        return fields["artifact"]
    return resolve_binary(stage.tool)


def _unavailable(result: ExecutionResult, stage: StageSpec) -> ExecutionResult:
    return dataclasses.replace(
        result,
        stderr=f"{stage.display_label} not available: {result.stderr}",
    )


def run_pipeline(
    driver: LanguageDriver,
    code: str,
    *,
    workdir: Path,
    engine: ProcessSupervisor,
    timeout_seconds: float,
    input_text: str | None = None,
    memory_limit_mb: int | None = None,
) -> ExecutionResult:
    """Write the source, optionally compile it, then run it inside `workdir`.

    A failed compile stage short-circuits: the run stage is never started and
    the result carries the compiler's exit code and stderr. A missing binary
    at either stage is reported with the stage's label so callers can tell an
    absent toolchain from a failing program. `duration_ms` spans all stages.

    `memory_limit_mb` only reaches the run stage, and only for drivers whose
    runtime tolerates an address-space cap.

    Example:
        ```python
        result = run_pipeline(get_driver("c"), code, workdir=Path("/tmp/s1"), engine=LocalEngine(), timeout_seconds=10)
        ```
    """
    start = time.perf_counter()
    entry = driver.source_name(code)
    source_path = workdir / f"{entry}{driver.extension}"
    source_path.write_text(driver.render_source(code), encoding="utf-8", errors="replace")
    fields = {
        "source": str(source_path),
        "artifact": str(workdir / artifact_name()),
        "workdir": str(workdir),
        "entry": entry,
    }

    def _finish(result: ExecutionResult) -> ExecutionResult:
        elapsed = round((time.perf_counter() - start) * 1000, 3)
        return dataclasses.replace(result, duration_ms=elapsed)

    if driver.compile is not None:
        compiled = engine.execute(
            ProcessRequest(
                binary=_stage_binary(driver.compile, fields),
                args=driver.compile.render(fields),
                cwd=workdir,
                timeout_seconds=timeout_seconds,
            )
        )
        if compiled.failure is FailureKind.TOOLCHAIN_UNAVAILABLE:
            return _finish(_unavailable(compiled, driver.compile))
        if compiled.timed_out:
            return _finish(
                dataclasses.replace(compiled, stderr=f"Compilation timed out: {compiled.stderr}")
            )
        if compiled.exit_code != 0:
            return _finish(
                ExecutionResult(
                    stdout="",
                    stderr=f"Compilation failed: {compiled.stderr}",
                    exit_code=compiled.exit_code,
                    duration_ms=compiled.duration_ms,
                    failure=FailureKind.COMPILE_FAILURE,
                )
            )

    ran = engine.execute(
        ProcessRequest(
            binary=_stage_binary(driver.run, fields),
            args=driver.run.render(fields),
            cwd=workdir,
            timeout_seconds=timeout_seconds,
            input_text=input_text,
            memory_limit_mb=memory_limit_mb if driver.memory_cap_compatible else None,
        )
    )
    if ran.failure is FailureKind.TOOLCHAIN_UNAVAILABLE:
        return _finish(_unavailable(ran, driver.run))
    return _finish(ran)
