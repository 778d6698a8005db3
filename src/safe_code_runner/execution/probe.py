from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Sequence

from ..settings import DEFAULT_PROBE_TIMEOUT_SECONDS
from .binaries import TOOLCHAINS, override_hint, resolve_binary
from .engine import ProcessSupervisor
from .local_engine import LocalEngine
from .types import BinaryStatus, FailureKind, ProcessRequest

logger = logging.getLogger(__name__)



def _version_flag(name: str) -> str:
    tool = TOOLCHAINS.get(name)
    return tool.version_flag if tool else "--version"


def probe_binary(
    name: str,
    *,
    engine: ProcessSupervisor | None = None,
    timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
) -> BinaryStatus:
    """Run a tool's version query and report whether it is usable.

    Example:
        ```python
        status = probe_binary("gcc")
        ```
    """
    path = resolve_binary(name)
    supervisor = engine or LocalEngine()
    result = supervisor.execute(
        ProcessRequest(
            binary=path,
            args=(_version_flag(name),),
            cwd=None,
            timeout_seconds=timeout_seconds,
        )
    )
    if result.failure is FailureKind.TOOLCHAIN_UNAVAILABLE:
        return BinaryStatus(name, path, False, "", result.stderr, override_hint(name))
    if result.timed_out:
        return BinaryStatus(
            name,
            path,
            False,
            "",
            f"Version probe timed out after {timeout_seconds:g}s",
            override_hint(name),
        )
    if result.exit_code == 0:
        # `java -version` reports on stderr.
        return BinaryStatus(name, path, True, result.stdout or result.stderr, "", "")
    return BinaryStatus(name, path, False, result.stdout or result.stderr, result.stderr, override_hint(name))


def probe_binaries(
    names: Sequence[str],
    *,
    engine: ProcessSupervisor | None = None,
    timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
) -> list[BinaryStatus]:
    """Probe several tools concurrently, keeping the input order.

    Example:
        ```python
        statuses = probe_binaries(["gcc", "g++"])
        ```
    """
    if not names:
        return []
    supervisor = engine or LocalEngine()
    with ThreadPoolExecutor(max_workers=len(names), thread_name_prefix="probe") as pool:
        return list(
            pool.map(
                lambda name: probe_binary(name, engine=supervisor, timeout_seconds=timeout_seconds),
                names,
            )
        )


def log_binary_statuses(statuses: Sequence[BinaryStatus]) -> None:
    """Log one informational line per probed tool.

    Example:
        ```python
        log_binary_statuses(probe_binaries(["node", "python"]))
        ```
    """
    for status in statuses:
        if status.available:
            first_line = status.version.splitlines()[0] if status.version else ""
            logger.info("%s available at %s: %s", status.name, status.path, first_line)
        else:
            logger.warning("%s unavailable at %s: %s (%s)", status.name, status.path, status.error, status.hint)
