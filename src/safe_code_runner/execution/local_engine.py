from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from typing import IO, Any, Callable, Sequence

from .types import ExecutionResult, FailureKind, ProcessRequest

_resource: Any
try:
    import resource as _resource_module  # POSIX only
    _resource = _resource_module
except ImportError:  # pragma: no cover - platform specific
    _resource = None

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124
SPAWN_FAILURE_EXIT_CODE = 1
# Upper bound on draining pipes after the process group was killed.
_DRAIN_SECONDS = 2.0
_CHUNK_BYTES = 64 * 1024


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 3)


def _decode(raw: bytes) -> str:
    """Decode captured bytes and trim surrounding whitespace.

    Example:
        ```python
        text = _decode(b"  OK\\n")  # "OK"
        ```
    """
    return raw.decode("utf-8", errors="replace").strip()


class _CappedReader:
    """Drain one pipe on a background thread, keeping at most `limit` bytes.

    Bytes past the limit are read and dropped so a chatty child never blocks
    on a full pipe.

    Example:
        ```python
        reader = _CappedReader(proc.stdout, limit=1024 * 1024)
        reader.join(5.0)
        data = reader.snapshot()
        ```
    """

    def __init__(self, stream: IO[bytes], limit: int) -> None:
        self._stream = stream
        self._limit = limit
        self._kept = bytearray()
        self._lock = threading.Lock()
        self.discarded = 0
        self._thread = threading.Thread(target=self._pump, name="pipe-reader", daemon=True)
        self._thread.start()

    def _pump(self) -> None:
        read = getattr(self._stream, "read1", self._stream.read)
        try:
            while True:
                chunk = read(_CHUNK_BYTES)
                if not chunk:
                    return
                with self._lock:
                    room = max(0, self._limit - len(self._kept))
                    self._kept += chunk[:room]
                    self.discarded += len(chunk) - min(room, len(chunk))
        except (OSError, ValueError):
            # Pipe closed after a kill.
            return

    @property
    def alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: float) -> None:
        self._thread.join(max(0.0, timeout))

    def snapshot(self) -> bytes:
        with self._lock:
            return bytes(self._kept)


def _feed(stdin: IO[bytes] | None, payload: bytes) -> None:
    """Write the whole input and close stdin; a child that exits early is fine."""
    if stdin is None:
        return
    try:
        if payload:
            stdin.write(payload)
    except BrokenPipeError:
        pass
    finally:
        try:
            stdin.close()
        except BrokenPipeError:
            pass


def _join_all(readers: Sequence[_CappedReader], timeout: float) -> bool:
    end = time.perf_counter() + timeout
    for reader in readers:
        reader.join(end - time.perf_counter())
    return not any(reader.alive for reader in readers)


def _memory_limiter(memory_limit_mb: int) -> Callable[[], None] | None:
    """Build a preexec hook applying RLIMIT_AS, or None where unsupported.

    Example:
        ```python
        hook = _memory_limiter(128)
        ```
    """
    if _resource is None or os.name != "posix":
        return None
    mem_bytes = int(memory_limit_mb) * 1024 * 1024

    def _apply() -> None:
        _, current_hard = _resource.getrlimit(_resource.RLIMIT_AS)
        if current_hard in (-1, _resource.RLIM_INFINITY):
            target_hard = mem_bytes
        else:
            target_hard = min(mem_bytes, current_hard)
        _resource.setrlimit(_resource.RLIMIT_AS, (min(mem_bytes, target_hard), target_hard))

    return _apply


def _terminate_tree(proc: subprocess.Popen[bytes]) -> None:
    """Kill a timed-out process together with everything it spawned.

    Example:
        ```python
        _terminate_tree(proc)
        ```
    """
    try:
        if os.name == "posix":
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except ProcessLookupError:
        # Already gone between the timeout and the kill.
        pass


class LocalEngine:
    """Run toolchain and user processes directly on the host.

    There is no namespace, cgroup or seccomp containment here: the working
    directory and the wall-clock timeout are the only boundaries.

    Example:
        ```python
        engine = LocalEngine(max_output_kb=256)
        result = engine.execute(ProcessRequest(binary="python3", args=("-c", "print(1)"), cwd=None, timeout_seconds=5))
        ```
    """

    def __init__(self, *, max_output_kb: int = 1024) -> None:
        if max_output_kb <= 0:
            raise ValueError("LocalEngine requires a positive 'max_output_kb'")
        self._max_output_bytes = int(max_output_kb) * 1024

    def execute(self, request: ProcessRequest) -> ExecutionResult:
        """Spawn one process, feed its input, and wait for it within the timeout.

        Each stream is read while the process runs and only its first
        `max_output_kb` kilobytes are kept.

        Example:
            ```python
            result = engine.execute(ProcessRequest(binary="node", args=("script.js",), cwd=workdir, timeout_seconds=10, input_text="hello"))
            ```
        """
        cmd = [request.binary, *request.args]
        preexec = None
        if request.memory_limit_mb is not None:
            preexec = _memory_limiter(request.memory_limit_mb)
        # Input is a single batch; stdin is closed right after it, even when empty.
        payload = (request.input_text or "").encode("utf-8", errors="replace")
        timeout = max(0.001, float(request.timeout_seconds))
        start = time.perf_counter()
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=str(request.cwd) if request.cwd is not None else None,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=os.name == "posix",
                preexec_fn=preexec,
            )
        except OSError as exc:
            logger.debug("Failed to spawn %s: %s", request.binary, exc)
            return ExecutionResult(
                stdout="",
                stderr=str(exc),
                exit_code=SPAWN_FAILURE_EXIT_CODE,
                duration_ms=_elapsed_ms(start),
                failure=FailureKind.TOOLCHAIN_UNAVAILABLE,
            )

        try:
            return self._supervise(proc, request, payload, timeout, start)
        except BaseException:
            _terminate_tree(proc)
            proc.wait()
            raise

    def _supervise(
        self,
        proc: subprocess.Popen[bytes],
        request: ProcessRequest,
        payload: bytes,
        timeout: float,
        start: float,
    ) -> ExecutionResult:
        assert proc.stdout is not None and proc.stderr is not None
        readers = (
            _CappedReader(proc.stdout, self._max_output_bytes),
            _CappedReader(proc.stderr, self._max_output_bytes),
        )
        threading.Thread(target=_feed, args=(proc.stdin, payload), name="stdin-feeder", daemon=True).start()

        try:
            returncode = proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            _terminate_tree(proc)
            proc.wait()
            if not _join_all(readers, _DRAIN_SECONDS):
                logger.warning("Output pipes of %s still open after kill", request.binary)
            logger.debug("Killed %s after %ss", request.binary, request.timeout_seconds)
            message = f"Execution timed out after {request.timeout_seconds:g}s"
            partial_err = _decode(readers[1].snapshot())
            return ExecutionResult(
                stdout=_decode(readers[0].snapshot()),
                stderr=f"{partial_err}\n{message}" if partial_err else message,
                exit_code=TIMEOUT_EXIT_CODE,
                duration_ms=_elapsed_ms(start),
                timed_out=True,
                failure=FailureKind.TIMEOUT,
            )

        remaining = timeout - (time.perf_counter() - start)
        if not _join_all(readers, max(remaining, _DRAIN_SECONDS)):
            # Background descendants still hold the pipes after the program exited.
            _terminate_tree(proc)
            _join_all(readers, _DRAIN_SECONDS)

        return ExecutionResult(
            stdout=_decode(readers[0].snapshot()),
            stderr=_decode(readers[1].snapshot()),
            exit_code=returncode,
            duration_ms=_elapsed_ms(start),
            failure=None if returncode == 0 else FailureKind.RUNTIME_FAILURE,
        )
