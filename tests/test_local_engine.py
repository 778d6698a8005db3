import io
import os
import sys
import time
from pathlib import Path

import pytest

from safe_code_runner import LocalEngine
from safe_code_runner.execution import local_engine
from safe_code_runner.execution.local_engine import TIMEOUT_EXIT_CODE, _CappedReader
from safe_code_runner.execution.types import FailureKind, ProcessRequest


def _python(
    code: str,
    *,
    cwd: Path | None = None,
    timeout: float = 10,
    input_text: str | None = None,
    memory_limit_mb: int | None = None,
) -> ProcessRequest:
    return ProcessRequest(
        binary=sys.executable,
        args=("-c", code),
        cwd=cwd,
        timeout_seconds=timeout,
        input_text=input_text,
        memory_limit_mb=memory_limit_mb,
    )


def test_success_output_is_trimmed() -> None:
    result = LocalEngine().execute(_python("print('  OK  ')\nprint()"))
    assert result.exit_code == 0
    assert result.ok
    assert result.stdout == "OK"
    assert result.stderr == ""
    assert result.failure is None
    assert result.timed_out is False
    assert result.duration_ms > 0


def test_nonzero_exit_keeps_native_code_and_stderr() -> None:
    result = LocalEngine().execute(_python("import sys\nsys.stderr.write('boom\\n')\nsys.exit(3)"))
    assert result.exit_code == 3
    assert result.stderr == "boom"
    assert result.failure is FailureKind.RUNTIME_FAILURE


def test_input_is_written_once_and_closed() -> None:
    code = "import sys\ndata = sys.stdin.read()\nprint(data.upper())"
    result = LocalEngine().execute(_python(code, input_text="hello\nworld\n"))
    assert result.exit_code == 0
    assert result.stdout == "HELLO\nWORLD"


def test_missing_input_does_not_block_readers() -> None:
    code = "import sys\nprint(repr(sys.stdin.read()))"
    result = LocalEngine().execute(_python(code, timeout=5))
    assert result.exit_code == 0
    assert result.stdout == "''"


def test_cwd_is_pinned(tmp_path: Path) -> None:
    (tmp_path / "data.txt").write_text("inside", encoding="utf-8")
    result = LocalEngine().execute(_python("print(open('data.txt').read())", cwd=tmp_path))
    assert result.stdout == "inside"


def test_spawn_failure_is_reported_not_raised(tmp_path: Path) -> None:
    request = ProcessRequest(
        binary=str(tmp_path / "no-such-compiler"),
        args=("--version",),
        cwd=None,
        timeout_seconds=5,
    )
    result = LocalEngine().execute(request)
    assert result.exit_code == 1
    assert result.stdout == ""
    assert result.stderr
    assert result.failure is FailureKind.TOOLCHAIN_UNAVAILABLE


def test_timeout_kills_and_keeps_partial_output() -> None:
    code = "import time\nprint('partial', flush=True)\ntime.sleep(30)\nprint('never')"
    start = time.monotonic()
    result = LocalEngine().execute(_python(code, timeout=1))
    elapsed = time.monotonic() - start

    assert elapsed < 10
    assert result.timed_out is True
    assert result.exit_code == TIMEOUT_EXIT_CODE
    assert result.failure is FailureKind.TIMEOUT
    assert result.stdout == "partial"
    assert "Execution timed out after 1s" in result.stderr


@pytest.mark.skipif(os.name != "posix", reason="process groups are POSIX only")
def test_timeout_kills_grandchildren(tmp_path: Path) -> None:
    marker = tmp_path / "late.txt"
    child = f"import time; time.sleep(3); open({str(marker)!r}, 'w').write('x')"
    code = f"import subprocess, sys, time\nsubprocess.Popen([sys.executable, '-c', {child!r}])\ntime.sleep(30)\n"
    result = LocalEngine().execute(_python(code, timeout=1))
    assert result.timed_out is True
    time.sleep(4)
    assert not marker.exists()


def test_output_is_capped_per_stream() -> None:
    result = LocalEngine(max_output_kb=1).execute(_python("print('x' * 5000)"))
    assert result.exit_code == 0
    assert len(result.stdout) == 1024


def test_invalid_utf8_is_replaced() -> None:
    code = "import sys\nsys.stdout.buffer.write(b'ok \\xff')"
    result = LocalEngine().execute(_python(code))
    assert result.stdout == "ok \ufffd"


def test_engine_requires_positive_output_cap() -> None:
    with pytest.raises(ValueError, match="max_output_kb"):
        LocalEngine(max_output_kb=0)


@pytest.mark.skipif(os.name != "posix", reason="RLIMIT_AS is POSIX only")
def test_memory_limit_applies_when_requested() -> None:
    code = "x = bytearray(1024 * 1024 * 1024)\nprint('allocated')"
    limited = LocalEngine().execute(_python(code, memory_limit_mb=256))
    assert limited.exit_code != 0
    assert "MemoryError" in limited.stderr


def test_reader_keeps_only_the_cap_and_drains_the_rest() -> None:
    reader = _CappedReader(io.BytesIO(b"x" * 300_000), limit=1024)
    reader.join(5)
    assert not reader.alive
    assert reader.snapshot() == b"x" * 1024
    assert reader.discarded == 300_000 - 1024


def test_output_past_the_cap_does_not_block_the_child() -> None:
    code = "import sys\nsys.stdout.write('x' * 20_000_000)\nsys.stdout.flush()\nsys.stderr.write('done')"
    result = LocalEngine(max_output_kb=1).execute(_python(code, timeout=20))
    assert result.timed_out is False
    assert result.exit_code == 0
    assert len(result.stdout) == 1024
    assert result.stderr == "done"


def test_endless_output_is_capped_on_timeout() -> None:
    code = "import sys\nwhile True:\n    sys.stdout.write('x' * 65536)"
    result = LocalEngine(max_output_kb=4).execute(_python(code, timeout=1))
    assert result.timed_out is True
    assert result.stdout == "x" * 4096


def test_unencodable_input_is_replaced() -> None:
    code = "import sys\nprint(sys.stdin.buffer.read())"
    result = LocalEngine().execute(_python(code, input_text="a\ud800b"))
    assert result.exit_code == 0
    assert result.stdout == "b'a?b'"


@pytest.mark.skipif(os.name != "posix", reason="process groups are POSIX only")
def test_error_after_spawn_kills_the_child(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    marker = tmp_path / "late.txt"
    code = f"import time\ntime.sleep(2)\nopen({str(marker)!r}, 'w').write('x')"

    def _broken_reader(stream, limit):
        raise RuntimeError("reader failed")

    monkeypatch.setattr(local_engine, "_CappedReader", _broken_reader)
    with pytest.raises(RuntimeError, match="reader failed"):
        LocalEngine().execute(_python(code, timeout=10))
    time.sleep(3)
    assert not marker.exists()
