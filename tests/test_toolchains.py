"""End-to-end runs against whatever compilers and interpreters the host has."""

import shutil
from pathlib import Path

import pytest

from safe_code_runner import FailureKind, RunnerSettings, execute_code

pytestmark = pytest.mark.toolchain


def _requires(*tools: str) -> pytest.MarkDecorator:
    missing = [tool for tool in tools if shutil.which(tool) is None]
    return pytest.mark.skipif(bool(missing), reason=f"missing toolchain: {', '.join(missing)}")


HELLO = {
    "javascript": "console.log('OK');",
    "python": "print('OK')",
    "java": 'public class Main { public static void main(String[] a) { System.out.println("OK"); } }',
    "cpp": '#include <iostream>\nint main() { std::cout << "OK" << std::endl; return 0; }',
    "c": '#include <stdio.h>\nint main(void) { printf("OK\\n"); return 0; }',
    "php": "echo 'OK';",
}

TOOLS = {
    "javascript": ("node",),
    "python": ("python3",),
    "java": ("javac", "java"),
    "cpp": ("g++",),
    "c": ("gcc",),
    "php": ("php",),
}


@pytest.mark.parametrize(
    "language",
    [pytest.param(language, marks=_requires(*TOOLS[language])) for language in HELLO],
)
def test_prints_literal(language: str, settings: RunnerSettings, sessions_root: Path) -> None:
    result = execute_code(HELLO[language], language, settings=settings)
    assert result.exit_code == 0, result.stderr
    assert result.stdout == "OK"
    assert result.failure is None
    assert list(sessions_root.iterdir()) == []


@_requires("node")
def test_node_reads_stdin(settings: RunnerSettings) -> None:
    code = "process.stdin.on('data', d => process.stdout.write(String(d).trim()));"
    result = execute_code(code, "javascript", "hello\n", settings=settings)
    assert result.stdout == "hello"


@_requires("gcc")
def test_c_reads_stdin(settings: RunnerSettings) -> None:
    code = '#include <stdio.h>\nint main(void) { int a, b; scanf("%d %d", &a, &b); printf("%d\\n", a + b); }'
    result = execute_code(code, "c", "3 4\n", settings=settings)
    assert result.stdout == "7"


@_requires("gcc")
def test_c_syntax_error(settings: RunnerSettings, sessions_root: Path) -> None:
    result = execute_code("int main( {", "c", settings=settings)
    assert result.exit_code != 0
    assert result.stdout == ""
    assert result.stderr.startswith("Compilation failed:")
    assert result.failure is FailureKind.COMPILE_FAILURE
    assert list(sessions_root.iterdir()) == []


@_requires("g++")
def test_cpp_syntax_error(settings: RunnerSettings) -> None:
    result = execute_code("int main() { return }", "cpp", settings=settings)
    assert result.failure is FailureKind.COMPILE_FAILURE
    assert "Compilation failed:" in result.stderr


@_requires("gcc")
def test_c_infinite_loop_times_out(sessions_root: Path) -> None:
    settings = RunnerSettings(timeout_seconds=1, temp_dir=str(sessions_root))
    result = execute_code("int main(void) { for (;;) {} }", "c", settings=settings)
    assert result.timed_out is True
    assert result.failure is FailureKind.TIMEOUT
    assert list(sessions_root.iterdir()) == []


@_requires("javac", "java")
def test_java_public_class_name_is_used(settings: RunnerSettings) -> None:
    code = 'public class Solution { public static void main(String[] a) { System.out.println("OK"); } }'
    result = execute_code(code, "java", settings=settings)
    assert result.stdout == "OK"


@_requires("php")
def test_php_with_open_tag(settings: RunnerSettings) -> None:
    result = execute_code("<?php\necho 'OK';", "php", settings=settings)
    assert result.stdout == "OK"
