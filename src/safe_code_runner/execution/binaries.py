from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping


@dataclass(frozen=True, slots=True)
class Toolchain:
    """Logical toolchain binary and the environment variables that override it.

    Example:
        ```python
        gcc = Toolchain("gcc", "C compiler", env_vars=("GCC_PATH",))
        ```
    """

    name: str
    label: str
    env_vars: tuple[str, ...] = ()
    command: str | None = None
    java_home_tool: bool = False

    @property
    def version_flag(self) -> str:
        return "-version" if self.java_home_tool else "--version"

    @property
    def default_command(self) -> str:
        return self.command or self.name


TOOLCHAINS: dict[str, Toolchain] = {
    tool.name: tool
    for tool in (
        Toolchain("node", "JavaScript runtime", env_vars=("NODE_BINARY",)),
        Toolchain("python", "Python interpreter", env_vars=("PYTHON_BINARY",), command="python3"),
        Toolchain("gcc", "C compiler", env_vars=("GCC_PATH",)),
        Toolchain("g++", "C++ compiler", env_vars=("GPP_PATH", "GXX_PATH")),
        Toolchain("javac", "Java compiler", env_vars=("JAVAC_PATH",), java_home_tool=True),
        Toolchain("java", "Java runtime", env_vars=("JAVA_PATH",), java_home_tool=True),
        Toolchain("php", "PHP interpreter", env_vars=("PHP_PATH",)),
    )
}


def ensure_windows_exe(candidate: str, *, platform: str | None = None) -> str:
    """Prefer `<candidate>.exe` on Windows when the bare path has no suffix.

    Example:
        ```python
        path = ensure_windows_exe(r"C:\\mingw\\bin\\gcc")
        ```
    """
    if (platform or sys.platform) != "win32":
        return candidate
    if Path(candidate).suffix:
        return candidate
    exe_candidate = f"{candidate}.exe"
    if Path(exe_candidate).exists():
        return exe_candidate
    return candidate


def resolve_binary(
    name: str,
    *,
    env: Mapping[str, str] | None = None,
    platform: str | None = None,
) -> str:
    """Map a logical tool name to the executable to spawn.

    Overrides are read on every call. Nothing is checked for existence here;
    a bad path surfaces as a spawn failure later.

    Example:
        ```python
        gxx = resolve_binary("g++", env={"GXX_PATH": "/opt/gcc/bin/g++"})
        ```
    """
    tool = TOOLCHAINS.get(name)
    if tool is None:
        return name
    environ = os.environ if env is None else env
    for var in tool.env_vars:
        override = environ.get(var, "").strip()
        if override:
            return ensure_windows_exe(override, platform=platform)
    if tool.java_home_tool:
        java_home = environ.get("JAVA_HOME", "").strip()
        if java_home:
            return ensure_windows_exe(str(Path(java_home) / "bin" / tool.name), platform=platform)
    return tool.default_command


def override_hint(name: str) -> str:
    """Return the install/override hint shown for an unavailable tool.

    Example:
        ```python
        hint = override_hint("gcc")
        ```
    """
    tool = TOOLCHAINS.get(name)
    if tool is None:
        return "Ensure the tool is installed and on PATH"
    variables = list(tool.env_vars)
    if tool.java_home_tool:
        variables.append("JAVA_HOME")
    return (
        f"Ensure the {tool.label} ({tool.default_command}) is installed and on PATH, "
        f"or set {' / '.join(variables)}"
    )
