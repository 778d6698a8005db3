from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping

from ..errors import UnsupportedLanguageError
from ..validation import ContentRule, reject_require_calls, reject_system_imports
from .binaries import TOOLCHAINS

_PUBLIC_CLASS_PATTERN = re.compile(r"public\s+class\s+([A-Za-z_$][A-Za-z0-9_$]*)")
DEFAULT_JAVA_ENTRY = "Main"
PHP_OPEN_TAG = "<?php"


@dataclass(frozen=True, slots=True)
class StageSpec:
    """One subprocess stage of a driver.

    `tool` names a toolchain from the binary resolver; `None` means the stage
    runs the compiled artifact. Arguments may use the placeholders
    `{source}`, `{artifact}`, `{workdir}` and `{entry}`.

    Example:
        ```python
        compile_c = StageSpec(tool="gcc", args=("{source}", "-o", "{artifact}"))
        ```
    """

    tool: str | None
    args: tuple[str, ...] = ()
    label: str | None = None

    @property
    def display_label(self) -> str:
        if self.label:
            return self.label
        if self.tool is None:
            return "Compiled program"
        toolchain = TOOLCHAINS.get(self.tool)
        return toolchain.label if toolchain else self.tool

    def render(self, fields: Mapping[str, str]) -> tuple[str, ...]:
        """Fill argument placeholders for one session.

        Example:
            ```python
            args = stage.render({"source": "/tmp/s/program.c", "artifact": "/tmp/s/program"})
            ```
        """
        return tuple(arg.format(**fields) for arg in self.args)


@dataclass(frozen=True, slots=True)
class LanguageDriver:
    """Static description of how one language turns source into a process.

    Example:
        ```python
        driver = get_driver("cpp")
        ```
    """

    language: str
    display_name: str
    version_label: str
    extension: str
    source_stem: str
    run: StageSpec
    compile: StageSpec | None = None
    entry_name: Callable[[str], str] | None = None
    prepare_source: Callable[[str], str] | None = None
    content_rule: ContentRule | None = None
    # JVM and V8 reserve far more address space than they use.
    memory_cap_compatible: bool = True

    def source_name(self, code: str) -> str:
        """Return the stem the source file must be written under.

        Example:
            ```python
            stem = get_driver("java").source_name("public class Hello {}")  # "Hello"
            ```
        """
        if self.entry_name is not None:
            return self.entry_name(code)
        return self.source_stem

    def render_source(self, code: str) -> str:
        if self.prepare_source is not None:
            return self.prepare_source(code)
        return code

    def tools(self) -> list[str]:
        stages = [self.compile, self.run]
        return [stage.tool for stage in stages if stage is not None and stage.tool is not None]


@dataclass(frozen=True, slots=True)
class LanguageInfo:
    """Catalogue entry describing a supported language.

    Example:
        ```python
        info = LanguageInfo("python", "Python", "3.x", ".py")
        ```
    """

    id: str
    name: str
    version: str
    extension: str


def find_public_class(code: str) -> str:
    """Return the first `public class` name in Java source, or `Main`.

    Example:
        ```python
        name = find_public_class("public class Solution { }")
        ```
    """
    match = _PUBLIC_CLASS_PATTERN.search(code)
    return match.group(1) if match else DEFAULT_JAVA_ENTRY


def ensure_php_open_tag(code: str) -> str:
    """Prepend `<?php` so bare statements run as PHP rather than echo as text.

    Example:
        ```python
        source = ensure_php_open_tag("echo 'OK';")
        ```
    """
    if code.lstrip().startswith(PHP_OPEN_TAG):
        return code
    return f"{PHP_OPEN_TAG}\n{code}"


def artifact_name(platform: str | None = None) -> str:
    return "program.exe" if (platform or sys.platform) == "win32" else "program"


_COMPILED_RUN = StageSpec(tool=None)

DRIVERS: Mapping[str, LanguageDriver] = MappingProxyType(
    {
        driver.language: driver
        for driver in (
            LanguageDriver(
                language="javascript",
                display_name="JavaScript",
                version_label="Node.js",
                extension=".js",
                source_stem="script",
                run=StageSpec(tool="node", args=("{source}",)),
                content_rule=reject_require_calls,
                memory_cap_compatible=False,
            ),
            LanguageDriver(
                language="python",
                display_name="Python",
                version_label="3.x",
                extension=".py",
                source_stem="script",
                run=StageSpec(tool="python", args=("{source}",)),
                content_rule=reject_system_imports,
            ),
            LanguageDriver(
                language="java",
                display_name="Java",
                version_label="JDK 11+",
                extension=".java",
                source_stem=DEFAULT_JAVA_ENTRY,
                compile=StageSpec(tool="javac", args=("{source}",)),
                run=StageSpec(tool="java", args=("-cp", "{workdir}", "{entry}")),
                entry_name=find_public_class,
                memory_cap_compatible=False,
            ),
            LanguageDriver(
                language="cpp",
                display_name="C++",
                version_label="GCC",
                extension=".cpp",
                source_stem="program",
                compile=StageSpec(tool="g++", args=("{source}", "-o", "{artifact}")),
                run=_COMPILED_RUN,
            ),
            LanguageDriver(
                language="c",
                display_name="C",
                version_label="GCC",
                extension=".c",
                source_stem="program",
                compile=StageSpec(tool="gcc", args=("{source}", "-o", "{artifact}")),
                run=_COMPILED_RUN,
            ),
            LanguageDriver(
                language="php",
                display_name="PHP",
                version_label="7.x+",
                extension=".php",
                source_stem="script",
                run=StageSpec(tool="php", args=("{source}",)),
                prepare_source=ensure_php_open_tag,
            ),
        )
    }
)


def normalize_language(language: str) -> str:
    return language.strip().lower()


def get_driver(language: str) -> LanguageDriver:
    """Look up the driver for a language id.

    Example:
        ```python
        driver = get_driver("Python")
        ```
    """
    key = normalize_language(language) if isinstance(language, str) else ""
    driver = DRIVERS.get(key)
    if driver is None:
        raise UnsupportedLanguageError(str(language), list(DRIVERS))
    return driver


def validate_content(code: str, language: str) -> None:
    """Apply the language's content rule, raising `ContentRejectedError` on a hit.

    Example:
        ```python
        validate_content("print('OK')", "python")
        ```
    """
    rule = get_driver(language).content_rule
    if rule is not None:
        rule(code)


def supported_languages() -> list[LanguageInfo]:
    """Describe every supported language for editors and clients.

    Example:
        ```python
        ids = [info.id for info in supported_languages()]
        ```
    """
    return [
        LanguageInfo(d.language, d.display_name, d.version_label, d.extension)
        for d in DRIVERS.values()
    ]


def toolchain_names() -> list[str]:
    """Return every toolchain the driver table depends on, in table order.

    Example:
        ```python
        names = toolchain_names()  # ["node", "python", "javac", "java", ...]
        ```
    """
    names: list[str] = []
    for driver in DRIVERS.values():
        for tool in driver.tools():
            if tool not in names:
                names.append(tool)
    return names
