"""Best-effort textual filters applied to submitted code.

These checks match substrings and lines; they do not parse the code. They
stop naive attempts only. Dynamically built imports and similar tricks pass
straight through, so they must never be treated as an isolation boundary.
"""

from __future__ import annotations

from typing import Callable

from .errors import ContentRejectedError

ContentRule = Callable[[str], None]

ALLOW_REQUIRE_MARKER = "// @allow-require"
BLOCKED_PYTHON_MODULES = ("os", "subprocess", "sys", "socket", "urllib")


def reject_require_calls(code: str) -> None:
    """Refuse `require(` unless the opt-in marker appears in the source.

    Example:
        ```python
        reject_require_calls("const fs = require('fs'); // @allow-require")
        ```
    """
    if "require(" in code and ALLOW_REQUIRE_MARKER not in code:
        raise ContentRejectedError("require() is not allowed for security reasons")


def reject_system_imports(code: str) -> None:
    """Refuse any line importing one of the blocked system-access modules.

    Example:
        ```python
        reject_system_imports("import math\\nprint(math.pi)")
        ```
    """
    for line in code.split("\n"):
        for module in BLOCKED_PYTHON_MODULES:
            if f"import {module}" in line or f"from {module}" in line:
                raise ContentRejectedError(
                    f"Import '{module}' is not allowed for security reasons"
                )
