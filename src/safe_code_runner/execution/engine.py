from __future__ import annotations

from typing import Protocol

from .types import ExecutionResult, ProcessRequest


class ProcessSupervisor(Protocol):
    def execute(self, request: ProcessRequest) -> ExecutionResult:
        """Run one subprocess stage and return its normalized result.

        Spawn failures and timeouts are encoded in the result, never raised.

        Example:
            ```python
            result = engine.execute(ProcessRequest(binary="node", args=("script.js",), cwd=workdir, timeout_seconds=10))
            ```
        """
        ...
