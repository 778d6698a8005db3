from __future__ import annotations

import contextlib
import enum
import logging
import shutil
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from .execution.types import ExecutionResult, FailureKind

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    CREATED = "created"
    VALIDATING = "validating"
    REJECTED = "rejected"
    VALIDATED = "validated"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    COMPILE_FAILED = "compile_failed"
    RUNTIME_FAILED = "runtime_failed"
    CRASHED = "crashed"
    CLEANED = "cleaned"


_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.CREATED: frozenset({SessionState.VALIDATING}),
    SessionState.VALIDATING: frozenset({SessionState.REJECTED, SessionState.VALIDATED}),
    SessionState.VALIDATED: frozenset({SessionState.RUNNING}),
    SessionState.RUNNING: frozenset(
        {
            SessionState.SUCCEEDED,
            SessionState.COMPILE_FAILED,
            SessionState.RUNTIME_FAILED,
            SessionState.CRASHED,
        }
    ),
    SessionState.SUCCEEDED: frozenset({SessionState.CLEANED}),
    SessionState.COMPILE_FAILED: frozenset({SessionState.CLEANED}),
    SessionState.RUNTIME_FAILED: frozenset({SessionState.CLEANED}),
    SessionState.CRASHED: frozenset({SessionState.CLEANED}),
    SessionState.REJECTED: frozenset(),
    SessionState.CLEANED: frozenset(),
}


def outcome_state(result: ExecutionResult) -> SessionState:
    """Map a pipeline result onto the terminal running state.

    Example:
        ```python
        state = outcome_state(ExecutionResult("OK", "", 0, 3.0))  # SUCCEEDED
        ```
    """
    if result.exit_code == 0:
        return SessionState.SUCCEEDED
    if result.failure is FailureKind.COMPILE_FAILURE:
        return SessionState.COMPILE_FAILED
    if result.failure is FailureKind.INTERNAL_ERROR:
        return SessionState.CRASHED
    return SessionState.RUNTIME_FAILED


@dataclass(slots=True)
class ExecutionSession:
    """One disposable working directory and its lifecycle state.

    The directory is only created by `workspace()` and is removed when that
    context exits, whatever happened inside it.

    Example:
        ```python
        session = ExecutionSession.new("python", Path("/tmp/safe-code-runner"))
        ```
    """

    id: str
    work_dir: Path
    language: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state: SessionState = SessionState.CREATED

    @classmethod
    def new(cls, language: str, root: Path) -> "ExecutionSession":
        session_id = uuid.uuid4().hex
        return cls(id=session_id, work_dir=root / session_id, language=language)

    def transition(self, target: SessionState) -> None:
        """Move to `target`, refusing transitions the lifecycle does not allow.

        Example:
            ```python
            session.transition(SessionState.VALIDATING)
            ```
        """
        if target not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Session {self.id}: cannot go from {self.state.value} to {target.value}")
        logger.debug("Session %s: %s -> %s", self.id, self.state.value, target.value)
        self.state = target

    @contextlib.contextmanager
    def workspace(self) -> Iterator[Path]:
        """Create the session directory for the duration of the block.

        Example:
            ```python
            with session.workspace() as workdir:
                (workdir / "script.py").write_text("print('OK')")
            ```
        """
        self.transition(SessionState.RUNNING)
        try:
            self.work_dir.parent.mkdir(parents=True, exist_ok=True)
            self.work_dir.mkdir()
            yield self.work_dir
        finally:
            if self.state is SessionState.RUNNING:
                # Left by an exception that escaped the block.
                self.transition(SessionState.CRASHED)
            self.cleanup()

    def cleanup(self) -> None:
        """Remove the session directory; failures are logged, never raised.

        Example:
            ```python
            session.cleanup()
            ```
        """
        try:
            shutil.rmtree(self.work_dir)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Cleanup of session %s at %s failed: %s", self.id, self.work_dir, exc)
        self.transition(SessionState.CLEANED)
