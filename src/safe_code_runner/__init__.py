from .errors import (
    ContentRejectedError,
    InvalidCodeError,
    RejectedBeforeExecution,
    UnsupportedLanguageError,
)
from .execution.drivers import supported_languages
from .execution.local_engine import LocalEngine
from .execution.types import BinaryStatus, ExecutionRequest, ExecutionResult, FailureKind
from .runner import execute_code, get_binary_statuses
from .settings import RunnerSettings, load_settings

__all__ = [
    "BinaryStatus",
    "ContentRejectedError",
    "ExecutionRequest",
    "ExecutionResult",
    "FailureKind",
    "InvalidCodeError",
    "LocalEngine",
    "RejectedBeforeExecution",
    "RunnerSettings",
    "UnsupportedLanguageError",
    "execute_code",
    "get_binary_statuses",
    "load_settings",
    "supported_languages",
]
