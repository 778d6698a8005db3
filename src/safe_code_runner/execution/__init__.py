from .engine import ProcessSupervisor
from .types import BinaryStatus, ExecutionRequest, ExecutionResult, FailureKind, ProcessRequest

__all__ = [
    "BinaryStatus",
    "ExecutionRequest",
    "ExecutionResult",
    "FailureKind",
    "ProcessRequest",
    "ProcessSupervisor",
]
