"""Plan execution with bounded parallelism and retries."""

from .executor import Executor
from .models import ActionResult, NodeStatus, RunResult, RunStatus
from .retry import call_with_retry, backoff_delay, is_retryable

__all__ = [
    "Executor",
    "ActionResult",
    "NodeStatus",
    "RunResult",
    "RunStatus",
    "call_with_retry",
    "backoff_delay",
    "is_retryable",
]
