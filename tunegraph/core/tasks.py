"""
Cooperative progress reporting and cancellation for long-running operations.

Long loops call ``context.checkpoint(fraction, message)`` which forwards
progress to an optional callback and raises OperationCancelledError once
the context's token has been cancelled.
"""

import threading
from typing import Callable, Optional

from tunegraph.utils.errors import OperationCancelledError

ProgressCallback = Callable[[float, str], None]


class CancellationToken:
    """Thread-safe cancellation flag shared between a caller and a task."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def reset(self) -> None:
        self._event.clear()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class TaskContext:
    """
    Progress callback plus cancellation token handed to long operations.

    Example:
        token = CancellationToken()
        context = TaskContext(lambda f, msg: print(f"{f:.0%} {msg}"), token)
        estimator.estimate(buffer, context=context)
    """

    def __init__(
        self,
        progress_callback: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None,
        operation: Optional[str] = None
    ):
        self.progress_callback = progress_callback
        self.token = token or CancellationToken()
        self.operation = operation

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def cancel(self) -> None:
        self.token.cancel()

    def checkpoint(self, fraction: Optional[float] = None, message: str = "") -> None:
        """
        Report progress and honour cancellation.

        Raises:
            OperationCancelledError: If the token has been cancelled
        """
        if self.token.cancelled:
            raise OperationCancelledError(operation=self.operation)

        if fraction is not None and self.progress_callback:
            self.progress_callback(min(1.0, max(0.0, float(fraction))), message)

    def scoped(self, start: float, end: float, operation: Optional[str] = None) -> "TaskContext":
        """
        Child context mapping [0, 1] progress onto [start, end] of this one.

        The child shares this context's cancellation token.
        """
        parent = self

        def forward(fraction: float, message: str) -> None:
            if parent.progress_callback:
                parent.progress_callback(start + (end - start) * fraction, message)

        return TaskContext(forward, self.token, operation or self.operation)


def ensure_context(context: Optional[TaskContext]) -> TaskContext:
    """Return the given context or a no-op one."""
    return context if context is not None else TaskContext()
