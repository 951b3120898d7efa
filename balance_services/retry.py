"""
Bounded retry of transient infrastructure failures.

Only ``InfrastructureError`` with ``transient=True`` is retried.  Validation,
not-found and conflict errors propagate on the first attempt: the same
input against the same state produces the same outcome.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar

from balance_kernel.exceptions import InfrastructureError
from balance_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")


def run_with_retry(
    operation: Callable[[], T],
    *,
    max_attempts: int = 3,
    backoff_seconds: float = 0.1,
    operation_name: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``operation`` until it succeeds or fails non-transiently.

    The wait before attempt n+1 is ``backoff_seconds * n``.

    Raises:
        ValueError: If max_attempts < 1.
        InfrastructureError: The last transient failure once attempts run out.
        Exception: Any non-transient failure, unchanged, on first occurrence.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    attempt = 1
    while True:
        try:
            return operation()
        except InfrastructureError as exc:
            if not exc.transient or attempt >= max_attempts:
                logger.error(
                    "retry_exhausted" if exc.transient else "infrastructure_failure",
                    extra={
                        "operation": operation_name,
                        "attempt": attempt,
                        "max_attempts": max_attempts,
                        "error_code": exc.code,
                    },
                )
                raise
            logger.warning(
                "retry_scheduled",
                extra={
                    "operation": operation_name,
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "error_code": exc.code,
                },
            )
            sleep(backoff_seconds * attempt)
            attempt += 1
