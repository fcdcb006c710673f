"""Per-call timeouts for blocking calls to external model services."""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, TypeVar

from coffee_assistant.errors import ExternalServiceError

T = TypeVar("T")


def call_with_timeout(
    func: Callable[..., T],
    *args: Any,
    timeout: float | None,
    error_cls: type[ExternalServiceError],
    operation: str,
) -> T:
    """Run `func(*args)` and raise `error_cls` if it does not finish in time.

    The worker thread of a timed-out call is abandoned, not interrupted; the
    caller gets control back immediately. Exceptions raised by `func` propagate
    unchanged.
    """
    if timeout is None:
        return func(*args)

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="assistant-io")
    future = executor.submit(func, *args)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout as exc:
        raise error_cls(
            f"{operation} timed out",
            details=f"no response within {timeout:.1f}s",
        ) from exc
    finally:
        executor.shutdown(wait=False)
