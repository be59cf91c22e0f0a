"""Logging shim.

One package logger plus lightweight instrumentation decorators. The engine
never installs handlers; the host application decides where records go.
"""

from __future__ import annotations

import functools
import logging
import time
from typing import Any, Callable, Union


portfolio_logger = logging.getLogger("true_portfolio_engine")


def log_operation(name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Emit debug start/finish records around a named engine operation."""

    def deco(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            portfolio_logger.debug("[%s] start", name)
            result = fn(*args, **kwargs)
            portfolio_logger.debug("[%s] done", name)
            return result

        return wrapper

    return deco


def log_timing(
    threshold: Union[float, Callable[[], float]] = 0.0,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Warn when the wrapped call takes longer than ``threshold`` seconds.

    ``threshold`` may be a zero-argument callable, evaluated on every call so
    runtime configuration changes apply. A threshold of 0 logs every call's
    duration at debug level instead.
    """

    def deco(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed = time.perf_counter() - started
                limit = threshold() if callable(threshold) else threshold
                if limit and elapsed > limit:
                    portfolio_logger.warning(
                        "slow_operation: %s took %.3fs (threshold %.3fs)",
                        fn.__qualname__,
                        elapsed,
                        limit,
                    )
                else:
                    portfolio_logger.debug("timing: %s took %.3fs", fn.__qualname__, elapsed)

        return wrapper

    return deco


def log_portfolio_operation(_event: str, _details: dict[str, Any] | None = None, execution_time: float | None = None) -> dict[str, Any]:
    if _details:
        portfolio_logger.info("[%s] %s", _event, _details)
    else:
        portfolio_logger.info("[%s]", _event)
    return {"event": _event, "details": _details or {}, "execution_time": execution_time}
