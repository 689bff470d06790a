"""Runtime: retry, cancellation, the invoke/shape pipeline and logging."""

from __future__ import annotations

__all__ = [
    # Cancellation
    "CancelScope", "checkpoint", "current_scope",
    # Retry
    "RetryPolicy", "NO_RETRY", "execute_with_retry",
    # Pipeline
    "invoke", "pick", "shape",
    # Observability
    "get_logger", "configure_logging", "configure_from_settings", "log_context",
]


def __getattr__(name: str):
    """Lazy imports to avoid circular dependencies."""
    if name in ("CancelScope", "checkpoint", "current_scope"):
        from . import cancel
        return getattr(cancel, name)

    if name in ("RetryPolicy", "NO_RETRY", "execute_with_retry"):
        from . import retry
        return getattr(retry, name)

    if name in ("invoke", "pick", "shape"):
        from . import pipeline
        return getattr(pipeline, name)

    if name in ("get_logger", "configure_logging", "configure_from_settings", "log_context"):
        from . import observability
        return getattr(observability, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
