"""Context variables for structured logging."""

from contextvars import ContextVar

_identity: ContextVar[str] = ContextVar("identity", default="")
_operation: ContextVar[str] = ContextVar("operation", default="")
_trace_id: ContextVar[str] = ContextVar("trace_id", default="")


def set_log_context(
    identity: str | None = None,
    operation: str | None = None,
    trace_id: str | None = None,
) -> None:
    if identity is not None:
        _identity.set(identity)
    if operation is not None:
        _operation.set(operation)
    if trace_id is not None:
        _trace_id.set(trace_id)


def get_log_context() -> dict[str, str]:
    return {
        "identity": _identity.get(),
        "operation": _operation.get(),
        "trace_id": _trace_id.get(),
    }


def clear_log_context() -> None:
    _identity.set("")
    _operation.set("")
    _trace_id.set("")


__all__ = ["set_log_context", "get_log_context", "clear_log_context"]
