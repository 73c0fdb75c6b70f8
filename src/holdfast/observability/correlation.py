"""Correlation ID propagation for requests and background jobs."""

import uuid
from contextvars import ContextVar, Token

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

CORRELATION_ID_HEADER = "X-Correlation-ID"


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    """Return the correlation ID bound to the current context ("" if none)."""
    return correlation_id_var.get()


def set_correlation_id(cid: str) -> Token[str]:
    return correlation_id_var.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    correlation_id_var.reset(token)


def new_job_correlation_id(job_name: str) -> Token[str]:
    """Bind a fresh correlation ID for one scheduled job run.

    Scheduler threads have no inbound request, so each tick gets its own ID
    prefixed with the job name to make log lines greppable.
    """
    return set_correlation_id(f"{job_name}:{generate_correlation_id()}")
