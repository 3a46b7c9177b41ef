"""Context propagation for logging.

Usage:
    from servicehub.logging import service_scope

    with service_scope(service):
        # every structlog line carries service_id and address
        logger.info("describing")
"""

from contextlib import contextmanager
from typing import Any, Iterator

import structlog

from servicehub.protocols import Service
from servicehub.utils.strings import redact_url


@contextmanager
def service_scope(service: Service, **extra_context: Any) -> Iterator[None]:
    """Bind a Service's identity to all log lines within the scope.

    Uses structlog contextvars, so the binding follows the current asyncio
    task and does not leak into sibling tasks.
    """
    tokens = structlog.contextvars.bind_contextvars(
        service_id=service.id,
        address=redact_url(service.address),
        transport=service.transport.value,
        **extra_context,
    )
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


__all__ = ["service_scope"]
