"""Service registry: discovery bookkeeping and arrival/departure notification."""

from servicehub.registry.registry import (
    ARRIVAL,
    DEPARTURE,
    ServiceCallback,
    ServiceRegistry,
    Subscription,
    infer_transport,
    normalize_address,
)

__all__ = [
    "ServiceRegistry",
    "Subscription",
    "ServiceCallback",
    "infer_transport",
    "normalize_address",
    "ARRIVAL",
    "DEPARTURE",
]
