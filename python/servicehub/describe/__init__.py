"""Descriptor-driven invocation: interface descriptions to callable operations."""

from servicehub.describe.client import SpecClient, build_operations
from servicehub.describe.schema import (
    DescriptionShapeError,
    InterfaceDescription,
    parse_description,
)

__all__ = [
    "SpecClient",
    "build_operations",
    "parse_description",
    "InterfaceDescription",
    "DescriptionShapeError",
]
