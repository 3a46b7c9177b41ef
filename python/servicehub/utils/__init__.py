"""Small helpers shared across servicehub."""

from servicehub.utils.http import client_scope, decode_body
from servicehub.utils.strings import redact_url, truncate_string

__all__ = ["client_scope", "decode_body", "redact_url", "truncate_string"]
