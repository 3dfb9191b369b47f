"""Logging utilities organised into focused modules."""

from .config import configure_logging
from .context import bind_request_context, request_id_ctx_var, reset_request_context
from .filters import RequestContextFilter
from .formatter import ECSJsonFormatter, FIELD_MAP, SERVICE_NAME

__all__ = [
    "configure_logging",
    "bind_request_context",
    "request_id_ctx_var",
    "reset_request_context",
    "RequestContextFilter",
    "ECSJsonFormatter",
    "FIELD_MAP",
    "SERVICE_NAME",
]
