"""Logging filters enriching records with request context."""

from __future__ import annotations

import logging

from .context import request_id_ctx_var


class RequestContextFilter(logging.Filter):
    """Attach the current request id to every record that lacks one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_ctx_var.get()
        return True
