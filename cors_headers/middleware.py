"""Middleware that decorates responses with CORS headers."""

from __future__ import annotations

import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from .config import PolicyStore, load_env_store
from .decorator import RequestView, apply_headers, compute_headers
from .logging import bind_request_context, reset_request_context
from .policy import CorsPolicy, OriginList

logger = logging.getLogger("cors_headers.middleware")


class CorsHeadersMiddleware(BaseHTTPMiddleware):
    """Apply the configured CORS policy to every response carrying an ``Origin``.

    The policy is resolved once when the middleware is built: an explicit
    ``policy`` wins, then ``store``, then the ``CORS_*`` environment.
    Exceptions raised further down the stack propagate without decoration.
    """

    def __init__(
        self,
        app: ASGIApp,
        policy: CorsPolicy | None = None,
        store: PolicyStore | None = None,
    ) -> None:
        super().__init__(app)
        if policy is None:
            policy = CorsPolicy.from_store(store if store is not None else load_env_store())
        self.policy = policy

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)

        view = RequestView.from_request(request)
        if not view.has_origin:
            return response

        token = bind_request_context(request.headers.get("X-Request-ID"))
        try:
            headers = compute_headers(view, self.policy)
            decorated = apply_headers(response, headers)
            self._log(request, view, len(headers))
        finally:
            reset_request_context(token)
        return decorated

    def _log(self, request: Request, view: RequestView, header_count: int) -> None:
        extra = {
            "event_dataset": "cors-headers.middleware",
            "http_request_method": request.method,
            "url_path": request.url.path,
            "cors_origin": list(view.origin),
            "cors_preflight": view.is_preflight,
            "cors_header_count": header_count,
        }
        allow_origin = self.policy.allow_origin
        if isinstance(allow_origin, OriginList) and not any(
            origin in allow_origin.origins for origin in view.origin
        ):
            logger.info(
                "Origin not in CORS allow-list",
                extra={**extra, "event_action": "cors_origin_rejected"},
            )
            return
        logger.debug(
            "CORS headers applied",
            extra={**extra, "event_action": "cors_headers_applied"},
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(policy={self.policy!r})"
