"""FastAPI application wiring the CORS header middleware."""

from __future__ import annotations

import logging

from fastapi import FastAPI, status
from fastapi.responses import ORJSONResponse, Response

from .config import PolicyStore
from .logging import configure_logging
from .middleware import CorsHeadersMiddleware
from .policy import CorsPolicy

logger = logging.getLogger("cors_headers.main")


def create_app(
    policy: CorsPolicy | None = None, store: PolicyStore | None = None
) -> FastAPI:
    """Build an application whose responses pass through the CORS decorator."""

    configure_logging()

    app = FastAPI(title="CORS Headers", default_response_class=ORJSONResponse)
    app.add_middleware(CorsHeadersMiddleware, policy=policy, store=store)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    # preflights need a route to reach the middleware; the body is left empty
    @app.options("/{path:path}", include_in_schema=False)
    async def preflight(path: str) -> Response:
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    logger.debug("Application created", extra={"event_action": "app_created"})
    return app


app = create_app()
