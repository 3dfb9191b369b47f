import os

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from cors_headers.config import MappingPolicyStore
from cors_headers.middleware import CorsHeadersMiddleware
from cors_headers.policy import CorsPolicy

# Developer shells often export CORS_* overrides for manual testing; clear them
# so every test starts from the documented defaults.
for _name in list(os.environ):
    if _name.startswith("CORS_"):
        os.environ.pop(_name)
os.environ.setdefault("LOG_JSON", "false")


ALLOWED_ORIGIN = "http://allowed.example"


def make_app(
    policy: CorsPolicy | None = None, store: MappingPolicyStore | None = None
) -> FastAPI:
    app = FastAPI()
    app.add_middleware(CorsHeadersMiddleware, policy=policy, store=store)

    @app.get("/items")
    async def items():  # pragma: no cover - exercised via TestClient
        return {"items": []}

    @app.get("/cached")
    async def cached():  # pragma: no cover - exercised via TestClient
        return JSONResponse({"ok": True}, headers={"X-Frame-Options": "DENY"})

    @app.get("/missing")
    async def missing():  # pragma: no cover - exercised via TestClient
        raise HTTPException(status_code=404, detail="not found")

    @app.get("/boom")
    async def boom():  # pragma: no cover - exercised via TestClient
        raise RuntimeError("explode")

    @app.options("/items")
    async def items_preflight():  # pragma: no cover - exercised via TestClient
        return {}

    return app


@pytest.fixture
def allow_list_policy() -> CorsPolicy:
    return CorsPolicy.from_mapping(
        {
            "Cors": {
                "AllowOrigin": [ALLOWED_ORIGIN, "http://other.example"],
                "AllowCredentials": True,
                "AllowMethods": ["GET", "POST", "OPTIONS"],
                "AllowHeaders": ["Authorization", "Content-Type"],
                "ExposeHeaders": ["X-Request-ID"],
                "MaxAge": 600,
            }
        }
    )


@pytest.fixture
def client(allow_list_policy) -> TestClient:
    return TestClient(make_app(allow_list_policy))
