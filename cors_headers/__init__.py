"""CORS response header middleware for Starlette and FastAPI applications."""

from .config import MappingPolicyStore, PolicyStore, load_env_store
from .decorator import CorsHeaderDecorator, RequestView, compute_headers, decorate
from .middleware import CorsHeadersMiddleware
from .policy import (
    AnyOrigin,
    CorsPolicy,
    EchoRequestHeaders,
    FixedOrigin,
    HeaderList,
    OriginList,
)

__all__ = [
    "AnyOrigin",
    "CorsHeaderDecorator",
    "CorsHeadersMiddleware",
    "CorsPolicy",
    "EchoRequestHeaders",
    "FixedOrigin",
    "HeaderList",
    "MappingPolicyStore",
    "OriginList",
    "PolicyStore",
    "RequestView",
    "compute_headers",
    "decorate",
    "load_env_store",
]
