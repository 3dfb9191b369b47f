"""Header-decision logic for CORS responses.

Everything in this module is a pure function of a :class:`RequestView` and a
:class:`~cors_headers.policy.CorsPolicy`. Responses are never modified in
place: :func:`decorate` returns a copy carrying a fresh header list.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TypeVar

from starlette.requests import Request
from starlette.responses import Response

from .config import PolicyStore
from .policy import (
    DEFAULT_XSS_PROTECTION,
    AnyOrigin,
    CorsPolicy,
    EchoRequestHeaders,
    OriginList,
)

ALLOW_ORIGIN = "Access-Control-Allow-Origin"
ALLOW_CREDENTIALS = "Access-Control-Allow-Credentials"
MAX_AGE = "Access-Control-Max-Age"
CONTENT_TYPE_OPTIONS = "X-Content-Type-Options"
FRAME_OPTIONS = "X-Frame-Options"
XSS_PROTECTION = "X-XSS-Protection"
EXPOSE_HEADERS = "Access-Control-Expose-Headers"
ALLOW_HEADERS = "Access-Control-Allow-Headers"
ALLOW_METHODS = "Access-Control-Allow-Methods"

ResponseT = TypeVar("ResponseT", bound=Response)


@dataclass(frozen=True)
class RequestView:
    """The parts of an inbound request the CORS decision depends on."""

    origin: tuple[str, ...] = ()
    method: str = "GET"
    request_headers: str = ""

    @classmethod
    def from_request(cls, request: Request) -> RequestView:
        headers = request.headers
        origins = tuple(value for value in headers.getlist("origin") if value)
        return cls(
            origin=origins,
            method=request.method,
            request_headers=",".join(headers.getlist("access-control-request-headers")),
        )

    @property
    def has_origin(self) -> bool:
        return bool(self.origin)

    @property
    def is_preflight(self) -> bool:
        return self.method.upper() == "OPTIONS"


def _join(values: Iterable[str]) -> str:
    return ", ".join(values)


def resolve_allow_origin(request: RequestView, policy: CorsPolicy) -> tuple[str, ...]:
    """Return the ``Access-Control-Allow-Origin`` value(s) for ``request``.

    Wildcard and ``True`` policies reflect the request origin instead of
    emitting ``*`` so they stay usable with credentials. An allow-list that
    matches none of the request origins yields a single empty value.
    """

    allow_origin = policy.allow_origin
    if isinstance(allow_origin, AnyOrigin):
        return request.origin
    if isinstance(allow_origin, OriginList):
        if any(origin in allow_origin.origins for origin in request.origin):
            return request.origin
        return ("",)
    return (allow_origin.origin,)


def resolve_allow_credentials(policy: CorsPolicy) -> str:
    return "true" if policy.allow_credentials else "false"


def resolve_max_age(policy: CorsPolicy) -> str:
    return policy.max_age


def resolve_allow_methods(policy: CorsPolicy) -> str:
    return _join(policy.allow_methods)


def resolve_allow_headers(request: RequestView, policy: CorsPolicy) -> str:
    if isinstance(policy.allow_headers, EchoRequestHeaders):
        return request.request_headers
    return _join(policy.allow_headers.headers)


def resolve_expose_headers(policy: CorsPolicy) -> str:
    if policy.expose_headers is None:
        return ""
    return _join(policy.expose_headers)


def resolve_content_type_options(policy: CorsPolicy) -> str:
    if policy.content_type_options is None:
        return ""
    return _join(policy.content_type_options)


def resolve_frame_options(policy: CorsPolicy) -> str:
    return policy.frame_options


def resolve_xss_protection(policy: CorsPolicy) -> str:
    if policy.xss_protection is None:
        return DEFAULT_XSS_PROTECTION
    return _join(policy.xss_protection)


def compute_headers(request: RequestView, policy: CorsPolicy) -> list[tuple[str, str]]:
    """Return the ordered ``(name, value)`` header pairs to add for ``request``."""

    if not request.has_origin:
        return []

    headers = [(ALLOW_ORIGIN, value) for value in resolve_allow_origin(request, policy)]
    headers.extend(
        [
            (ALLOW_CREDENTIALS, resolve_allow_credentials(policy)),
            (MAX_AGE, resolve_max_age(policy)),
            (CONTENT_TYPE_OPTIONS, resolve_content_type_options(policy)),
            (FRAME_OPTIONS, resolve_frame_options(policy)),
            (XSS_PROTECTION, resolve_xss_protection(policy)),
        ]
    )
    if request.is_preflight:
        headers.extend(
            [
                (EXPOSE_HEADERS, resolve_expose_headers(policy)),
                (ALLOW_HEADERS, resolve_allow_headers(request, policy)),
                (ALLOW_METHODS, resolve_allow_methods(policy)),
            ]
        )
    return headers


def with_headers(
    raw_headers: list[tuple[bytes, bytes]], headers: list[tuple[str, str]]
) -> list[tuple[bytes, bytes]]:
    """Return a new raw header list with ``headers`` replacing same-named lines."""

    replaced = {name.lower().encode("latin-1") for name, _ in headers}
    updated = [(name, value) for name, value in raw_headers if name.lower() not in replaced]
    updated.extend(
        (name.lower().encode("latin-1"), value.encode("latin-1")) for name, value in headers
    )
    return updated


def decorate(request: RequestView, response: ResponseT, policy: CorsPolicy) -> ResponseT:
    """Return ``response`` with the CORS headers for ``request`` applied.

    Requests without an ``Origin`` get the very same response object back.
    """

    headers = compute_headers(request, policy)
    if not headers:
        return response

    return apply_headers(response, headers)


def apply_headers(response: ResponseT, headers: list[tuple[str, str]]) -> ResponseT:
    """Return a copy of ``response`` carrying ``headers``; the original is left as is."""

    decorated = copy.copy(response)
    # Starlette caches a MutableHeaders view bound to the original raw list.
    vars(decorated).pop("_headers", None)
    decorated.raw_headers = with_headers(response.raw_headers, headers)
    return decorated


class CorsHeaderDecorator:
    """Callable holding an injected policy, applying :func:`decorate`."""

    def __init__(self, policy: CorsPolicy | PolicyStore) -> None:
        if not isinstance(policy, CorsPolicy):
            policy = CorsPolicy.from_store(policy)
        self.policy = policy

    def __call__(self, request: RequestView, response: ResponseT) -> ResponseT:
        return decorate(request, response, self.policy)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(policy={self.policy!r})"
