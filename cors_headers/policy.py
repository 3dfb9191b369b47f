"""Immutable CORS policy snapshot resolved from a policy store."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from .config import (
    ALLOW_CREDENTIALS_KEY,
    ALLOW_HEADERS_KEY,
    ALLOW_METHODS_KEY,
    ALLOW_ORIGIN_KEY,
    CONTENT_TYPE_OPTIONS_KEY,
    EXPOSE_HEADERS_KEY,
    FRAME_OPTIONS_KEY,
    MAX_AGE_KEY,
    XSS_PROTECTION_KEY,
    MappingPolicyStore,
    PolicyStore,
)

DEFAULT_MAX_AGE = "0"
DEFAULT_FRAME_OPTIONS = "ALLOW"
DEFAULT_XSS_PROTECTION = "1 ;mode=block"


@dataclass(frozen=True)
class AnyOrigin:
    """Reflect whatever origin the client sent."""


@dataclass(frozen=True)
class OriginList:
    """Reflect the request origin only when one of its values is allowed."""

    origins: tuple[str, ...] = ()


@dataclass(frozen=True)
class FixedOrigin:
    """Always answer with the configured origin."""

    origin: str = ""


OriginPolicy = AnyOrigin | OriginList | FixedOrigin


@dataclass(frozen=True)
class EchoRequestHeaders:
    """Echo the ``Access-Control-Request-Headers`` line back to the client."""


@dataclass(frozen=True)
class HeaderList:
    headers: tuple[str, ...] = ()


HeaderPolicy = EchoRequestHeaders | HeaderList


def _text(value: Any) -> str:
    # booleans render as "1" and "" like other configuration scalars
    if isinstance(value, bool):
        return "1" if value else ""
    return str(value)


def _as_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(_text(item) for item in value)
    return (_text(value),)


def _string_or_list(value: Any) -> tuple[str, ...] | None:
    if isinstance(value, (str, list, tuple)):
        return _as_tuple(value)
    return None


def _origin_policy(value: Any) -> OriginPolicy:
    if value is True or value == "*":
        return AnyOrigin()
    if isinstance(value, (list, tuple)):
        return OriginList(tuple(_text(item) for item in value))
    if value is None or value is False:
        return FixedOrigin("")
    return FixedOrigin(_text(value))


def _header_policy(value: Any) -> HeaderPolicy:
    if value is True:
        return EchoRequestHeaders()
    return HeaderList(_as_tuple(value))


def _max_age(value: Any) -> str:
    if value is None:
        return DEFAULT_MAX_AGE
    text = _text(value)
    if not text or text == "0":
        return DEFAULT_MAX_AGE
    return text


@dataclass(frozen=True)
class CorsPolicy:
    """Snapshot of every CORS policy field, resolved once at load time.

    Polymorphic store values (flag, wildcard, string or list) are turned into
    the tagged variants above so that request-time code never inspects raw
    configuration types.
    """

    allow_origin: OriginPolicy = FixedOrigin("")
    allow_credentials: bool = False
    allow_methods: tuple[str, ...] = ()
    allow_headers: HeaderPolicy = HeaderList()
    expose_headers: tuple[str, ...] | None = None
    max_age: str = DEFAULT_MAX_AGE
    content_type_options: tuple[str, ...] | None = None
    frame_options: str = DEFAULT_FRAME_OPTIONS
    xss_protection: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        for name, value in self._header_values():
            try:
                value.encode("latin-1")
            except UnicodeEncodeError:
                raise ValueError(
                    f"CORS policy field {name} is not a valid header value: {value!r}"
                ) from None

    def _header_values(self) -> Iterator[tuple[str, str]]:
        # allow-list entries are only compared, never emitted
        if isinstance(self.allow_origin, FixedOrigin):
            yield "allow_origin", self.allow_origin.origin
        if isinstance(self.allow_headers, HeaderList):
            for header in self.allow_headers.headers:
                yield "allow_headers", header
        for name in ("allow_methods", "expose_headers", "content_type_options", "xss_protection"):
            for item in getattr(self, name) or ():
                yield name, item
        yield "max_age", self.max_age
        yield "frame_options", self.frame_options

    @classmethod
    def from_store(cls, store: PolicyStore) -> CorsPolicy:
        frame_options = store.read(FRAME_OPTIONS_KEY)
        xss_protection = store.read(XSS_PROTECTION_KEY)
        return cls(
            allow_origin=_origin_policy(store.read(ALLOW_ORIGIN_KEY)),
            allow_credentials=bool(store.read(ALLOW_CREDENTIALS_KEY)),
            allow_methods=_as_tuple(store.read(ALLOW_METHODS_KEY)),
            allow_headers=_header_policy(store.read(ALLOW_HEADERS_KEY)),
            expose_headers=_string_or_list(store.read(EXPOSE_HEADERS_KEY)),
            max_age=_max_age(store.read(MAX_AGE_KEY)),
            content_type_options=_string_or_list(store.read(CONTENT_TYPE_OPTIONS_KEY)),
            frame_options=_text(frame_options) if frame_options else DEFAULT_FRAME_OPTIONS,
            xss_protection=_as_tuple(xss_protection) if xss_protection else None,
        )

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> CorsPolicy:
        """Shortcut for ``from_store(MappingPolicyStore(mapping))``."""

        return cls.from_store(MappingPolicyStore(mapping))
