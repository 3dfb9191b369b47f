"""Read-only policy stores and environment-driven configuration loading."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any, Final, Protocol

ALLOW_ORIGIN_KEY: Final[str] = "Cors.AllowOrigin"
ALLOW_CREDENTIALS_KEY: Final[str] = "Cors.AllowCredentials"
ALLOW_METHODS_KEY: Final[str] = "Cors.AllowMethods"
ALLOW_HEADERS_KEY: Final[str] = "Cors.AllowHeaders"
EXPOSE_HEADERS_KEY: Final[str] = "Cors.ExposeHeaders"
MAX_AGE_KEY: Final[str] = "Cors.MaxAge"
CONTENT_TYPE_OPTIONS_KEY: Final[str] = "Cors.ContentTypeOptions"
FRAME_OPTIONS_KEY: Final[str] = "Cors.FrameOptions"
XSS_PROTECTION_KEY: Final[str] = "Cors.XssProtection"

CONFIG_KEYS: Final[tuple[str, ...]] = (
    ALLOW_ORIGIN_KEY,
    ALLOW_CREDENTIALS_KEY,
    ALLOW_METHODS_KEY,
    ALLOW_HEADERS_KEY,
    EXPOSE_HEADERS_KEY,
    MAX_AGE_KEY,
    CONTENT_TYPE_OPTIONS_KEY,
    FRAME_OPTIONS_KEY,
    XSS_PROTECTION_KEY,
)

_TRUTHY = {"1", "true", "t", "yes", "y", "on"}


class PolicyStore(Protocol):
    """Key-value source queried for CORS policy fields."""

    def read(self, key: str) -> Any:
        """Return the value stored under a dotted ``key`` or ``None``."""


class MappingPolicyStore:
    """Policy store backed by a (possibly nested) mapping.

    ``read("Cors.MaxAge")`` first looks for a literal ``"Cors.MaxAge"`` entry and
    then walks ``mapping["Cors"]["MaxAge"]``.
    """

    def __init__(self, mapping: Mapping[str, Any] | None = None) -> None:
        self._mapping: Mapping[str, Any] = mapping or {}

    def read(self, key: str) -> Any:
        if key in self._mapping:
            return self._mapping[key]

        node: Any = self._mapping
        for part in key.split("."):
            if not isinstance(node, Mapping) or part not in node:
                return None
            node = node[part]
        return node

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({dict(self._mapping)!r})"


def _get_env(environ: Mapping[str, str], name: str) -> str | None:
    value = environ.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _split_list(value: str) -> str | list[str]:
    # A single value stays a string so that one configured origin is a fixed origin.
    if "," not in value:
        return value
    return [item.strip() for item in value.split(",") if item.strip()]


def _flag_or_list(value: str) -> bool | str | list[str]:
    if value.lower() == "true":
        return True
    return _split_list(value)


def load_env_store(environ: Mapping[str, str] | None = None) -> MappingPolicyStore:
    """Build a policy store from ``CORS_*`` environment variables.

    Unset or blank variables leave the matching key absent so the policy defaults
    apply.
    """

    if environ is None:
        environ = os.environ

    values: dict[str, Any] = {}

    allow_origin = _get_env(environ, "CORS_ALLOW_ORIGIN")
    if allow_origin is not None:
        values["AllowOrigin"] = _flag_or_list(allow_origin)

    credentials = _get_env(environ, "CORS_ALLOW_CREDENTIALS")
    if credentials is not None:
        values["AllowCredentials"] = credentials.lower() in _TRUTHY

    methods = _get_env(environ, "CORS_ALLOW_METHODS")
    if methods is not None:
        values["AllowMethods"] = _split_list(methods)

    allow_headers = _get_env(environ, "CORS_ALLOW_HEADERS")
    if allow_headers is not None:
        values["AllowHeaders"] = _flag_or_list(allow_headers)

    expose_headers = _get_env(environ, "CORS_EXPOSE_HEADERS")
    if expose_headers is not None:
        values["ExposeHeaders"] = _split_list(expose_headers)

    max_age = _get_env(environ, "CORS_MAX_AGE")
    if max_age is not None:
        try:
            values["MaxAge"] = int(max_age)
        except ValueError:
            raise RuntimeError(f"CORS_MAX_AGE must be an integer, got {max_age!r}") from None

    content_type_options = _get_env(environ, "CORS_CONTENT_TYPE_OPTIONS")
    if content_type_options is not None:
        values["ContentTypeOptions"] = _split_list(content_type_options)

    frame_options = _get_env(environ, "CORS_FRAME_OPTIONS")
    if frame_options is not None:
        values["FrameOptions"] = frame_options

    xss_protection = _get_env(environ, "CORS_XSS_PROTECTION")
    if xss_protection is not None:
        values["XssProtection"] = _split_list(xss_protection)

    return MappingPolicyStore({"Cors": values})
