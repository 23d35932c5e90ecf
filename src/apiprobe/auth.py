"""Auth-scheme injection and credential masking.

Each auth type maps to one pure transformation of a RequestSpec. Injection
runs after the builder, so it always wins over user-entered headers or query
parameters with the same name.
"""

from collections.abc import Callable, Iterable, Mapping
from urllib.parse import unquote, urlsplit, urlunsplit

from apiprobe.builder import encode_component
from apiprobe.config import get_settings
from apiprobe.errors import ValidationError
from apiprobe.models import (
    AuthConfig,
    AuthLocation,
    AuthType,
    RequestLogRecord,
    RequestSpec,
)

DEFAULT_API_KEY_NAME = "X-API-Key"
AUTHORIZATION_HEADER = "Authorization"

_MASK_CHAR = "•"
_SENSITIVE_MARKERS = ("authorization", "api-key", "api_key", "apikey", "token", "secret")

AuthStrategy = Callable[[RequestSpec, AuthConfig], RequestSpec]


def _key_name(auth: AuthConfig) -> str:
    return auth.key_name or get_settings().default_api_key_name or DEFAULT_API_KEY_NAME


def _with_header(spec: RequestSpec, name: str, value: str) -> RequestSpec:
    lowered = name.lower()
    headers = {key: item for key, item in spec.headers.items() if key.lower() != lowered}
    headers[name] = value
    return spec.model_copy(update={"headers": headers})


def _with_query_param(spec: RequestSpec, name: str, value: str) -> RequestSpec:
    parts = urlsplit(spec.url)
    kept = [
        pair
        for pair in parts.query.split("&")
        if pair and unquote(pair.split("=", 1)[0]) != name
    ]
    kept.append(f"{encode_component(name)}={encode_component(value)}")
    url = urlunsplit(parts._replace(query="&".join(kept)))
    return spec.model_copy(update={"url": url})


def _apply_none(spec: RequestSpec, auth: AuthConfig) -> RequestSpec:
    return spec


def _apply_api_key(spec: RequestSpec, auth: AuthConfig) -> RequestSpec:
    if auth.location == AuthLocation.QUERY:
        return _with_query_param(spec, _key_name(auth), auth.secret)
    return _with_header(spec, _key_name(auth), auth.secret)


def _apply_bearer(spec: RequestSpec, auth: AuthConfig) -> RequestSpec:
    return _with_header(spec, AUTHORIZATION_HEADER, f"Bearer {auth.secret}")


AUTH_STRATEGIES: dict[AuthType, AuthStrategy] = {
    AuthType.NONE: _apply_none,
    AuthType.API_KEY: _apply_api_key,
    AuthType.BEARER: _apply_bearer,
}


def apply_auth(spec: RequestSpec, auth: AuthConfig | None) -> RequestSpec:
    """Return a copy of ``spec`` with ``auth`` applied.

    An empty secret injects nothing, whatever the auth type.
    """
    if auth is None or not auth.secret:
        return spec
    strategy = AUTH_STRATEGIES.get(auth.type)
    if strategy is None:
        raise ValidationError(f"Unsupported auth type: {auth.type!r}")
    return strategy(spec, auth)


def mask_secret(secret: str) -> str:
    """Show the first and last four characters of a credential."""
    if len(secret) <= 8:
        return _MASK_CHAR * 8
    return f"{secret[:4]}{_MASK_CHAR * (len(secret) - 8)}{secret[-4:]}"


def _is_sensitive(name: str, extra: set[str]) -> bool:
    lowered = name.lower()
    if lowered in extra:
        return True
    return any(marker in lowered for marker in _SENSITIVE_MARKERS)


def _mask_authorization(value: str) -> str:
    scheme, sep, credential = value.partition(" ")
    if sep and credential:
        return f"{scheme} {mask_secret(credential)}"
    return mask_secret(value)


def redact_headers(
    headers: Mapping[str, str], extra_names: Iterable[str] = ()
) -> dict[str, str]:
    """Mask credential-bearing header values."""
    extra = {name.lower() for name in extra_names}
    redacted: dict[str, str] = {}
    for name, value in headers.items():
        if name.lower() == AUTHORIZATION_HEADER.lower():
            redacted[name] = _mask_authorization(value)
        elif _is_sensitive(name, extra):
            redacted[name] = mask_secret(value)
        else:
            redacted[name] = value
    return redacted


def redact_record(
    record: RequestLogRecord, extra_names: Iterable[str] = ()
) -> RequestLogRecord:
    """Copy of a log record safe to show to anyone but the requester."""
    names = list(extra_names)
    extra = {name.lower() for name in names}
    query = {
        key: mask_secret(value) if _is_sensitive(key, extra) else value
        for key, value in record.request_query.items()
    }
    return record.model_copy(
        update={
            "request_headers": redact_headers(record.request_headers, names),
            "request_query": query,
        }
    )


__all__ = [
    "AUTHORIZATION_HEADER",
    "AUTH_STRATEGIES",
    "DEFAULT_API_KEY_NAME",
    "apply_auth",
    "mask_secret",
    "redact_headers",
    "redact_record",
]
