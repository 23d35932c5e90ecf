"""Turn a logical request description into an executable RequestSpec.

Pure functions, no I/O. Query and header entries with an empty key or value
are dropped rather than rejected; only a malformed base URL (or a verb outside
the supported set) raises.
"""

import json
from collections.abc import Iterable
from urllib.parse import quote, urlsplit

from apiprobe.errors import ValidationError
from apiprobe.models import (
    HttpMethod,
    JsonBody,
    RequestDescription,
    RequestSpec,
    TextBody,
)

# Same unreserved set as JavaScript's encodeURIComponent.
_URI_COMPONENT_SAFE = "-_.!~*'()"


def encode_component(value: str) -> str:
    """Percent-encode a single query key or value."""
    return quote(value, safe=_URI_COMPONENT_SAFE)


def validate_base_url(base_url: str) -> str:
    """Return ``base_url`` stripped, or raise if it is not an absolute http(s) URL."""
    candidate = (base_url or "").strip()
    try:
        parts = urlsplit(candidate)
        parts.port  # raises ValueError for a non-numeric or out-of-range port
    except ValueError as exc:
        raise ValidationError(f"Invalid base URL: {base_url!r} ({exc})") from exc
    if (
        parts.scheme not in ("http", "https")
        or not parts.hostname
        or any(ch.isspace() for ch in candidate)
    ):
        raise ValidationError(f"Invalid base URL: {base_url!r}")
    return candidate


def parse_method(method: str | HttpMethod) -> HttpMethod:
    """Normalize a verb to the supported set."""
    try:
        return HttpMethod(str(method).strip().upper())
    except ValueError as exc:
        raise ValidationError(f"Unsupported method: {method!r}") from exc


def join_url(base_url: str, path: str) -> str:
    """Join base and path with exactly one slash between them."""
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def build_query_string(query_params: Iterable[tuple[str, str]]) -> str:
    """Encode non-empty key/value pairs in input order."""
    return "&".join(
        f"{encode_component(key)}={encode_component(value)}"
        for key, value in query_params
        if key and value
    )


def append_query(url: str, query: str) -> str:
    """Append an encoded query string using ``?`` or ``&`` as appropriate."""
    if not query:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{query}"


def build_headers(headers: Iterable[tuple[str, str]]) -> dict[str, str]:
    """Keep non-empty entries; later duplicates overwrite earlier ones."""
    resolved: dict[str, str] = {}
    for key, value in headers:
        if key and value:
            resolved[key] = value
    return resolved


def _reject_constant(name: str) -> None:
    raise ValueError(f"{name} is not valid JSON")


def _has_header(headers: dict[str, str], name: str) -> bool:
    lowered = name.lower()
    return any(key.lower() == lowered for key in headers)


def build_request_spec(
    base_url: str,
    path: str,
    method: str | HttpMethod,
    query_params: Iterable[tuple[str, str]] = (),
    headers: Iterable[tuple[str, str]] = (),
    raw_body: str | None = None,
) -> RequestSpec:
    """Resolve URL, headers and body into a RequestSpec."""
    base = validate_base_url(base_url)
    verb = parse_method(method)

    url = append_query(join_url(base, path or ""), build_query_string(query_params))
    resolved_headers = build_headers(headers)

    body: JsonBody | TextBody | None = None
    if verb.carries_body and raw_body:
        try:
            parsed = json.loads(raw_body, parse_constant=_reject_constant)
        except ValueError:
            body = TextBody(value=raw_body)
        else:
            body = JsonBody(value=parsed)
            if not _has_header(resolved_headers, "Content-Type"):
                resolved_headers["Content-Type"] = "application/json"

    return RequestSpec(method=verb, url=url, headers=resolved_headers, body=body)


def build_from_description(description: RequestDescription) -> RequestSpec:
    """Build a RequestSpec from a RequestDescription."""
    return build_request_spec(
        description.base_url,
        description.path,
        description.method,
        description.query_params,
        description.headers,
        description.body,
    )


def serialize_body(body: JsonBody | TextBody | None) -> str | None:
    """Transport form of a request body: JSON text or the raw string."""
    if body is None:
        return None
    if isinstance(body, JsonBody):
        return json.dumps(body.value, separators=(",", ":"), ensure_ascii=False)
    return body.value


__all__ = [
    "append_query",
    "build_from_description",
    "build_headers",
    "build_query_string",
    "build_request_spec",
    "encode_component",
    "join_url",
    "parse_method",
    "serialize_body",
    "validate_base_url",
]
