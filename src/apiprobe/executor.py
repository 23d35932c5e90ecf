"""Request executor - sends a RequestSpec and captures a uniform Outcome.

``execute`` never raises for anything that happens after dispatch: HTTP error
responses keep their real status and body, while DNS/connect/timeout/cancel
failures become ``Outcome(status=0)`` with the failure message.
"""

import asyncio
import json
import logging
import time
from collections.abc import Mapping
from typing import Any, Self
from urllib.parse import urlsplit

import aiohttp

from apiprobe.builder import serialize_body
from apiprobe.config import get_settings
from apiprobe.models import JsonBody, Outcome, RequestSpec, TextBody

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Request cancelled"


def _elapsed_ms(started: float) -> int:
    return max(0, round((time.perf_counter() - started) * 1000))


def _log_target(url: str) -> str:
    """Host and path only; query strings may carry credentials."""
    parts = urlsplit(url)
    return f"{parts.netloc}{parts.path}"


def is_json_content_type(content_type: str | None) -> bool:
    """Whether a declared content type is JSON (``application/json`` or ``+json``)."""
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def normalize_body(content_type: str | None, text: str) -> JsonBody | TextBody:
    """Parse declared-JSON bodies, keeping anything else (or unparseable JSON) as text."""
    if is_json_content_type(content_type):
        try:
            return JsonBody(value=json.loads(text))
        except ValueError:
            logger.debug("Response declared JSON but did not parse; keeping text")
    return TextBody(value=text)


def flatten_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Collapse repeated response headers into comma-joined values."""
    flattened: dict[str, str] = {}
    for key, value in headers.items():
        if key in flattened:
            flattened[key] = f"{flattened[key]}, {value}"
        else:
            flattened[key] = value
    return flattened


def _decode(raw: bytes, charset: str | None) -> str:
    try:
        return raw.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return raw.decode("utf-8", errors="replace")


def transport_failure(message: str, elapsed_ms: int) -> Outcome:
    return Outcome(status=0, elapsed_ms=elapsed_ms, error_message=message)


def _failure_message(exc: BaseException, timeout: float) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return f"Request timed out after {timeout:g}s"
    message = str(exc)
    return message or type(exc).__name__


class RequestExecutor:
    """Executes RequestSpecs over a pooled aiohttp session."""

    def __init__(
        self,
        *,
        timeout: float | None = None,
        follow_redirects: bool | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        settings = get_settings()
        self._timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self._follow_redirects = (
            follow_redirects if follow_redirects is not None else settings.follow_redirects
        )
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: Any,
    ) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or bool(getattr(self._session, "closed", False)):
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        session = self._session
        if session is None or not self._owns_session:
            return
        if not bool(getattr(session, "closed", False)):
            await session.close()
        self._session = None

    async def _dispatch(self, spec: RequestSpec, timeout: float) -> Outcome:
        session = await self._ensure_session()
        data = serialize_body(spec.body)
        skip_auto_headers = None
        if data is not None and not any(
            key.lower() == "content-type" for key in spec.headers
        ):
            # Raw text bodies go out without an implicit Content-Type.
            skip_auto_headers = ("Content-Type",)

        started = time.perf_counter()
        async with session.request(
            spec.method.value,
            spec.url,
            headers=spec.headers,
            data=data.encode("utf-8") if data is not None else None,
            skip_auto_headers=skip_auto_headers,
            allow_redirects=self._follow_redirects,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as resp:
            raw = await resp.read()
            elapsed = _elapsed_ms(started)
            text = _decode(raw, resp.charset)
            status_text = resp.reason or ""
            error_message = None
            if not 200 <= resp.status < 300:
                error_message = f"HTTP Error: {resp.status} {status_text}".rstrip()
            return Outcome(
                status=resp.status,
                status_text=status_text,
                response_headers=flatten_headers(resp.headers),
                response_body=normalize_body(resp.headers.get("Content-Type"), text),
                elapsed_ms=elapsed,
                error_message=error_message,
            )

    async def execute(
        self,
        spec: RequestSpec,
        *,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> Outcome:
        """Send ``spec`` and return its Outcome.

        Args:
            spec: Finalized request (auth already applied).
            timeout: Total seconds allowed; defaults to the executor timeout.
            cancel: Setting this event abandons the request with a
                transport-failure Outcome.
        """
        effective_timeout = timeout if timeout is not None else self._timeout
        target = _log_target(spec.url)
        logger.debug("Dispatching %s %s", spec.method.value, target)

        started = time.perf_counter()
        request_task = asyncio.ensure_future(self._dispatch(spec, effective_timeout))
        try:
            if cancel is None:
                outcome = await request_task
            else:
                cancel_task = asyncio.ensure_future(cancel.wait())
                try:
                    await asyncio.wait(
                        {request_task, cancel_task},
                        return_when=asyncio.FIRST_COMPLETED,
                    )
                finally:
                    cancel_task.cancel()
                if not request_task.done():
                    request_task.cancel()
                    await asyncio.gather(request_task, return_exceptions=True)
                    logger.info("%s %s cancelled", spec.method.value, target)
                    return transport_failure(CANCELLED_MESSAGE, _elapsed_ms(started))
                outcome = request_task.result()
        except Exception as exc:
            message = _failure_message(exc, effective_timeout)
            logger.warning(
                "%s %s failed without a response: %s",
                spec.method.value,
                target,
                message,
            )
            return transport_failure(message, _elapsed_ms(started))
        finally:
            if not request_task.done():
                request_task.cancel()

        logger.info(
            "%s %s -> %s in %sms",
            spec.method.value,
            target,
            outcome.status,
            outcome.elapsed_ms,
        )
        return outcome


async def execute_request(
    spec: RequestSpec,
    *,
    timeout: float | None = None,
    cancel: asyncio.Event | None = None,
) -> Outcome:
    """One-shot execution with a short-lived session."""
    async with RequestExecutor(timeout=timeout) as executor:
        return await executor.execute(spec, cancel=cancel)


__all__ = [
    "CANCELLED_MESSAGE",
    "RequestExecutor",
    "execute_request",
    "flatten_headers",
    "is_json_content_type",
    "normalize_body",
    "transport_failure",
]
