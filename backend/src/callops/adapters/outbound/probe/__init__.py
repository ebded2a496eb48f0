"""HTTP connectivity probe — verifies provider credentials with one cheap call.

Each supported vendor maps to a single authenticated ``GET`` against an
endpoint that answers quickly and does not mutate anything.  Implements the
``ConnectivityProbePort`` interface with async httpx calls.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from callops.domain.exceptions import ProbeError, UnknownProviderError
from callops.domain.value_objects import DraftValue
from callops.ports.outbound import ConnectivityProbePort

logger = structlog.get_logger(__name__)
_retry_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeRequest:
    url: str
    auth: tuple[str, str] | None = None
    headers: dict[str, str] = field(default_factory=dict)


def _text(credentials: Mapping[str, DraftValue], key: str, default: str = "") -> str:
    return str(credentials.get(key, default) or default).strip()


# ── Vendor targets ───────────────────────────────────────────
def _exotel(c: Mapping[str, DraftValue]) -> ProbeRequest:
    subdomain = _text(c, "subdomain", "api.exotel.com")
    return ProbeRequest(
        url=f"https://{subdomain}/v1/Accounts/{_text(c, 'account_sid')}.json",
        auth=(_text(c, "api_key"), _text(c, "api_token")),
    )


def _twilio(c: Mapping[str, DraftValue]) -> ProbeRequest:
    sid = _text(c, "account_sid")
    return ProbeRequest(
        url=f"https://api.twilio.com/2010-04-01/Accounts/{sid}.json",
        auth=(sid, _text(c, "auth_token")),
    )


def _voicebase(c: Mapping[str, DraftValue]) -> ProbeRequest:
    return ProbeRequest(
        url="https://apis.voicebase.com/v3/media?limit=1",
        headers={"Authorization": f"Bearer {_text(c, 'api_token')}"},
    )


def _custom(c: Mapping[str, DraftValue]) -> ProbeRequest:
    base_url = _text(c, "base_url").rstrip("/")
    if not base_url.startswith(("http://", "https://")):
        raise ProbeError("custom", "base URL must start with http:// or https://")
    headers = _parse_headers(str(c.get("extra_headers") or ""))
    headers[_text(c, "auth_header", "Authorization")] = f"Bearer {_text(c, 'api_key')}"
    return ProbeRequest(url=f"{base_url}/health", headers=headers)


def _parse_headers(raw: str) -> dict[str, str]:
    headers: dict[str, str] = {}
    for line in raw.splitlines():
        name, sep, value = line.partition(":")
        if sep and name.strip():
            headers[name.strip()] = value.strip()
    return headers


PROBE_TARGETS: dict[str, Callable[[Mapping[str, DraftValue]], ProbeRequest]] = {
    "exotel": _exotel,
    "twilio": _twilio,
    "voicebase": _voicebase,
    "custom": _custom,
}


class HttpConnectivityProbe(ConnectivityProbePort):
    """Probes vendor APIs over HTTPS.

    Transport errors (DNS, refused connections, timeouts) are retried with
    exponential backoff; HTTP error statuses are answers and never retried.
    """

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        max_attempts: int = 2,
        backoff_seconds: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._backoff = backoff_seconds
        self._transport = transport

    async def probe(self, provider: str, credentials: Mapping[str, DraftValue]) -> None:
        target = PROBE_TARGETS.get(provider)
        if target is None:
            raise UnknownProviderError(provider)
        request = target(credentials)
        log = logger.bind(provider=provider, url=request.url.split("?")[0])

        try:
            response = await self._send(request)
        except httpx.TransportError as exc:
            log.warning("provider_probe_unreachable", error=type(exc).__name__)
            raise ProbeError(provider, f"connection failed: {type(exc).__name__}") from exc

        if response.is_success:
            log.info("provider_probe_ok", status=response.status_code)
            return
        if response.status_code in (401, 403):
            log.warning("provider_probe_rejected", status=response.status_code)
            raise ProbeError(provider, f"invalid credentials (HTTP {response.status_code})")
        log.warning("provider_probe_failed", status=response.status_code)
        raise ProbeError(provider, f"HTTP {response.status_code}")

    async def _send(self, request: ProbeRequest) -> httpx.Response:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._backoff, max=5),
            retry=retry_if_exception_type(httpx.TransportError),
            before_sleep=before_sleep_log(_retry_logger, logging.WARNING),
            reraise=True,
        )
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            async for attempt in retrying:
                with attempt:
                    return await client.get(
                        request.url, auth=request.auth, headers=request.headers
                    )
        raise AssertionError("unreachable")  # pragma: no cover
