"""Wire transport for bot API calls and directory queries.

The bridge never speaks the platform's signed request envelope itself; it
talks msgpack to an HTTP relay that fronts the canisters. `PlatformTransport`
is the seam: tests and alternative agents plug in here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx
import msgpack

from ...core.logging_utils import log_event
from .errors import OpenChatAPIError, OpenChatPermanentError, OpenChatTransientError

MSGPACK_CONTENT_TYPE = "application/msgpack"
STATUS_PATH = "/api/v2/status"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryResponse:
    status: str
    reply: bytes = b""
    reject_code: Optional[int] = None
    reject_message: Optional[str] = None

    @property
    def replied(self) -> bool:
        return self.status == "replied"


class PlatformTransport(Protocol):
    host: str

    async def fetch_root_key(self) -> None: ...

    async def query(self, canister_id: str, method: str, arg: bytes) -> QueryResponse: ...

    async def call(
        self, canister_id: str, method: str, payload: dict[str, Any]
    ) -> dict[str, Any]: ...

    async def aclose(self) -> None: ...


def pack(payload: Any) -> bytes:
    return msgpack.packb(payload, use_bin_type=True)


def unpack(body: bytes) -> Any:
    return msgpack.unpackb(body, raw=False, strict_map_key=False)


def _is_retryable_error(exc: httpx.HTTPError) -> bool:
    return isinstance(
        exc,
        (
            httpx.ConnectError,
            httpx.ReadError,
            httpx.WriteError,
            httpx.ConnectTimeout,
            httpx.ReadTimeout,
            httpx.WriteTimeout,
            httpx.PoolTimeout,
        ),
    )


class HttpRelayTransport:
    def __init__(
        self,
        host: str,
        *,
        timeout_seconds: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.host = host.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._owns_client = client is None
        self.root_key: Optional[bytes] = None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpRelayTransport":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.aclose()

    async def fetch_root_key(self) -> None:
        response = await self._send("GET", f"{self.host}{STATUS_PATH}")
        status = _decode_body(response)
        root_key = status.get("root_key") if isinstance(status, dict) else None
        if not isinstance(root_key, (bytes, bytearray)):
            raise OpenChatAPIError("Relay status response has no root key")
        self.root_key = bytes(root_key)
        log_event(logger, logging.INFO, "openchat.transport.root_key_fetched", host=self.host)

    async def query(self, canister_id: str, method: str, arg: bytes) -> QueryResponse:
        response = await self._send(
            "POST",
            f"{self.host}/canister/{canister_id}/{method}",
            content=arg,
        )
        decoded = _decode_body(response)
        if not isinstance(decoded, dict):
            raise OpenChatAPIError(f"Malformed query response for {method}")
        reply = decoded.get("reply")
        return QueryResponse(
            status=str(decoded.get("status") or ""),
            reply=bytes(reply) if isinstance(reply, (bytes, bytearray)) else b"",
            reject_code=decoded.get("reject_code"),
            reject_message=decoded.get("reject_message"),
        )

    async def call(
        self, canister_id: str, method: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        response = await self._send(
            "POST",
            f"{self.host}/canister/{canister_id}/{method}",
            content=pack(payload),
        )
        decoded = _decode_body(response)
        return decoded if isinstance(decoded, dict) else {}

    async def _send(
        self, method: str, url: str, *, content: Optional[bytes] = None
    ) -> httpx.Response:
        headers = {"Accept": MSGPACK_CONTENT_TYPE}
        if content is not None:
            headers["Content-Type"] = MSGPACK_CONTENT_TYPE
        try:
            response = await self._client.request(
                method, url, content=content, headers=headers
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            body_preview = (exc.response.text or "").strip().replace("\n", " ")[:200]
            message = (
                f"OpenChat relay request failed for {method} {url}: "
                f"status={status_code} body={body_preview!r}"
            )
            if status_code == 429 or 500 <= status_code < 600:
                raise OpenChatTransientError(message, status_code=status_code) from exc
            raise OpenChatPermanentError(message, status_code=status_code) from exc
        except httpx.HTTPError as exc:
            message = f"OpenChat relay network error for {method} {url}: {exc}"
            if _is_retryable_error(exc):
                raise OpenChatTransientError(message) from exc
            raise OpenChatAPIError(message) from exc
        return response


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    try:
        return unpack(response.content)
    except ValueError as exc:
        raise OpenChatAPIError(
            f"OpenChat relay returned a non-msgpack body (status={response.status_code})"
        ) from exc
