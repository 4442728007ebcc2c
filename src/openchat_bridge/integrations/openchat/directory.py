"""User profile lookups against the storage index canister, with a TTL cache."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Iterable, Optional

from ...core.logging_utils import log_event
from .constants import (
    DEFAULT_DIRECTORY_CACHE_TTL_SECONDS,
    MAINNET_HOST_MARKERS,
    USERS_QUERY_METHOD,
)
from .errors import InvalidPrincipalError, OpenChatAPIError
from .models import CachedProfile, UserProfile
from .principal import decode_principal, principal_from_text, principal_to_text
from .transport import PlatformTransport, pack, unpack


def needs_root_key(host: str) -> bool:
    return not any(marker in host for marker in MAINNET_HOST_MARKERS)


def _optional_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _canonical_user_id(user_id: str) -> str:
    try:
        return principal_to_text(principal_from_text(user_id))
    except InvalidPrincipalError:
        return user_id


class UserDirectory:
    def __init__(
        self,
        transport: PlatformTransport,
        *,
        storage_index_canister_id: str,
        ttl_seconds: float = DEFAULT_DIRECTORY_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._transport = transport
        self._storage_index_canister_id = storage_index_canister_id
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._cache: dict[str, CachedProfile] = {}
        self._root_key_task: Optional[asyncio.Task[None]] = None

    def _cache_key(self, api_gateway: Optional[str], user_id: str) -> Optional[str]:
        scope = api_gateway or self._storage_index_canister_id
        if not scope or not user_id:
            return None
        return f"{scope}:{user_id}"

    async def get_profile(
        self, api_gateway: Optional[str], user_id: str
    ) -> Optional[UserProfile]:
        cache_key = self._cache_key(api_gateway, user_id)
        if cache_key is None:
            return None
        cached = self._cache.get(cache_key)
        if cached is not None and self._clock() < cached.expires_at:
            return cached.profile

        try:
            profiles = await self.lookup_profiles([user_id])
        except Exception as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "openchat.directory.lookup_failed",
                user_id=user_id,
                exc=exc,
            )
            return None

        wanted = _canonical_user_id(user_id)
        for profile in profiles:
            if profile.user_id == wanted:
                self._cache[cache_key] = CachedProfile(
                    profile=profile,
                    expires_at=self._clock() + self._ttl_seconds,
                )
                return profile
        return None

    async def lookup_profiles(self, user_ids: Iterable[str]) -> list[UserProfile]:
        """Batch-query user summaries; ids that are not valid principals are dropped."""
        principals: list[bytes] = []
        for user_id in user_ids:
            try:
                principals.append(principal_from_text(user_id))
            except InvalidPrincipalError as exc:
                log_event(
                    self._logger,
                    logging.WARNING,
                    "openchat.directory.invalid_user_id",
                    user_id=user_id,
                    exc=exc,
                )
        if not principals:
            return []

        await self._ensure_root_key()
        arg = pack({"user_groups": [{"users": principals, "updated_since": 0}]})
        response = await self._transport.query(
            self._storage_index_canister_id, USERS_QUERY_METHOD, arg
        )
        if not response.replied:
            raise OpenChatAPIError(
                f"{USERS_QUERY_METHOD} was not replied: "
                f"status={response.status!r} code={response.reject_code} "
                f"message={response.reject_message!r}"
            )
        try:
            decoded = unpack(response.reply)
        except ValueError as exc:
            raise OpenChatAPIError(f"{USERS_QUERY_METHOD} reply is not msgpack") from exc
        success = decoded.get("Success") if isinstance(decoded, dict) else None
        if not isinstance(success, dict):
            raise OpenChatAPIError(f"{USERS_QUERY_METHOD} returned an unexpected response")

        profiles: list[UserProfile] = []
        for summary in success.get("users") or []:
            if not isinstance(summary, dict):
                continue
            try:
                user_id = decode_principal(summary.get("user_id"))
            except InvalidPrincipalError:
                continue
            stable = summary.get("stable")
            stable = stable if isinstance(stable, dict) else {}
            profiles.append(
                UserProfile(
                    user_id=user_id,
                    username=_optional_text(stable.get("username")),
                    display_name=_optional_text(stable.get("display_name")),
                )
            )
        return profiles

    async def _ensure_root_key(self) -> None:
        task = self._root_key_task
        if task is None or task.cancelled():
            task = asyncio.ensure_future(self._bootstrap_root_key())
            self._root_key_task = task
        # A cancelled caller must not cancel the bootstrap shared by later lookups.
        await asyncio.shield(task)

    async def _bootstrap_root_key(self) -> None:
        if not needs_root_key(self._transport.host):
            return
        try:
            await self._transport.fetch_root_key()
        except Exception as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "openchat.directory.root_key_failed",
                host=self._transport.host,
                exc=exc,
            )
