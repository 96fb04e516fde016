"""
Helpers for resolving a usable credential, refreshing OAuth tokens when needed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional, Protocol

import httpx

from orbiter.clients.supabase_auth import AuthProviderError
from orbiter.models.credentials import CredentialRecord, KeyType, utcnow
from orbiter.schemas import AuthSession
from orbiter.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_AFTER = timedelta(minutes=55)


class NotAuthenticatedError(Exception):
    """Raised when no usable credential is available."""

    def __init__(self, message: str = "Not authenticated. Run `orbiter login` or `orbiter auth` first.") -> None:
        super().__init__(message)


class SessionRefresher(Protocol):
    async def refresh_session(self, refresh_token: str) -> AuthSession: ...


class TokenState(str, Enum):
    ABSENT = "absent"
    VALID = "valid"
    EXPIRED = "expired"


class TokenValidityResolver:
    """Produce a currently usable credential from the store."""

    def __init__(
        self,
        store: CredentialStore,
        auth_client: SessionRefresher,
        *,
        refresh_after: timedelta = DEFAULT_REFRESH_AFTER,
        env_api_key: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._auth = auth_client
        self._refresh_after = refresh_after
        self._env_api_key = env_api_key
        self._clock = clock

    def state_of(self, record: Optional[CredentialRecord]) -> TokenState:
        if record is None:
            return TokenState.ABSENT
        if record.key_type is KeyType.APIKEY:
            return TokenState.VALID
        if self._clock() - record.created_at >= self._refresh_after:
            return TokenState.EXPIRED
        return TokenState.VALID

    async def resolve(self) -> Optional[CredentialRecord]:
        """Return a valid credential, or ``None`` when the user must authenticate."""
        if self._env_api_key:
            return CredentialRecord(
                access_token=self._env_api_key,
                created_at=self._clock(),
                key_type=KeyType.APIKEY,
            )

        record = self._store.load()
        state = self.state_of(record)
        if state is TokenState.ABSENT:
            logger.info("No stored credential found.")
            return None
        if state is TokenState.VALID:
            return record
        return await self._refresh(record)

    async def require(self) -> CredentialRecord:
        record = await self.resolve()
        if record is None:
            raise NotAuthenticatedError()
        return record

    async def _refresh(self, record: CredentialRecord) -> Optional[CredentialRecord]:
        if not record.refresh_token:
            logger.warning("Stored OAuth credential has no refresh token.")
            return None

        try:
            session = await self._auth.refresh_session(record.refresh_token)
        except (AuthProviderError, httpx.HTTPError) as exc:
            logger.warning("Error refreshing token: %s", exc)
            return None

        return self._store.store(
            session.access_token,
            session.refresh_token or record.refresh_token,
            KeyType.OAUTH,
            created_at=self._clock(),
        )


__all__ = [
    "DEFAULT_REFRESH_AFTER",
    "NotAuthenticatedError",
    "SessionRefresher",
    "TokenState",
    "TokenValidityResolver",
]
