"""Static API key registration."""

from __future__ import annotations

import logging

from orbiter.clients.orbiter_api import OrbiterAPIClient, OrbiterAPIError
from orbiter.models.credentials import CredentialRecord, KeyType
from orbiter.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)


class InvalidApiKeyError(Exception):
    """Raised when the hosted API does not accept a key."""


async def authenticate_with_api_key(
    api_key: str, *, api_client: OrbiterAPIClient, store: CredentialStore
) -> CredentialRecord:
    """Validate ``api_key`` against the API and persist it on success."""
    api_key = api_key.strip()
    if not api_key:
        raise InvalidApiKeyError("API key is required.")

    try:
        await api_client.verify_key(api_key)
    except OrbiterAPIError as exc:
        logger.debug("API key rejected: %s", exc)
        raise InvalidApiKeyError("Invalid API key.") from exc

    return store.store(api_key, None, KeyType.APIKEY)


__all__ = ["InvalidApiKeyError", "authenticate_with_api_key"]
