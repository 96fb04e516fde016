"""
Domain models for the locally persisted credential.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class KeyType(str, Enum):
    """How the stored credential was obtained."""

    OAUTH = "oauth"
    APIKEY = "apikey"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialRecord(BaseModel):
    """Represents the single credential record stored on disk."""

    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    # Records written before API keys existed carry no key type.
    key_type: KeyType = KeyType.OAUTH

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def age(self, now: Optional[datetime] = None) -> float:
        """Seconds elapsed since the record was issued."""
        now = now or utcnow()
        return (now - self.created_at).total_seconds()

    def auth_headers(self) -> dict[str, str]:
        """Headers authenticating a request to the hosted API."""
        if self.key_type is KeyType.APIKEY:
            return {"X-Orbiter-API-Key": self.access_token}
        return {"X-Orbiter-Token": self.access_token}


__all__ = ["CredentialRecord", "KeyType", "utcnow"]
