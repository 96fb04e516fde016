"""Expose constructed client wrappers."""

from .github import GitHubContentsClient, GitHubContentsError
from .orbiter_api import OrbiterAPIClient, OrbiterAPIError
from .pinata import PinataClient, PinataUploadError
from .supabase_auth import AuthProviderError, SupabaseAuthClient

__all__ = [
    "AuthProviderError",
    "GitHubContentsClient",
    "GitHubContentsError",
    "OrbiterAPIClient",
    "OrbiterAPIError",
    "PinataClient",
    "PinataUploadError",
    "SupabaseAuthClient",
]
