"""Service layer exports."""

from .api_key import InvalidApiKeyError, authenticate_with_api_key
from .credential_store import CredentialStore
from .deploy import DeployOptions, DeployService, DeploymentError, ServerDeployOptions
from .login import LoginError, LoginTimeoutError, OAuthLoginFlow
from .scaffold import MiniAppScaffoldService, ScaffoldError, ScaffoldService
from .sites import SiteNotFoundError, SiteService
from .templates import TemplateCache, TemplateFetchError
from .tokens import NotAuthenticatedError, TokenState, TokenValidityResolver
from .upload import SiteUploader, UploadError

__all__ = [
    "CredentialStore",
    "DeployOptions",
    "DeployService",
    "DeploymentError",
    "InvalidApiKeyError",
    "LoginError",
    "LoginTimeoutError",
    "MiniAppScaffoldService",
    "NotAuthenticatedError",
    "OAuthLoginFlow",
    "ScaffoldError",
    "ScaffoldService",
    "ServerDeployOptions",
    "SiteNotFoundError",
    "SiteService",
    "SiteUploader",
    "TemplateCache",
    "TemplateFetchError",
    "TokenState",
    "TokenValidityResolver",
    "UploadError",
    "authenticate_with_api_key",
]
