"""Public schema exports."""

from .auth import (
    SUPPORTED_OAUTH_PROVIDERS,
    AuthSession,
    OAuthCallbackParams,
    OAuthProviderName,
)
from .sites import (
    DeploymentConfig,
    FunctionDeployment,
    ServerDeploymentConfig,
    Site,
    SiteVersion,
)
from .templates import TemplateCacheMeta, TemplateMetadata

__all__ = [
    "AuthSession",
    "DeploymentConfig",
    "FunctionDeployment",
    "OAuthCallbackParams",
    "OAuthProviderName",
    "SUPPORTED_OAUTH_PROVIDERS",
    "ServerDeploymentConfig",
    "Site",
    "SiteVersion",
    "TemplateCacheMeta",
    "TemplateMetadata",
]
