"""
Factory functions wiring clients and services for the CLI commands.

Everything is built from an explicit ``AppSettings``; nothing is cached at
module level.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from orbiter.clients import (
    GitHubContentsClient,
    OrbiterAPIClient,
    PinataClient,
    SupabaseAuthClient,
)
from orbiter.core.config import AppSettings
from orbiter.services import (
    CredentialStore,
    DeployService,
    MiniAppScaffoldService,
    OAuthLoginFlow,
    ScaffoldService,
    SiteService,
    SiteUploader,
    TemplateCache,
    TokenValidityResolver,
)
from orbiter.services.templates import GENERAL_TEMPLATES, MINI_APP_TEMPLATES
from orbiter.utils.prompts import Prompter, RichPrompter


def get_credential_store(settings: AppSettings) -> CredentialStore:
    return CredentialStore(settings.auth.credentials_path)


def get_auth_client(settings: AppSettings) -> SupabaseAuthClient:
    return SupabaseAuthClient(settings.auth)


def get_api_client(settings: AppSettings) -> OrbiterAPIClient:
    return OrbiterAPIClient(settings.api)


def get_token_resolver(
    settings: AppSettings,
    *,
    store: Optional[CredentialStore] = None,
    auth_client: Optional[SupabaseAuthClient] = None,
) -> TokenValidityResolver:
    """Resolver honoring the env API key override and the refresh margin."""
    return TokenValidityResolver(
        store or get_credential_store(settings),
        auth_client or get_auth_client(settings),
        refresh_after=settings.auth.refresh_after,
        env_api_key=settings.auth.api_key,
    )


def get_login_flow(settings: AppSettings) -> OAuthLoginFlow:
    return OAuthLoginFlow(
        settings.auth, get_auth_client(settings), get_credential_store(settings)
    )


def get_template_cache(settings: AppSettings, subdirectory: str = GENERAL_TEMPLATES) -> TemplateCache:
    return TemplateCache(
        settings.templates,
        GitHubContentsClient(settings.templates),
        subdirectory=subdirectory,
    )


@dataclass
class Services:
    """Services sharing one set of clients for the duration of a command."""

    settings: AppSettings
    store: CredentialStore
    auth_client: SupabaseAuthClient
    api_client: OrbiterAPIClient
    resolver: TokenValidityResolver
    sites: SiteService
    deployer: DeployService

    def scaffolder(self) -> ScaffoldService:
        return ScaffoldService(
            cache=get_template_cache(self.settings, GENERAL_TEMPLATES), deployer=self.deployer
        )

    def miniapp_scaffolder(self) -> MiniAppScaffoldService:
        return MiniAppScaffoldService(
            cache=get_template_cache(self.settings, MINI_APP_TEMPLATES),
            deployer=self.deployer,
            sites=self.sites,
            api_client=self.api_client,
            resolver=self.resolver,
            site_domain=self.settings.api.site_domain,
        )


def build_services(settings: AppSettings, prompter: Optional[Prompter] = None) -> Services:
    store = get_credential_store(settings)
    auth_client = get_auth_client(settings)
    api_client = get_api_client(settings)
    resolver = get_token_resolver(settings, store=store, auth_client=auth_client)
    sites = SiteService(
        resolver=resolver,
        api_client=api_client,
        auth_client=auth_client,
        uploader=SiteUploader(api_client, PinataClient(settings.api)),
        site_domain=settings.api.site_domain,
    )
    deployer = DeployService(
        sites=sites,
        api_client=api_client,
        resolver=resolver,
        prompter=prompter or RichPrompter(),
    )
    return Services(
        settings=settings,
        store=store,
        auth_client=auth_client,
        api_client=api_client,
        resolver=resolver,
        sites=sites,
        deployer=deployer,
    )


__all__ = [
    "Services",
    "build_services",
    "get_api_client",
    "get_auth_client",
    "get_credential_store",
    "get_login_flow",
    "get_template_cache",
    "get_token_resolver",
]
