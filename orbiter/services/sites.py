"""
Site lifecycle operations combining upload, auth and the hosted API.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from orbiter.clients.orbiter_api import OrbiterAPIClient
from orbiter.clients.supabase_auth import SupabaseAuthClient
from orbiter.models.credentials import CredentialRecord, KeyType
from orbiter.schemas import Site, SiteVersion
from orbiter.services.tokens import TokenValidityResolver
from orbiter.services.upload import SiteUploader

logger = logging.getLogger(__name__)


class SiteNotFoundError(Exception):
    """Raised when no site matches an id or subdomain."""


class SiteService:
    """Create, list, update, delete and roll back hosted sites."""

    def __init__(
        self,
        *,
        resolver: TokenValidityResolver,
        api_client: OrbiterAPIClient,
        auth_client: SupabaseAuthClient,
        uploader: SiteUploader,
        site_domain: str = "orbiter.website",
    ) -> None:
        self._resolver = resolver
        self._api = api_client
        self._auth = auth_client
        self._uploader = uploader
        self._site_domain = site_domain

    def normalize_subdomain(self, domain: str) -> str:
        """``name.orbiter.website`` and ``name`` both become ``name``."""
        domain = domain.strip().lower()
        suffix = f".{self._site_domain}"
        if domain.endswith(suffix):
            domain = domain[: -len(suffix)]
        return domain

    def site_url(self, domain: str) -> str:
        return f"https://{self.normalize_subdomain(domain)}.{self._site_domain}"

    async def _organization_id(self, credential: CredentialRecord) -> Optional[str]:
        # API keys are scoped to an organization server side.
        if credential.key_type is KeyType.APIKEY:
            return None
        memberships = await self._auth.list_memberships(credential.access_token)
        if not memberships:
            return None
        organization = memberships[0].get("organizations") or {}
        return organization.get("id")

    async def create_site(self, path: str | Path, subdomain: str) -> Optional[Site]:
        credential = await self._resolver.require()
        subdomain = self.normalize_subdomain(subdomain)
        cid = await self._uploader.upload_site(path, credential)
        org_id = await self._organization_id(credential)
        site = await self._api.create_site(
            credential, cid=cid, subdomain=subdomain, org_id=org_id
        )
        logger.info("Created site %s (cid %s)", subdomain, cid)
        return site

    async def list_sites(self, domain: Optional[str] = None) -> List[Site]:
        credential = await self._resolver.require()
        return await self._list(credential, domain)

    async def _list(self, credential: CredentialRecord, domain: Optional[str]) -> List[Site]:
        subdomain = self.normalize_subdomain(domain) if domain else None
        sites = await self._api.list_sites(credential, domain=subdomain)
        if subdomain:
            sites = [s for s in sites if self.normalize_subdomain(s.domain) == subdomain]
        return sites

    async def find_site(
        self,
        *,
        site_id: Optional[str] = None,
        domain: Optional[str] = None,
        credential: Optional[CredentialRecord] = None,
    ) -> Site:
        """Look a site up by id or by subdomain."""
        if not site_id and not domain:
            raise ValueError("Provide either a site id or a domain.")
        credential = credential or await self._resolver.require()
        if site_id:
            sites = await self._list(credential, None)
            match = next((site for site in sites if site.id == site_id), None)
        else:
            sites = await self._list(credential, domain)
            match = sites[0] if sites else None

        if match is None:
            label = f"ID: {site_id}" if site_id else f"domain: {domain}"
            raise SiteNotFoundError(f"No site found with {label}")
        return match

    async def update_site(
        self,
        path: str | Path,
        *,
        site_id: Optional[str] = None,
        domain: Optional[str] = None,
    ) -> str:
        """Upload ``path`` and point the site at it; returns the new CID."""
        credential = await self._resolver.require()
        if not site_id:
            site_id = (await self.find_site(domain=domain, credential=credential)).id
        cid = await self._uploader.upload_site(path, credential)
        await self._api.update_site(credential, site_id, cid=cid)
        logger.info("Updated site %s (cid %s)", site_id, cid)
        return cid

    async def delete_site(self, site_id: str) -> None:
        credential = await self._resolver.require()
        await self._api.delete_site(credential, site_id)
        logger.info("Deleted site %s", site_id)

    async def list_versions(self, domain: str) -> List[SiteVersion]:
        credential = await self._resolver.require()
        site = await self.find_site(domain=domain, credential=credential)
        return await self._api.list_versions(credential, site.id)

    async def rollback_site(self, domain: str, cid: str) -> Site:
        """Point the site back at a previously deployed ``cid``."""
        credential = await self._resolver.require()
        site = await self.find_site(domain=domain, credential=credential)
        versions = await self._api.list_versions(credential, site.id)
        if not any(version.cid == cid for version in versions):
            raise SiteNotFoundError(
                f"CID {cid} is not a version of {self.site_url(domain)}. "
                "Use `orbiter versions` to list them."
            )
        await self._api.update_site(credential, site.id, cid=cid)
        logger.info("Rolled back site %s to %s", site.id, cid)
        return site


__all__ = ["SiteNotFoundError", "SiteService"]
