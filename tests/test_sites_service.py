from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from pathlib import Path
from typing import Optional

import pytest

from orbiter.models.credentials import CredentialRecord, KeyType
from orbiter.schemas import Site, SiteVersion
from orbiter.services.sites import SiteNotFoundError, SiteService


class StubResolver:
    def __init__(self, credential: CredentialRecord) -> None:
        self.credential = credential

    async def require(self) -> CredentialRecord:
        return self.credential


class FakeAPIClient:
    def __init__(self, sites: Optional[list[Site]] = None) -> None:
        self.sites = sites or []
        self.versions: dict[str, list[SiteVersion]] = {}
        self.created: list[dict] = []
        self.updated: list[tuple[str, str]] = []
        self.deleted: list[str] = []

    async def create_site(self, credential, *, cid, subdomain, org_id=None):
        self.created.append({"cid": cid, "subdomain": subdomain, "org_id": org_id})
        return Site(id="site-new", domain=subdomain, cid=cid)

    async def list_sites(self, credential, *, domain=None):
        return list(self.sites)

    async def update_site(self, credential, site_id, *, cid):
        self.updated.append((site_id, cid))

    async def delete_site(self, credential, site_id):
        self.deleted.append(site_id)

    async def list_versions(self, credential, site_id):
        return self.versions.get(site_id, [])


class FakeAuthClient:
    def __init__(self) -> None:
        self.calls: list[str] = []

    async def list_memberships(self, access_token: str):
        self.calls.append(access_token)
        return [{"organizations": {"id": "org-newest"}}, {"organizations": {"id": "org-old"}}]


class FakeUploader:
    def __init__(self, cid: str = "cid-1") -> None:
        self.cid = cid
        self.paths: list = []

    async def upload_site(self, path, credential, *, cwd=None) -> str:
        self.paths.append(path)
        return self.cid


def _service(
    credential: CredentialRecord,
    api: FakeAPIClient,
    auth: Optional[FakeAuthClient] = None,
    uploader: Optional[FakeUploader] = None,
) -> SiteService:
    return SiteService(
        resolver=StubResolver(credential),
        api_client=api,
        auth_client=auth or FakeAuthClient(),
        uploader=uploader or FakeUploader(),
        site_domain="orbiter.website",
    )


OAUTH = CredentialRecord(access_token="oauth-token", refresh_token="r", key_type=KeyType.OAUTH)
APIKEY = CredentialRecord(access_token="api-key", key_type=KeyType.APIKEY)


def test_normalize_subdomain_strips_site_domain() -> None:
    service = _service(OAUTH, FakeAPIClient())

    assert service.normalize_subdomain("Demo.orbiter.website") == "demo"
    assert service.normalize_subdomain("demo") == "demo"
    assert service.site_url("demo") == "https://demo.orbiter.website"


@pytest.mark.asyncio
async def test_create_site_with_oauth_sends_newest_organization() -> None:
    api = FakeAPIClient()
    auth = FakeAuthClient()

    site = await _service(OAUTH, api, auth).create_site(Path("dist"), "demo.orbiter.website")

    assert site is not None
    assert api.created == [{"cid": "cid-1", "subdomain": "demo", "org_id": "org-newest"}]
    assert auth.calls == ["oauth-token"]


@pytest.mark.asyncio
async def test_create_site_with_api_key_skips_memberships() -> None:
    api = FakeAPIClient()
    auth = FakeAuthClient()

    await _service(APIKEY, api, auth).create_site(Path("dist"), "demo")

    assert api.created[0]["org_id"] is None
    assert auth.calls == []


@pytest.mark.asyncio
async def test_list_sites_filters_exact_subdomain() -> None:
    api = FakeAPIClient(
        [Site(id="1", domain="demo.orbiter.website"), Site(id="2", domain="demo-two.orbiter.website")]
    )

    sites = await _service(OAUTH, api).list_sites("demo")

    assert [site.id for site in sites] == ["1"]


@pytest.mark.asyncio
async def test_update_site_by_domain_resolves_id() -> None:
    api = FakeAPIClient([Site(id="site-9", domain="demo.orbiter.website")])
    uploader = FakeUploader(cid="cid-2")

    cid = await _service(OAUTH, api, uploader=uploader).update_site("dist", domain="demo")

    assert cid == "cid-2"
    assert api.updated == [("site-9", "cid-2")]
    assert uploader.paths == ["dist"]


@pytest.mark.asyncio
async def test_update_unknown_site_raises_before_upload() -> None:
    uploader = FakeUploader()

    with pytest.raises(SiteNotFoundError, match="domain: ghost"):
        await _service(OAUTH, FakeAPIClient(), uploader=uploader).update_site(
            "dist", domain="ghost"
        )

    assert uploader.paths == []


@pytest.mark.asyncio
async def test_find_site_by_id() -> None:
    api = FakeAPIClient([Site(id="a", domain="one"), Site(id="b", domain="two")])

    site = await _service(OAUTH, api).find_site(site_id="b")

    assert site.domain == "two"


@pytest.mark.asyncio
async def test_delete_site() -> None:
    api = FakeAPIClient()

    await _service(OAUTH, api).delete_site("site-1")

    assert api.deleted == ["site-1"]


@pytest.mark.asyncio
async def test_rollback_points_site_at_known_version() -> None:
    api = FakeAPIClient([Site(id="site-1", domain="demo.orbiter.website", cid="cid-new")])
    api.versions["site-1"] = [SiteVersion(cid="cid-new"), SiteVersion(cid="cid-old")]

    await _service(OAUTH, api).rollback_site("demo", "cid-old")

    assert api.updated == [("site-1", "cid-old")]


@pytest.mark.asyncio
async def test_rollback_rejects_unknown_cid() -> None:
    api = FakeAPIClient([Site(id="site-1", domain="demo.orbiter.website")])
    api.versions["site-1"] = [SiteVersion(cid="cid-new")]

    with pytest.raises(SiteNotFoundError):
        await _service(OAUTH, api).rollback_site("demo", "cid-missing")

    assert api.updated == []
