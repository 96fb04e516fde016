"""
Create new projects from cached templates and deploy them.

General templates only get their ``package.json`` renamed. Farcaster Mini App
templates also get the ``fc:frame`` meta tag and ``farcaster.json`` frame
pointed at the new site, and an account association once the site exists.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

import httpx

from orbiter.clients.orbiter_api import OrbiterAPIClient, OrbiterAPIError
from orbiter.schemas import DeploymentConfig
from orbiter.services.deploy import CommandRunner, DeployOptions, DeployService, run_shell
from orbiter.services.sites import SiteService
from orbiter.services.templates import CACHE_META_FILE, TEMPLATE_META_FILE, TemplateCache
from orbiter.services.tokens import TokenValidityResolver

logger = logging.getLogger(__name__)

SKIPPED_FILES = frozenset({CACHE_META_FILE, TEMPLATE_META_FILE})
MONOREPO_TEMPLATE = "bhvr"
MONOREPO_SUBPACKAGES = ("client", "server", "shared")
FARCASTER_MANIFEST = Path("public") / ".well-known" / "farcaster.json"
DEFAULT_MINIAPP_NAME = "Orbiter App"

_SUBDOMAIN_RE = re.compile(r"^[a-z0-9-]+$")
_FRAME_META_RE = re.compile(r'<meta name="fc:frame"[^>]*>')

# (file content, path relative to the template root) -> new content
FileRewriter = Callable[[str, Path], str]


@dataclass(frozen=True)
class PackageManager:
    install: str
    build: str


PACKAGE_MANAGERS: Dict[str, PackageManager] = {
    "npm": PackageManager("npm install", "npm run build"),
    "yarn": PackageManager("yarn", "yarn build"),
    "pnpm": PackageManager("pnpm install", "pnpm run build"),
    "bun": PackageManager("bun install", "bun run build"),
}


class ScaffoldError(Exception):
    """Raised when a project cannot be created."""


def default_subdomain(project_name: str) -> str:
    return re.sub(r"\s+", "-", project_name.strip().lower())


def validate_subdomain(value: str) -> Optional[str]:
    """Return an error message, or ``None`` when ``value`` is usable."""
    if not value:
        return "Subdomain is required"
    if "." in value:
        return "Please enter only the subdomain part (without the site domain)"
    if not _SUBDOMAIN_RE.match(value):
        return "Subdomain can only contain lowercase letters, numbers, and hyphens"
    return None


def _rename_package(content: str, name: str) -> str:
    try:
        package = json.loads(content)
    except ValueError as exc:
        logger.warning("Error processing package.json, using original: %s", exc)
        return content
    package["name"] = name
    return json.dumps(package, indent=2)


def rewrite_package_json(content: str, *, domain: str, relative_path: Path, template: str) -> str:
    """Name the package after the subdomain; only the root one for the monorepo template."""
    parts = relative_path.parts
    if template == MONOREPO_TEMPLATE and len(parts) > 1 and parts[0] in MONOREPO_SUBPACKAGES:
        return content
    return _rename_package(content, default_subdomain(domain) or "my-app")


def frame_meta_tag(*, host: str, app_name: str) -> str:
    """The ``fc:frame`` meta tag launching the app hosted at ``host``."""
    frame = {
        "version": "next",
        "imageUrl": f"https://{host}/image.png",
        "button": {
            "title": "Launch",
            "action": {
                "type": "launch_frame",
                "name": app_name,
                "url": f"https://{host}",
                "splashImageUrl": f"https://{host}/splash.png",
                "splashBackgroundColor": "#ffffff",
            },
        },
    }
    content = json.dumps(frame, separators=(",", ":")).replace("'", "&#39;")
    return f"<meta name=\"fc:frame\" content='{content}' />"


def rewrite_index_html(content: str, *, host: str, app_name: str) -> str:
    """Replace the first ``fc:frame`` tag, or add one before ``<title>`` or ``</head>``."""
    tag = frame_meta_tag(host=host, app_name=app_name)
    if _FRAME_META_RE.search(content):
        return _FRAME_META_RE.sub(lambda _: tag, content, count=1)
    if "<title>" in content:
        return content.replace("<title>", f"{tag}\n      <title>", 1)
    return content.replace("</head>", f"  {tag}\n    </head>", 1)


def rewrite_farcaster_json(content: str, *, host: str, app_name: str) -> str:
    """Point the manifest's ``frame`` at ``host``; other manifests pass through."""
    try:
        manifest = json.loads(content)
    except ValueError as exc:
        logger.warning("Error processing farcaster.json, using original: %s", exc)
        return content

    frame = manifest.get("frame") if isinstance(manifest, dict) else None
    if isinstance(frame, dict):
        frame.update(
            name=app_name,
            homeUrl=f"https://{host}",
            iconUrl=f"https://{host}/icon.png",
            imageUrl=f"https://{host}/image.png",
            splashImageUrl=f"https://{host}/splash.png",
        )
    return json.dumps(manifest, indent=2)


def copy_template(source: Path, target: Path, rewriters: Mapping[str, FileRewriter]) -> None:
    """Copy the template tree into ``target``, passing named files through ``rewriters``."""
    for item in sorted(source.rglob("*")):
        relative = item.relative_to(source)
        if item.is_file() and item.name in SKIPPED_FILES:
            continue
        destination = target / relative
        if item.is_dir():
            destination.mkdir(parents=True, exist_ok=True)
            continue
        destination.parent.mkdir(parents=True, exist_ok=True)
        rewrite = rewriters.get(item.name)
        if rewrite is None:
            shutil.copy2(item, destination)
        else:
            destination.write_text(
                rewrite(item.read_text(encoding="utf-8"), relative), encoding="utf-8"
            )


class ScaffoldService:
    """Turn a template into a deployed project."""

    def __init__(
        self,
        *,
        cache: TemplateCache,
        deployer: DeployService,
        run_command: CommandRunner = run_shell,
    ) -> None:
        self._cache = cache
        self._deployer = deployer
        self._run = run_command

    def _rewriters(
        self, *, domain: str, template: str, app_name: Optional[str]
    ) -> Dict[str, FileRewriter]:
        return {
            "package.json": lambda content, relative: rewrite_package_json(
                content, domain=domain, relative_path=relative, template=template
            )
        }

    async def create_app(
        self,
        project_name: str,
        *,
        domain: str,
        template: str,
        package_manager: str = "npm",
        cwd: Optional[Path] = None,
        build_dir: str = "dist",
        app_name: Optional[str] = None,
    ) -> Path:
        """Fetch ``template``, copy it to ``<cwd>/<project_name>``, install and deploy."""
        error = validate_subdomain(domain)
        if error:
            raise ScaffoldError(error)
        manager = PACKAGE_MANAGERS.get(package_manager)
        if manager is None:
            raise ScaffoldError(
                f"Unknown package manager '{package_manager}'. "
                f"Choose one of: {', '.join(PACKAGE_MANAGERS)}"
            )

        target = (cwd or Path.cwd()) / project_name
        if target.exists() and any(target.iterdir()):
            raise ScaffoldError(f"Directory {target} already exists and is not empty")

        template_dir = await self._cache.fetch(template)
        target.mkdir(parents=True, exist_ok=True)
        copy_template(
            template_dir,
            target,
            self._rewriters(domain=domain, template=template, app_name=app_name),
        )

        logger.info("Installing dependencies with %s", package_manager)
        await self._run(manager.install, target)

        working_dir = target / "client" if template == MONOREPO_TEMPLATE else target
        options = DeployOptions(domain=domain, build_command=manager.build, build_dir=build_dir)
        config = await self._deployer.deploy_site(options, cwd=working_dir)
        await self._after_deploy(target, working_dir=working_dir, options=options, config=config)
        return target

    async def _after_deploy(
        self,
        target: Path,
        *,
        working_dir: Path,
        options: DeployOptions,
        config: Optional[DeploymentConfig],
    ) -> None:
        return None


class MiniAppScaffoldService(ScaffoldService):
    """Scaffold a Farcaster Mini App and associate it with the user's account."""

    def __init__(
        self,
        *,
        cache: TemplateCache,
        deployer: DeployService,
        sites: SiteService,
        api_client: OrbiterAPIClient,
        resolver: TokenValidityResolver,
        site_domain: str = "orbiter.website",
        run_command: CommandRunner = run_shell,
    ) -> None:
        super().__init__(cache=cache, deployer=deployer, run_command=run_command)
        self._sites = sites
        self._api = api_client
        self._resolver = resolver
        self._site_domain = site_domain

    def _rewriters(
        self, *, domain: str, template: str, app_name: Optional[str]
    ) -> Dict[str, FileRewriter]:
        host = f"{domain}.{self._site_domain}"
        frame_name = app_name or DEFAULT_MINIAPP_NAME
        rewriters: Dict[str, FileRewriter] = {
            "index.html": lambda content, _: rewrite_index_html(
                content, host=host, app_name=frame_name
            ),
            "farcaster.json": lambda content, _: rewrite_farcaster_json(
                content, host=host, app_name=frame_name
            ),
        }
        if app_name:
            rewriters["package.json"] = lambda content, _: _rename_package(
                content, default_subdomain(app_name)
            )
        return rewriters

    async def _after_deploy(
        self,
        target: Path,
        *,
        working_dir: Path,
        options: DeployOptions,
        config: Optional[DeploymentConfig],
    ) -> None:
        site_id = config.site_id if config is not None else None
        if not site_id:
            matches = await self._sites.list_sites(options.domain)
            if not matches:
                raise ScaffoldError(f"Could not find deployed site for domain {options.domain}")
            site_id = matches[0].id

        manifest = target / FARCASTER_MANIFEST
        if not manifest.is_file():
            return
        try:
            await self.setup_account_association(site_id, manifest)
        except (ScaffoldError, OrbiterAPIError, httpx.HTTPError) as exc:
            # The first deployment already serves the app.
            logger.warning("Skipping Farcaster account association: %s", exc)
            return

        await self._deployer.deploy_site(replace(options, site_id=site_id), cwd=working_dir)

    async def setup_account_association(self, site_id: str, manifest_path: Path) -> Dict[str, Any]:
        """Fetch the site's account association and merge it into ``farcaster.json``."""
        credential = await self._resolver.require()
        association = await self._api.account_association(credential, site_id)
        if not association:
            raise ScaffoldError("API returned empty response for account association")

        try:
            manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ScaffoldError(f"Failed to read or parse {manifest_path}: {exc}") from exc
        if not isinstance(manifest, dict):
            raise ScaffoldError(f"{manifest_path} does not hold a JSON object")

        if isinstance(association, dict) and "accountAssociation" in association:
            association = association["accountAssociation"]
        manifest["accountAssociation"] = association
        manifest_path.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
        logger.info("Added account association for site %s", site_id)
        return manifest


__all__ = [
    "FARCASTER_MANIFEST",
    "PACKAGE_MANAGERS",
    "MiniAppScaffoldService",
    "PackageManager",
    "ScaffoldError",
    "ScaffoldService",
    "copy_template",
    "default_subdomain",
    "frame_meta_tag",
    "rewrite_farcaster_json",
    "rewrite_index_html",
    "rewrite_package_json",
    "validate_subdomain",
]
