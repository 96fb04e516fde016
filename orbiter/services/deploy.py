"""
Build-and-deploy flows driven by the per-project ``orbiter.json``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Type, TypeVar

from dotenv import dotenv_values
from pydantic import BaseModel, ValidationError

from orbiter.clients.orbiter_api import OrbiterAPIClient
from orbiter.schemas import DeploymentConfig, FunctionDeployment, ServerDeploymentConfig
from orbiter.services.sites import SiteService
from orbiter.services.tokens import TokenValidityResolver
from orbiter.utils.prompts import Prompter

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "orbiter.json"

ConfigT = TypeVar("ConfigT", bound=BaseModel)
CommandRunner = Callable[[str, Path], Awaitable[None]]


class DeploymentError(Exception):
    """Raised when a build or deployment step fails."""


async def run_shell(command: str, cwd: Path) -> None:
    """Run a build command in ``cwd``; a non-zero exit raises ``DeploymentError``."""
    process = await asyncio.create_subprocess_shell(
        command,
        cwd=str(cwd),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()
    if process.returncode != 0:
        output = (stderr or stdout).decode("utf-8", errors="replace").strip()
        raise DeploymentError(
            f"Command `{command}` failed with exit code {process.returncode}"
            + (f":\n{output[-2000:]}" if output else "")
        )
    logger.debug("Command `%s` finished", command)


def load_config(path: Path, model: Type[ConfigT]) -> Optional[ConfigT]:
    """Parse ``path`` as ``model``; unreadable or mismatched files count as absent."""
    if not path.is_file():
        return None
    try:
        return model.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, ValueError, ValidationError) as exc:
        logger.warning("Ignoring unusable config %s: %s", path, exc)
        return None


def write_config(path: Path, config: DeploymentConfig | ServerDeploymentConfig) -> None:
    path.write_text(config.to_json() + "\n", encoding="utf-8")


@dataclass
class DeployOptions:
    domain: Optional[str] = None
    site_id: Optional[str] = None
    build_command: Optional[str] = None
    build_dir: Optional[str] = None
    config_path: Optional[str] = None

    def has_overrides(self) -> bool:
        return any((self.domain, self.site_id, self.build_command, self.build_dir))


@dataclass
class ServerDeployOptions:
    site_id: Optional[str] = None
    entry_path: Optional[str] = None
    build_command: Optional[str] = None
    build_dir: Optional[str] = None
    runtime: Optional[str] = None
    config_path: Optional[str] = None
    include_env: bool = False

    def has_overrides(self) -> bool:
        return any((self.site_id, self.entry_path, self.build_command, self.build_dir, self.runtime))


class DeployService:
    """Deploy static sites and server bundles from a project directory."""

    def __init__(
        self,
        *,
        sites: SiteService,
        api_client: OrbiterAPIClient,
        resolver: TokenValidityResolver,
        prompter: Prompter,
        run_command: CommandRunner = run_shell,
    ) -> None:
        self._sites = sites
        self._api = api_client
        self._resolver = resolver
        self._prompter = prompter
        self._run = run_command

    @staticmethod
    def config_path(cwd: Path, override: Optional[str] = None) -> Path:
        if override:
            path = Path(override)
            return path if path.is_absolute() else cwd / path
        return cwd / CONFIG_FILE_NAME

    async def _create_site_config(self, options: DeployOptions) -> DeploymentConfig:
        site_id = options.site_id
        domain = options.domain

        if site_id and not domain:
            site = await self._sites.find_site(site_id=site_id)
            domain = self._sites.normalize_subdomain(site.domain)

        if not site_id and not domain:
            existing = await self._sites.list_sites()
            action = "new"
            if existing:
                action = self._prompter.choose(
                    "Would you like to",
                    [("Create new site", "new"), ("Link to existing site", "existing")],
                )
            if action == "existing":
                site = self._prompter.choose(
                    "Select a site to link",
                    [(f"{s.domain} ({s.id})", s) for s in existing],
                )
                site_id = site.id
                domain = self._sites.normalize_subdomain(site.domain)
            else:
                domain = self._prompter.ask("Enter a subdomain for your new site")

        return DeploymentConfig(
            site_id=site_id,
            domain=self._sites.normalize_subdomain(domain),
            build_command=options.build_command
            or self._prompter.ask("Enter build command", default="npm run build"),
            build_dir=options.build_dir
            or self._prompter.ask("Enter build directory", default="dist"),
        )

    async def deploy_site(
        self, options: Optional[DeployOptions] = None, *, cwd: Optional[Path] = None
    ) -> DeploymentConfig:
        """Build the project and create or update its site."""
        options = options or DeployOptions()
        cwd = cwd or Path.cwd()
        path = self.config_path(cwd, options.config_path)

        config = None if options.has_overrides() else load_config(path, DeploymentConfig)
        if config is None:
            logger.info("No configuration found or options provided. Starting setup...")
            config = await self._create_site_config(options)
            write_config(path, config)

        logger.info("Running build command: %s", config.build_command)
        await self._run(config.build_command, cwd)

        build_path = cwd / config.build_dir
        if config.site_id:
            await self._sites.update_site(build_path, site_id=config.site_id)
            return config

        site = await self._sites.create_site(build_path, config.domain)
        if site is None:
            matches = await self._sites.list_sites(config.domain)
            site = matches[0] if matches else None
        if site is not None:
            config.site_id = site.id
            write_config(path, config)
        return config

    async def _create_server_config(self, options: ServerDeployOptions) -> ServerDeploymentConfig:
        site_id = options.site_id
        if not site_id:
            existing = await self._sites.list_sites()
            if not existing:
                raise DeploymentError(
                    "No sites found. Create a site before deploying server code."
                )
            site = self._prompter.choose(
                "Select the site to deploy server code to",
                [(f"{s.domain} ({s.id})", s) for s in existing],
            )
            site_id = site.id

        return ServerDeploymentConfig(
            site_id=site_id,
            entry_path=options.entry_path
            or self._prompter.ask("Enter server entry file", default="src/index.ts"),
            build_command=options.build_command
            or self._prompter.ask("Enter build command", default="npm run build"),
            build_dir=options.build_dir
            or self._prompter.ask("Enter build directory", default="dist"),
            runtime=options.runtime or "node",
        )

    async def deploy_server(
        self, options: Optional[ServerDeployOptions] = None, *, cwd: Optional[Path] = None
    ) -> ServerDeploymentConfig:
        """Build the server bundle and deploy it as the site's function."""
        options = options or ServerDeployOptions()
        cwd = cwd or Path.cwd()
        path = self.config_path(cwd, options.config_path)

        config = None if options.has_overrides() else load_config(path, ServerDeploymentConfig)
        if config is None:
            config = await self._create_server_config(options)
            write_config(path, config)

        await self._run(config.build_command, cwd)

        bundle = cwd / config.build_dir / f"{Path(config.entry_path).stem}.js"
        if not bundle.is_file():
            raise DeploymentError(f"Build output not found: {bundle}")

        env: Dict[str, str] = {}
        if options.include_env:
            env_file = cwd / ".env"
            if not env_file.is_file():
                raise DeploymentError(f"--env was given but {env_file} does not exist")
            env = {k: v for k, v in dotenv_values(env_file).items() if v is not None}

        credential = await self._resolver.require()
        deployment = FunctionDeployment(
            script=bundle.read_text(encoding="utf-8"), runtime=config.runtime, env=env
        )
        await self._api.deploy_function(credential, config.site_id, deployment)
        logger.info("Deployed %s to site %s", bundle, config.site_id)
        return config


__all__ = [
    "CONFIG_FILE_NAME",
    "DeployOptions",
    "DeployService",
    "DeploymentError",
    "ServerDeployOptions",
    "load_config",
    "run_shell",
    "write_config",
]
