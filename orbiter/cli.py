"""Command-line entry point: ``orbiter <command>``.

Each command builds its services from the settings, runs one async flow and
maps failures to an exit code::

    orbiter login --provider github
    orbiter auth --key <api key>
    orbiter create --domain my-site ./dist
    orbiter deploy
    orbiter new my-app --template react
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Awaitable, Callable, Dict, Optional

import httpx
from rich.console import Console
from rich.table import Table

from orbiter import __version__
from orbiter.clients import AuthProviderError, GitHubContentsError, OrbiterAPIError
from orbiter.core.config import AppSettings, get_settings
from orbiter.core.logging import configure_logging
from orbiter.dependencies import Services, build_services, get_login_flow, get_template_cache
from orbiter.schemas import SUPPORTED_OAUTH_PROVIDERS
from orbiter.services import (
    DeployOptions,
    DeploymentError,
    InvalidApiKeyError,
    LoginError,
    NotAuthenticatedError,
    ScaffoldError,
    ServerDeployOptions,
    SiteNotFoundError,
    TemplateFetchError,
    UploadError,
    authenticate_with_api_key,
)
from orbiter.services.scaffold import PACKAGE_MANAGERS, default_subdomain, validate_subdomain
from orbiter.services.templates import GENERAL_TEMPLATES, MINI_APP_TEMPLATES
from orbiter.utils.prompts import RichPrompter


EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOT_AUTHENTICATED = 2
EXIT_USAGE = 64

console = Console()

Handler = Callable[[argparse.Namespace, Services], Awaitable[int]]


async def _login(args: argparse.Namespace, services: Services) -> int:
    flow = get_login_flow(services.settings)
    console.print(f"Starting server on port {services.settings.auth.login_port}...")
    with console.status("Waiting for login in the browser..."):
        await flow.run(
            args.provider,
            on_url=lambda url: console.print(
                f"If the browser did not open, visit:\n[link={url}]{url}[/link]"
            ),
        )
    console.print("[green]Login successful![/green]")
    return EXIT_OK


async def _auth(args: argparse.Namespace, services: Services) -> int:
    key = args.key or RichPrompter(console).ask("Enter your API key", password=True)
    with console.status("Verifying API key..."):
        await authenticate_with_api_key(key, api_client=services.api_client, store=services.store)
    console.print("[green]API key saved.[/green]")
    return EXIT_OK


async def _create(args: argparse.Namespace, services: Services) -> int:
    with console.status("Creating site..."):
        await services.sites.create_site(args.path, args.domain)
    console.print(f"Site created: {services.sites.site_url(args.domain)}")
    return EXIT_OK


async def _list(args: argparse.Namespace, services: Services) -> int:
    with console.status("Fetching sites..."):
        sites = await services.sites.list_sites(args.domain)
    if not sites:
        console.print("No sites found.")
        return EXIT_OK
    table = Table("ID", "Domain", "CID", "Updated")
    for site in sites:
        table.add_row(site.id, site.domain, site.cid or "", str(site.updated_at or ""))
    console.print(table)
    return EXIT_OK


async def _update(args: argparse.Namespace, services: Services) -> int:
    if not args.site_id and not args.domain:
        console.print(
            "Provide either the --siteId or the --domain of the site you want to update. "
            "Use `orbiter list` to see both of these!"
        )
        return EXIT_USAGE
    with console.status("Updating site..."):
        cid = await services.sites.update_site(args.path, site_id=args.site_id, domain=args.domain)
    console.print(f"Site updated (CID {cid})")
    return EXIT_OK


async def _versions(args: argparse.Namespace, services: Services) -> int:
    with console.status("Fetching versions..."):
        versions = await services.sites.list_versions(args.domain)
    table = Table("CID", "Created")
    for version in versions:
        table.add_row(version.cid, str(version.created_at or ""))
    console.print(table)
    return EXIT_OK


async def _rollback(args: argparse.Namespace, services: Services) -> int:
    with console.status("Rolling back site..."):
        await services.sites.rollback_site(args.domain, args.cid)
    console.print(f"{services.sites.site_url(args.domain)} now serves {args.cid}")
    return EXIT_OK


async def _delete(args: argparse.Namespace, services: Services) -> int:
    with console.status("Deleting site..."):
        await services.sites.delete_site(args.site_id)
    console.print("Site deleted")
    return EXIT_OK


async def _deploy(args: argparse.Namespace, services: Services) -> int:
    if args.server:
        return await _deploy_server(args, services)
    if args.env:
        console.print("--env only applies to server deployments. Add --server to deploy server code.")
        return EXIT_USAGE
    config = await services.deployer.deploy_site(
        DeployOptions(
            domain=args.domain,
            site_id=args.site_id,
            build_command=args.build_command,
            build_dir=args.build_dir,
            config_path=args.config,
        )
    )
    console.print(f"Site deployed: {services.sites.site_url(config.domain)}")
    return EXIT_OK


async def _deploy_server(args: argparse.Namespace, services: Services) -> int:
    config = await services.deployer.deploy_server(
        ServerDeployOptions(
            site_id=args.site_id,
            entry_path=getattr(args, "entry_file", None),
            build_command=args.build_command,
            build_dir=args.build_dir,
            config_path=args.config,
            include_env=args.env,
        )
    )
    console.print(f"Server deployed to site {config.site_id}")
    return EXIT_OK


async def _scaffold(args: argparse.Namespace, services: Services, subdirectory: str) -> int:
    prompter = RichPrompter(console)
    name = args.name or prompter.ask("What would you like to name your project?")
    app_name = None
    if subdirectory == MINI_APP_TEMPLATES:
        app_name = args.app_name or prompter.ask(
            "What should your Mini App be called?", default=name
        )
    domain = args.domain or prompter.ask(
        f"Choose a subdomain for your app (yourname.{services.settings.api.site_domain})",
        default=default_subdomain(name),
    )
    error = validate_subdomain(domain)
    if error:
        console.print(f"[red]{error}[/red]")
        return EXIT_USAGE

    template = args.template
    if not template:
        cache = get_template_cache(services.settings, subdirectory)
        with console.status("Fetching available templates..."):
            templates = await cache.list_available()
        if not templates:
            console.print("No templates found. Check your internet connection or try again later.")
            return EXIT_ERROR
        template = prompter.choose("Select a template", [(t, t) for t in templates])

    with console.status(f"Creating project with {template} template..."):
        scaffolder = (
            services.miniapp_scaffolder()
            if subdirectory == MINI_APP_TEMPLATES
            else services.scaffolder()
        )
        target = await scaffolder.create_app(
            name,
            domain=domain,
            template=template,
            package_manager=args.package_manager,
            app_name=app_name,
        )
    console.print(
        f"App created in {target} and deployed to {services.sites.site_url(domain)}"
    )
    return EXIT_OK


async def _new(args: argparse.Namespace, services: Services) -> int:
    return await _scaffold(args, services, GENERAL_TEMPLATES)


async def _miniapp(args: argparse.Namespace, services: Services) -> int:
    return await _scaffold(args, services, MINI_APP_TEMPLATES)


async def _templates(args: argparse.Namespace, services: Services) -> int:
    cache = get_template_cache(services.settings, args.kind)
    if args.update:
        with console.status("Updating template cache..."):
            names = await cache.refresh_all()
        console.print(f"Updated {len(names)} templates")
        return EXIT_OK
    with console.status("Fetching available templates..."):
        names = await cache.list_available()
    for name in names:
        console.print(f"  - {name}")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="orbiter",
        description="Create and manage static sites with Orbiter. Get started by running `orbiter auth`.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="Logging level (default: WARNING).")
    subparsers = parser.add_subparsers(dest="command", required=True)

    login = subparsers.add_parser("login", help="Login with OAuth")
    login.add_argument("--provider", "-p", required=True, choices=SUPPORTED_OAUTH_PROVIDERS)

    auth = subparsers.add_parser("auth", help="Authenticate using an API key")
    auth.add_argument("--key", "-k", help="Your API key (prompted when omitted)")

    create = subparsers.add_parser("create", help="Upload and create a new site")
    create.add_argument("path", help='Build directory (e.g. "dist") or index.html file')
    create.add_argument("--domain", "-d", required=True, help="Subdomain for the new site")

    list_ = subparsers.add_parser("list", help="List existing sites for your account")
    list_.add_argument("--domain", "-d", help="Filter by exact subdomain")

    update = subparsers.add_parser("update", help="Update a site with a new file or folder")
    update.add_argument("path", help='Build directory (e.g. "dist")')
    update.add_argument("--siteId", "-s", dest="site_id", help="ID of the target site")
    update.add_argument("--domain", "-d", help="Subdomain of the target site")

    versions = subparsers.add_parser("versions", help="List versions of your website")
    versions.add_argument("domain", help="Subdomain of your site")

    rollback = subparsers.add_parser("rollback", help="Rollback a site to a previous version")
    rollback.add_argument("domain", help="Subdomain of your site")
    rollback.add_argument("cid", help="CID of the version to restore (see `orbiter versions`)")

    delete = subparsers.add_parser("delete", help="Delete an existing site")
    delete.add_argument("site_id", metavar="siteId", help="ID of the site to delete")

    def add_build_arguments(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument("--siteId", "-s", dest="site_id", help="ID of the existing site")
        subparser.add_argument("--buildCommand", "-b", dest="build_command", help="Build command to run")
        subparser.add_argument("--buildDir", "-o", dest="build_dir", help="Output directory for the build")
        subparser.add_argument("--config", "-c", help="Path to an existing orbiter.json")
        subparser.add_argument(
            "--env", action="store_true", help="Include local .env variables (server deployments only)"
        )

    deploy = subparsers.add_parser("deploy", help="Deploy using orbiter.json or set up a new deployment")
    add_build_arguments(deploy)
    deploy.add_argument("--domain", "-d", help="Subdomain for the site")
    deploy.add_argument("--server", action="store_true", help="Deploy server/API code instead of a static site")

    deploy_server = subparsers.add_parser("deploy-server", help="Deploy server/API code")
    add_build_arguments(deploy_server)
    deploy_server.add_argument("--entryFile", "-e", dest="entry_file", help="Server entry file (e.g. src/index.ts)")

    for name, help_text in (
        ("new", "Create a new app ready to deploy"),
        ("miniapp", "Create a new Farcaster Mini App ready to deploy"),
    ):
        scaffold = subparsers.add_parser(name, help=help_text)
        scaffold.add_argument("name", nargs="?", help="Name of the new project")
        scaffold.add_argument("--template", "-t", help="Template to use")
        scaffold.add_argument("--domain", "-d", help="Subdomain for the app")
        scaffold.add_argument(
            "--package-manager", default="npm", choices=sorted(PACKAGE_MANAGERS), help="Package manager (default: npm)"
        )
        if name == "miniapp":
            scaffold.add_argument("--app-name", help="Display name of the Mini App")

    templates = subparsers.add_parser("templates", help="List or refresh cached templates")
    templates.add_argument("--kind", choices=(GENERAL_TEMPLATES, MINI_APP_TEMPLATES), default=GENERAL_TEMPLATES)
    templates.add_argument("--update", action="store_true", help="Re-download every template")

    return parser


HANDLERS: Dict[str, Handler] = {
    "login": _login,
    "auth": _auth,
    "create": _create,
    "list": _list,
    "update": _update,
    "versions": _versions,
    "rollback": _rollback,
    "delete": _delete,
    "deploy": _deploy,
    "deploy-server": _deploy_server,
    "new": _new,
    "miniapp": _miniapp,
    "templates": _templates,
}


def main(
    argv: list[str] | None = None,
    *,
    settings: Optional[AppSettings] = None,
    services_factory: Callable[[AppSettings], Services] = build_services,
) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    settings = settings or get_settings()
    configure_logging(args.log_level or settings.log_level)
    services = services_factory(settings)

    try:
        return asyncio.run(HANDLERS[args.command](args, services))
    except NotAuthenticatedError as exc:
        console.print(f"[yellow]{exc}[/yellow]")
        return EXIT_NOT_AUTHENTICATED
    except (
        AuthProviderError,
        DeploymentError,
        GitHubContentsError,
        InvalidApiKeyError,
        LoginError,
        OrbiterAPIError,
        ScaffoldError,
        SiteNotFoundError,
        TemplateFetchError,
        UploadError,
    ) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        return EXIT_ERROR
    except httpx.HTTPError as exc:
        console.print(f"[red]Network error:[/red] {exc}")
        return EXIT_ERROR
    except KeyboardInterrupt:
        return EXIT_ERROR


def run() -> None:  # pragma: no cover - console script entry point
    sys.exit(main())


if __name__ == "__main__":  # pragma: no cover - script entry point
    run()
