from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import httpx
import pytest

from orbiter import cli
from orbiter.clients.orbiter_api import OrbiterAPIClient
from orbiter.core.config import ApiSettings, AppSettings, AuthSettings, TemplateSettings
from orbiter.dependencies import Services, build_services
from orbiter.models.credentials import KeyType
from orbiter.services.credential_store import CredentialStore


@pytest.fixture
def settings(
    auth_settings: AuthSettings, api_settings: ApiSettings, template_settings: TemplateSettings
) -> AppSettings:
    return AppSettings(
        log_level="WARNING", auth=auth_settings, api=api_settings, templates=template_settings
    )


def test_list_without_credential_exits_not_authenticated(settings: AppSettings) -> None:
    assert cli.main(["list"], settings=settings) == cli.EXIT_NOT_AUTHENTICATED


def test_update_without_target_is_usage_error(settings: AppSettings, store: CredentialStore) -> None:
    store.store("token", "refresh")

    assert cli.main(["update", "dist"], settings=settings) == cli.EXIT_USAGE


def test_parser_rejects_unknown_provider(settings: AppSettings) -> None:
    with pytest.raises(SystemExit):
        cli.main(["login", "--provider", "gitlab"], settings=settings)


def _with_api(handler):
    def factory(settings: AppSettings) -> Services:
        services = build_services(settings)
        services.api_client = OrbiterAPIClient(
            settings.api, transport=httpx.MockTransport(handler)
        )
        return services

    return factory


def test_auth_command_stores_api_key(settings: AppSettings, store: CredentialStore) -> None:
    factory = _with_api(lambda request: httpx.Response(200, json={"data": []}))

    code = cli.main(["auth", "--key", "K123"], settings=settings, services_factory=factory)

    assert code == cli.EXIT_OK
    record = store.load()
    assert record is not None
    assert record.access_token == "K123"
    assert record.key_type is KeyType.APIKEY


def test_auth_command_rejected_key_exits_with_error(
    settings: AppSettings, store: CredentialStore
) -> None:
    factory = _with_api(lambda request: httpx.Response(401, json={"message": "Unauthorized"}))

    code = cli.main(["auth", "--key", "bad"], settings=settings, services_factory=factory)

    assert code == cli.EXIT_ERROR
    assert store.load() is None


def test_static_deploy_rejects_env_flag(settings: AppSettings, store: CredentialStore) -> None:
    store.store("token", "refresh")

    assert cli.main(["deploy", "--env", "--domain", "demo"], settings=settings) == cli.EXIT_USAGE


def test_unsafe_template_name_is_reported_not_raised(
    settings: AppSettings, tmp_path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    precious = settings.templates.cache_dir.parent / "precious.txt"
    precious.parent.mkdir(parents=True)
    precious.write_text("keep", encoding="utf-8")

    code = cli.main(["new", "app", "--domain", "app", "--template", ".."], settings=settings)

    assert code == cli.EXIT_ERROR
    assert precious.read_text(encoding="utf-8") == "keep"
    assert not (tmp_path / "app").exists()
