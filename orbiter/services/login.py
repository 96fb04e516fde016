"""
Browser-based OAuth login through a short-lived local listener.
"""

from __future__ import annotations

import asyncio
import logging
import socket
import webbrowser
from typing import Callable, Optional

import uvicorn

from orbiter.api.callback import create_callback_app
from orbiter.clients.supabase_auth import SupabaseAuthClient
from orbiter.core.config import AuthSettings
from orbiter.models.credentials import CredentialRecord
from orbiter.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)

LISTEN_HOST = "127.0.0.1"


class LoginError(Exception):
    """Raised when the login listener cannot complete the flow."""


class LoginTimeoutError(LoginError):
    """Raised when no OAuth callback arrives before the deadline."""


def _port_available(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((LISTEN_HOST, port))
        except OSError:
            return False
    return True


class OAuthLoginFlow:
    """Start a listener, send the user to the provider, wait for the callback."""

    def __init__(
        self,
        settings: AuthSettings,
        auth_client: SupabaseAuthClient,
        store: CredentialStore,
        *,
        open_browser: Callable[[str], object] = webbrowser.open,
        shutdown_delay: float = 1.0,
    ) -> None:
        self._settings = settings
        self._auth = auth_client
        self._store = store
        self._open_browser = open_browser
        self._shutdown_delay = shutdown_delay

    @property
    def redirect_url(self) -> str:
        return f"http://localhost:{self._settings.login_port}"

    async def run(
        self, provider: str, *, on_url: Optional[Callable[[str], None]] = None
    ) -> CredentialRecord:
        """Complete the login and return the stored credential."""
        port = self._settings.login_port
        authorization_url = self._auth.build_authorization_url(provider, self.redirect_url)
        if not _port_available(port):
            raise LoginError(f"Port {port} is already in use; cannot receive the login callback.")

        loop = asyncio.get_running_loop()
        completed: asyncio.Future[CredentialRecord] = loop.create_future()

        def _on_success(record: CredentialRecord) -> None:
            if not completed.done():
                completed.set_result(record)

        app = create_callback_app(self._auth, self._store, _on_success)
        server = uvicorn.Server(
            uvicorn.Config(app, host=LISTEN_HOST, port=port, log_level="warning", lifespan="off")
        )
        serve_task = asyncio.create_task(server.serve())
        logger.info("Starting login listener on port %s", port)

        try:
            while not server.started:
                if serve_task.done():
                    raise LoginError(f"Login listener failed to start on port {port}.")
                await asyncio.sleep(0.05)

            if on_url is not None:
                on_url(authorization_url)
            self._open_browser(authorization_url)

            done, _ = await asyncio.wait(
                {completed, serve_task},
                timeout=self._settings.login_timeout_seconds,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if completed not in done:
                if serve_task in done:
                    raise LoginError("Login listener stopped before a callback arrived.")
                raise LoginTimeoutError("Authentication timed out. Please try again.")

            # Lets the browser receive the callback response.
            await asyncio.sleep(self._shutdown_delay)
            return completed.result()
        finally:
            server.should_exit = True
            if not serve_task.done():
                await serve_task
            if not completed.done():
                completed.cancel()
            logger.info("Login listener stopped")


__all__ = ["LoginError", "LoginTimeoutError", "OAuthLoginFlow"]
