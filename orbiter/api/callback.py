"""
Local FastAPI app that captures the OAuth redirect.

The provider returns tokens in the URL fragment, which browsers never send to
servers. ``/`` serves a page that forwards the fragment to ``/callback`` as
query parameters.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Callable, Optional, Protocol

import httpx
from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import HTMLResponse, PlainTextResponse

from orbiter.clients.supabase_auth import AuthProviderError
from orbiter.models.credentials import CredentialRecord, KeyType
from orbiter.schemas import AuthSession, OAuthCallbackParams
from orbiter.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)

LANDING_PAGE = """<!DOCTYPE html>
<html>
  <head>
    <title>Orbiter login</title>
    <style>
      body {
        display: flex;
        min-height: 100vh;
        margin: 0;
        justify-content: center;
        align-items: center;
        font-family: system-ui, -apple-system, sans-serif;
        font-size: 32px;
        font-weight: bold;
      }
    </style>
  </head>
  <body>
    <p id="status">Processing login...</p>
    <script>
      const hash = window.location.hash.substring(1);
      const status = document.getElementById("status");
      if (hash) {
        fetch("/callback?" + hash)
          .then((res) => {
            status.textContent = res.ok
              ? "Login successful! You can close this window."
              : "Login failed. Please try again.";
          })
          .catch(() => {
            status.textContent = "Login failed. Please try again.";
          });
      } else {
        status.textContent = "Login failed. No credentials were returned.";
      }
    </script>
  </body>
</html>
"""


class SessionEstablisher(Protocol):
    async def establish_session(
        self, access_token: str, refresh_token: Optional[str]
    ) -> AuthSession: ...


def create_callback_app(
    auth_client: SessionEstablisher,
    store: CredentialStore,
    on_success: Callable[[CredentialRecord], None],
) -> FastAPI:
    """Build the listener app; ``on_success`` fires once a record is stored."""
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/", response_class=HTMLResponse)
    async def landing() -> str:
        return LANDING_PAGE

    @app.get("/callback", response_class=PlainTextResponse)
    async def callback(
        access_token: Optional[str] = Query(None),
        refresh_token: Optional[str] = Query(None),
        expires_in: Optional[int] = Query(None),
        token_type: Optional[str] = Query(None),
        error: Optional[str] = Query(None),
        error_description: Optional[str] = Query(None),
    ) -> str:
        params = OAuthCallbackParams(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=expires_in,
            token_type=token_type,
            error=error,
            error_description=error_description,
        )
        if params.error:
            logger.error("Provider returned an error: %s", params.error_description or params.error)
            raise HTTPException(
                status_code=HTTPStatus.BAD_REQUEST,
                detail=params.error_description or params.error,
            )
        if not params.access_token:
            logger.error("No access token found")
            raise HTTPException(
                status_code=HTTPStatus.BAD_REQUEST, detail="No access token found"
            )

        try:
            session = await auth_client.establish_session(
                params.access_token, params.refresh_token
            )
        except AuthProviderError as exc:
            logger.error("Error setting session: %s", exc)
            raise HTTPException(
                status_code=HTTPStatus.BAD_REQUEST, detail="Error setting session"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Auth provider unreachable: %s", exc)
            raise HTTPException(
                status_code=HTTPStatus.BAD_GATEWAY,
                detail="Could not reach the auth provider. Please try again.",
            ) from exc

        record = store.store(session.access_token, session.refresh_token, KeyType.OAUTH)
        on_success(record)
        return "Success"

    return app


__all__ = ["LANDING_PAGE", "create_callback_app"]
