"""
Thin wrapper around the Spotify Web API.

Two kinds of tokens are used:

* app tokens from the *client credentials* flow, for public lookups such as
  track search when a user has not linked an account;
* user tokens from the *authorization code* flow, stored on the user row and
  refreshed through :mod:`empatify.services.spotify.tokens`.

Usage::

    client = SpotifyClient(client_id="abc", client_secret="xyz", token_cache=TokenCache())
    results = client.search_tracks("daft punk")
"""

from __future__ import annotations

import logging
import time
import urllib.parse
from typing import Any, Dict, Optional

import requests

from .tokens import TokenCache, TOKEN_REFRESH_MARGIN_SEC

logger = logging.getLogger(__name__)

_ACCOUNTS_BASE = "https://accounts.spotify.com"
_TOKEN_URL = _ACCOUNTS_BASE + "/api/token"
_AUTHORIZE_URL = _ACCOUNTS_BASE + "/authorize"
_API_BASE = "https://api.spotify.com/v1"
_DEFAULT_TIMEOUT = 10  # seconds

SCOPES = (
    "user-read-email",
    "user-read-private",
    "user-read-playback-state",
    "user-modify-playback-state",
    "user-read-currently-playing",
    "playlist-read-private",
    "playlist-read-collaborative",
    "streaming",
)


class SpotifyAuthError(Exception):
    """Raised when a Spotify token cannot be obtained or refreshed."""


class SpotifyAPIError(Exception):
    """Raised when the Web API answers with an error status."""

    def __init__(self, message: str, status_code: int = 502) -> None:
        super().__init__(message)
        self.status_code = status_code


class SpotifyClient:
    """Minimal Spotify client with a cached client-credentials token."""

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        timeout: int = _DEFAULT_TIMEOUT,
        token_cache: Optional[TokenCache] = None,
    ) -> None:
        if not client_id or not client_secret:
            raise SpotifyAuthError("Spotify credentials not configured")
        self._client_id = client_id
        self._client_secret = client_secret
        self._timeout = timeout
        self._token_cache = token_cache if token_cache is not None else TokenCache()

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    def authorize_url(self, redirect_uri: str, state: str) -> str:
        query = urllib.parse.urlencode({
            "response_type": "code",
            "client_id": self._client_id,
            "scope": " ".join(SCOPES),
            "redirect_uri": redirect_uri,
            "state": state,
            "show_dialog": "false",
        })
        return f"{_AUTHORIZE_URL}?{query}"

    def exchange_code(self, code: str, redirect_uri: str) -> Dict[str, Any]:
        """Trade an authorization code for ``access_token``/``refresh_token``/``expires_in``."""
        return self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
        })

    def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        return self._token_request({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        })

    def client_credentials_token(self) -> str:
        """Return an app token, reusing the cached one while it stays valid."""
        now = time.time()
        if self._token_cache.is_valid(now, TOKEN_REFRESH_MARGIN_SEC):
            return self._token_cache.value

        body = self._token_request({"grant_type": "client_credentials"})
        expires_in = int(body.get("expires_in", 3600))
        self._token_cache.store(body["access_token"], expires_in, now)
        logger.debug("Obtained new Spotify app token (expires in %ds)", expires_in)
        return body["access_token"]

    # ------------------------------------------------------------------
    # Web API
    # ------------------------------------------------------------------

    def search_tracks(self, query: str, access_token: Optional[str] = None, limit: int = 20) -> Dict[str, Any]:
        limit = max(1, min(limit, 50))
        return self._get("/search", params={"q": query, "type": "track", "limit": limit}, token=access_token)

    def get_track(self, track_id: str, access_token: Optional[str] = None) -> Dict[str, Any]:
        return self._get(f"/tracks/{urllib.parse.quote(track_id, safe='')}", token=access_token)

    def get_current_user(self, access_token: str) -> Dict[str, Any]:
        return self._get("/me", token=access_token)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _token_request(self, data: Dict[str, str]) -> Dict[str, Any]:
        try:
            resp = requests.post(
                _TOKEN_URL,
                data=data,
                auth=(self._client_id, self._client_secret),
                timeout=self._timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise SpotifyAuthError(f"Spotify token request failed ({data.get('grant_type')}): {exc}") from exc

        body = resp.json()
        if not body.get("access_token"):
            raise SpotifyAuthError("Spotify token response missing 'access_token'")
        return body

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None, token: Optional[str] = None) -> Dict[str, Any]:
        if token is None:
            token = self.client_credentials_token()
        try:
            resp = requests.get(
                _API_BASE + path,
                headers={"Authorization": f"Bearer {token}"},
                params=params or {},
                timeout=self._timeout,
            )
            resp.raise_for_status()
        except requests.HTTPError as exc:
            raise SpotifyAPIError(
                f"Spotify API error {resp.status_code} for {path}: {resp.text}",
                status_code=resp.status_code,
            ) from exc
        except requests.RequestException as exc:
            raise SpotifyAPIError(f"Network error calling Spotify API: {exc}") from exc
        return resp.json()
