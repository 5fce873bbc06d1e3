import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from flask import current_app

from empatify import db

# Tokens expiring within this window are treated as expired
TOKEN_REFRESH_MARGIN_SEC = 5 * 60


@dataclass
class TokenCache:
    """A cached bearer token and its expiry (unix seconds)."""

    value: Optional[str] = None
    expires_at: float = 0.0

    def is_valid(self, now: float, margin: float = TOKEN_REFRESH_MARGIN_SEC) -> bool:
        return bool(self.value) and self.expires_at > now + margin

    def store(self, value: str, expires_in: int, now: Optional[float] = None) -> None:
        self.value = value
        self.expires_at = (now if now is not None else time.time()) + expires_in

    def clear(self) -> None:
        self.value = None
        self.expires_at = 0.0


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def token_needs_refresh(user, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now(timezone.utc)
    expires_at = _as_utc(user.spotify_token_expires_at)
    return expires_at is None or expires_at <= now + timedelta(seconds=TOKEN_REFRESH_MARGIN_SEC)


def store_user_tokens(user, body: dict, now: Optional[datetime] = None) -> None:
    """Persist a token response on the user row."""
    now = now or datetime.now(timezone.utc)
    user.spotify_access_token = body['access_token']
    if body.get('refresh_token'):
        user.spotify_refresh_token = body['refresh_token']
    user.spotify_token_expires_at = now + timedelta(seconds=int(body.get('expires_in', 3600)))
    db.session.add(user)
    db.session.commit()


def get_valid_user_token(user, client, now: Optional[datetime] = None) -> Optional[str]:
    """Return a usable access token for the user, refreshing it when needed.

    Returns None when the user never linked Spotify. Refresh failures
    propagate as ``SpotifyAuthError``.
    """
    if not user.spotify_refresh_token:
        return None
    if user.spotify_access_token and not token_needs_refresh(user, now):
        return user.spotify_access_token

    body = client.refresh_access_token(user.spotify_refresh_token)
    store_user_tokens(user, body, now)
    current_app.logger.info(f"[spotify-refresh] user={user.id}")
    return user.spotify_access_token
