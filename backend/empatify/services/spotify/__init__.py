"""Spotify Web API access: HTTP client and token handling."""
