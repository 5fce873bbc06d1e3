"""Lobby domain services: game evaluation, lobby state and player actions.

This package contains the lobby game logic that is imported by HTTP routes
and the page view, keeping transport concerns separated from the rules of
the game. ``evaluator`` is pure and has no database access.
"""
