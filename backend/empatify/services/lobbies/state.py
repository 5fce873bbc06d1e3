from typing import Any, Dict, List, Tuple

from flask import current_app

from empatify.models import Lobby, LobbyParticipant, Song, Rating
from .evaluator import (
    GameEvaluation,
    ParticipantRecord,
    RatingRecord,
    SongRecord,
    evaluate_game,
)


def load_lobby_rows(lobby: Lobby) -> Tuple[List[LobbyParticipant], List[Song], List[Rating]]:
    participants = (
        LobbyParticipant.query.filter_by(lobby_id=lobby.id)
        .order_by(LobbyParticipant.joined_at)
        .all()
    )
    songs = Song.query.filter_by(lobby_id=lobby.id).order_by(Song.round_number, Song.created_at).all()
    ratings = (
        Rating.query.join(Song, Rating.song_id == Song.id)
        .filter(Song.lobby_id == lobby.id)
        .order_by(Rating.created_at)
        .all()
    )
    return participants, songs, ratings


def evaluate_rows(lobby: Lobby, participants, songs, ratings) -> GameEvaluation:
    return evaluate_game(
        lobby.max_rounds,
        [ParticipantRecord(id=p.user.id, name=p.user.name, avatar_url=p.user.avatar_url) for p in participants],
        [SongRecord(id=s.id, suggested_by=s.suggested_by, round_number=s.round_number) for s in songs],
        [RatingRecord(song_id=r.song_id, given_by=r.given_by, rating_value=r.rating_value) for r in ratings],
    )


def evaluate_lobby(lobby: Lobby) -> GameEvaluation:
    return evaluate_rows(lobby, *load_lobby_rows(lobby))


def lobby_state_payload(lobby: Lobby) -> Dict[str, Any]:
    """Full lobby snapshot served to polling clients.

    The leaderboard is pre-sorted; ``isFinished`` comes from the same
    evaluation so clients do not have to re-derive it.
    """
    participants, songs, ratings = load_lobby_rows(lobby)
    evaluation = evaluate_rows(lobby, participants, songs, ratings)
    payload = {
        'lobby': lobby.to_dict(),
        'participants': [p.to_dict() for p in participants],
        'songs': [s.to_dict() for s in songs],
        'ratings': [r.to_dict() for r in ratings],
        'pollIntervalMs': int(current_app.config.get('LOBBY_POLL_INTERVAL_MS', 3000)),
    }
    payload.update(evaluation.to_dict())
    return payload
