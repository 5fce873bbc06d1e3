from typing import Optional, Tuple

from flask import current_app

from empatify import db
from empatify.models import Lobby, LobbyParticipant, Song, Rating, User, UserMessage

PLAY_AGAIN_PREFIX = '__PLAY_AGAIN_INVITE__'


class LobbyError(Exception):
    """A lobby action was refused. Carries the HTTP status to answer with."""

    status = 400
    code = 'VALIDATION_ERROR'

    def __init__(self, message: str, code: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status:
            self.status = status


class LobbyForbidden(LobbyError):
    status = 403
    code = 'FORBIDDEN'


class LobbyNotFound(LobbyError):
    status = 404
    code = 'NOT_FOUND'


class LobbyConflict(LobbyError):
    status = 409
    code = 'CONFLICT'


def clamp_rounds(value, default: int = 5, limit: int = 10) -> int:
    try:
        rounds = int(value) if value is not None else default
    except (TypeError, ValueError):
        rounds = default
    if not rounds:
        rounds = default
    return max(1, min(limit, rounds))


def normalize_category(category) -> Optional[str]:
    if not category or category == 'all':
        return None
    return str(category)[:100]


def normalize_game_mode(mode) -> str:
    return 'single-device' if mode == 'single-device' else 'multi-device'


def is_participant(lobby: Lobby, user: User) -> bool:
    return LobbyParticipant.query.filter_by(lobby_id=lobby.id, user_id=user.id).first() is not None


def ensure_participant(lobby: Lobby, user: User) -> bool:
    """Add the user to the lobby unless already there. Returns True if added."""
    if is_participant(lobby, user):
        return False
    db.session.add(LobbyParticipant(lobby_id=lobby.id, user_id=user.id))
    db.session.commit()
    current_app.logger.info(f"[lobby-join] lobby={lobby.id} user={user.id}")
    return True


def _invite_previous_players(source_lobby_id: str, lobby: Lobby, host: User) -> int:
    previous = (
        LobbyParticipant.query.filter(
            LobbyParticipant.lobby_id == source_lobby_id,
            LobbyParticipant.user_id != host.id,
        ).all()
    )
    content = f"{PLAY_AGAIN_PREFIX}:{host.name}:{lobby.id}:{lobby.max_rounds}:{lobby.category or 'all'}"
    sent = 0
    for participant in previous:
        try:
            db.session.add(UserMessage(
                sender_id=host.id,
                recipient_id=participant.user_id,
                content=content,
                lobby_id=lobby.id,
            ))
            db.session.commit()
            sent += 1
        except Exception as exc:
            db.session.rollback()
            current_app.logger.warning(
                f"[lobby-invite] failed lobby={lobby.id} recipient={participant.user_id}: {exc}"
            )
    return sent


def create_lobby(host: User, rounds=None, category=None, game_mode=None,
                 copy_from_lobby_id: Optional[str] = None) -> Tuple[Lobby, int]:
    """Create a lobby with the host as first participant.

    When ``copy_from_lobby_id`` names an existing lobby its settings win over
    the request values and its previous players get a play-again invite.
    Returns the lobby and the number of invites sent.
    """
    cfg = current_app.config
    default_rounds = int(cfg.get('DEFAULT_MAX_ROUNDS', 5))
    limit = int(cfg.get('MAX_ROUNDS_LIMIT', 10))

    source = db.session.get(Lobby, copy_from_lobby_id) if copy_from_lobby_id else None
    if source is not None:
        max_rounds = source.max_rounds
        lobby_category = source.category
        lobby_mode = source.game_mode or 'multi-device'
    else:
        if copy_from_lobby_id:
            current_app.logger.warning(f"[lobby-create] lobby to copy not found: {copy_from_lobby_id}")
        max_rounds = clamp_rounds(rounds, default_rounds, limit)
        lobby_category = normalize_category(category)
        lobby_mode = normalize_game_mode(game_mode)

    lobby = Lobby(host_id=host.id, category=lobby_category, max_rounds=max_rounds, game_mode=lobby_mode)
    db.session.add(lobby)
    db.session.flush()
    db.session.add(LobbyParticipant(lobby_id=lobby.id, user_id=host.id))
    db.session.commit()
    current_app.logger.info(
        f"[lobby-create] lobby={lobby.id} host={host.id} rounds={max_rounds} category={lobby_category} mode={lobby_mode}"
    )

    invited = 0
    if source is not None:
        invited = _invite_previous_players(source.id, lobby, host)
        current_app.logger.info(f"[lobby-invite] lobby={lobby.id} from={source.id} invited={invited}")
    return lobby, invited


def delete_lobby(lobby: Lobby, user: User) -> None:
    if lobby.host_id != user.id:
        raise LobbyForbidden('Only the host can delete the lobby')
    count = LobbyParticipant.query.filter_by(lobby_id=lobby.id).count()
    if count > 1:
        raise LobbyError('Lobby cannot be deleted because it has participants', code='CANNOT_DELETE')
    db.session.delete(lobby)
    db.session.commit()
    current_app.logger.info(f"[lobby-delete] lobby={lobby.id} host={user.id}")


def _require_participant(lobby: Lobby, user: User) -> None:
    if not is_participant(lobby, user):
        raise LobbyForbidden('You are not a participant in this lobby', code='NOT_PARTICIPANT')


def _has_ratings(song: Song) -> bool:
    return Rating.query.filter_by(song_id=song.id).first() is not None


def submit_song(lobby: Lobby, user: User, spotify_track_id, round_number) -> Tuple[Song, bool]:
    """Create the user's song for a round, or replace its track.

    A song can only be replaced while nobody has rated it.
    Returns the song and whether it was newly created.
    """
    if not spotify_track_id or round_number is None:
        raise LobbyError('spotifyTrackId and roundNumber are required')
    if isinstance(round_number, bool) or not isinstance(round_number, int):
        raise LobbyError('roundNumber must be an integer')
    if round_number < 1 or round_number > lobby.max_rounds:
        raise LobbyError(f'roundNumber must be between 1 and {lobby.max_rounds}')
    _require_participant(lobby, user)

    existing = Song.query.filter_by(lobby_id=lobby.id, suggested_by=user.id, round_number=round_number).first()
    if existing:
        if _has_ratings(existing):
            raise LobbyConflict('Song has already been rated and can no longer be changed', code='SONG_LOCKED')
        existing.spotify_track_id = str(spotify_track_id)
        db.session.add(existing)
        db.session.commit()
        current_app.logger.info(f"[song-replace] lobby={lobby.id} user={user.id} round={round_number}")
        return existing, False

    song = Song(
        spotify_track_id=str(spotify_track_id),
        lobby_id=lobby.id,
        suggested_by=user.id,
        round_number=round_number,
    )
    db.session.add(song)
    db.session.commit()
    current_app.logger.info(f"[song-create] lobby={lobby.id} user={user.id} round={round_number} song={song.id}")
    return song, True


def delete_song(lobby: Lobby, user: User, song_id: str) -> None:
    song = Song.query.filter_by(id=song_id, lobby_id=lobby.id).first()
    if not song:
        raise LobbyNotFound('Song not found in this lobby', code='SONG_NOT_FOUND')
    if song.suggested_by != user.id:
        raise LobbyForbidden('Only the suggester can delete this song')
    if _has_ratings(song):
        raise LobbyConflict('Song has already been rated and can no longer be deleted', code='SONG_LOCKED')
    db.session.delete(song)
    db.session.commit()
    current_app.logger.info(f"[song-delete] lobby={lobby.id} user={user.id} song={song_id}")


def submit_rating(lobby: Lobby, user: User, song_id, rating_value) -> Tuple[Rating, bool]:
    """Create or update the user's rating of a song in this lobby."""
    if not song_id or rating_value is None:
        raise LobbyError('songId and ratingValue are required')
    if isinstance(rating_value, bool) or not isinstance(rating_value, int):
        raise LobbyError('ratingValue must be an integer between 1 and 10')
    if rating_value < 1 or rating_value > 10:
        raise LobbyError('ratingValue must be between 1 and 10')

    song = Song.query.filter_by(id=song_id, lobby_id=lobby.id).first()
    if not song:
        raise LobbyNotFound('Song not found in this lobby', code='SONG_NOT_FOUND')
    _require_participant(lobby, user)

    existing = Rating.query.filter_by(song_id=song.id, given_by=user.id).first()
    if existing:
        old_value = existing.rating_value
        existing.rating_value = rating_value
        db.session.add(existing)
        db.session.commit()
        current_app.logger.info(
            f"[rating-update] lobby={lobby.id} song={song.id} user={user.id} {old_value} -> {rating_value}"
        )
        return existing, False

    rating = Rating(song_id=song.id, given_by=user.id, rating_value=rating_value)
    db.session.add(rating)
    db.session.commit()
    current_app.logger.info(f"[rating-create] lobby={lobby.id} song={song.id} user={user.id} value={rating_value}")
    return rating, True
