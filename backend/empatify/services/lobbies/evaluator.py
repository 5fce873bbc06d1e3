"""Game completion and leaderboard derivation for a lobby snapshot.

Both the lobby page view and the polling endpoint call :func:`evaluate_game`
on every request. It works on plain records built from the database rows
(or from a lobby state payload) and never touches the database itself.

A game is finished when every current participant has a song in the final
round and at least one rating exists anywhere in the lobby. The rating does
not need to be on a final-round song.
"""
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set


@dataclass(frozen=True)
class ParticipantRecord:
    id: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass(frozen=True)
class SongRecord:
    id: str
    suggested_by: str
    round_number: int


@dataclass(frozen=True)
class RatingRecord:
    song_id: str
    given_by: str
    rating_value: int


@dataclass(frozen=True)
class LeaderboardEntry:
    user_id: str
    name: Optional[str]
    avatar_url: Optional[str]
    average_rating: float
    songs_suggested: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'userId': self.user_id,
            'name': self.name,
            'avatarUrl': self.avatar_url,
            'averageRating': self.average_rating,
            'songsSuggested': self.songs_suggested,
        }


@dataclass(frozen=True)
class GameEvaluation:
    is_finished: bool
    leaderboard: List[LeaderboardEntry]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'isFinished': self.is_finished,
            'leaderboard': [entry.to_dict() for entry in self.leaderboard],
        }


def is_game_finished(
    max_rounds: int,
    participants: Sequence[ParticipantRecord],
    songs: Sequence[SongRecord],
    ratings: Sequence[RatingRecord],
) -> bool:
    """Return True once the final round is complete and anything was rated.

    The final round counts as complete when the number of distinct
    suggesters in round ``max_rounds`` equals the number of current
    participants. This is a cardinality match, so a participant who joins
    late must also submit a final-round song before the game can finish.
    """
    if not songs or len(participants) <= 1:
        return False

    suggesters_by_round: Dict[int, Set[str]] = defaultdict(set)
    for song in songs:
        suggesters_by_round[song.round_number].add(song.suggested_by)

    last_round = suggesters_by_round.get(max_rounds)
    last_round_complete = last_round is not None and len(last_round) == len(participants)
    return last_round_complete and len(ratings) > 0


def compute_leaderboard(
    participants: Sequence[ParticipantRecord],
    songs: Sequence[SongRecord],
    ratings: Sequence[RatingRecord],
) -> List[LeaderboardEntry]:
    """One entry per participant, sorted by average rating received.

    Ties keep participant order.
    """
    songs_by_user: Dict[str, List[str]] = defaultdict(list)
    for song in songs:
        songs_by_user[song.suggested_by].append(song.id)

    values_by_song: Dict[str, List[int]] = defaultdict(list)
    for rating in ratings:
        values_by_song[rating.song_id].append(rating.rating_value)

    entries = []
    for participant in participants:
        song_ids = songs_by_user.get(participant.id, [])
        values = [v for song_id in song_ids for v in values_by_song.get(song_id, [])]
        average = sum(values) / len(values) if values else 0.0
        entries.append(LeaderboardEntry(
            user_id=participant.id,
            name=participant.name,
            avatar_url=participant.avatar_url,
            average_rating=float(average),
            songs_suggested=len(song_ids),
        ))

    # sorted() is stable
    return sorted(entries, key=lambda e: e.average_rating, reverse=True)


def evaluate_game(
    max_rounds: int,
    participants: Sequence[ParticipantRecord],
    songs: Sequence[SongRecord],
    ratings: Sequence[RatingRecord],
) -> GameEvaluation:
    """Evaluate a lobby snapshot.

    Ratings that point at songs outside ``songs`` are dropped before either
    rule runs.
    """
    known_song_ids = {song.id for song in songs}
    ratings = [r for r in ratings if r.song_id in known_song_ids]
    return GameEvaluation(
        is_finished=is_game_finished(max_rounds, participants, songs, ratings),
        leaderboard=compute_leaderboard(participants, songs, ratings),
    )


# ---- Coercion from loosely typed JSON ----

def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _as_int(value: Any) -> Optional[int]:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _as_id(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (str, int)):
        text = str(value)
        return text or None
    return None


def coerce_participants(raw_items: Optional[Iterable[Any]]) -> List[ParticipantRecord]:
    """Build participant records from dicts or bare ids, dropping duplicates."""
    records: List[ParticipantRecord] = []
    seen: Set[str] = set()
    for raw in raw_items or []:
        if isinstance(raw, ParticipantRecord):
            record = raw
        elif isinstance(raw, Mapping):
            pid = _as_id(_pick(raw, 'id', 'userId', 'user_id'))
            if pid is None:
                continue
            record = ParticipantRecord(
                id=pid,
                name=_pick(raw, 'name'),
                avatar_url=_pick(raw, 'avatarUrl', 'avatar_url'),
            )
        else:
            pid = _as_id(raw)
            if pid is None:
                continue
            record = ParticipantRecord(id=pid)
        if record.id in seen:
            continue
        seen.add(record.id)
        records.append(record)
    return records


def coerce_songs(raw_items: Optional[Iterable[Any]]) -> List[SongRecord]:
    records: List[SongRecord] = []
    for raw in raw_items or []:
        if isinstance(raw, SongRecord):
            records.append(raw)
            continue
        if not isinstance(raw, Mapping):
            continue
        song_id = _as_id(_pick(raw, 'id'))
        suggested_by = _as_id(_pick(raw, 'suggestedBy', 'suggested_by'))
        round_number = _as_int(_pick(raw, 'roundNumber', 'round_number'))
        if song_id is None or suggested_by is None or round_number is None or round_number < 1:
            continue
        records.append(SongRecord(id=song_id, suggested_by=suggested_by, round_number=round_number))
    return records


def coerce_ratings(raw_items: Optional[Iterable[Any]]) -> List[RatingRecord]:
    records: List[RatingRecord] = []
    for raw in raw_items or []:
        if isinstance(raw, RatingRecord):
            records.append(raw)
            continue
        if not isinstance(raw, Mapping):
            continue
        song_id = _as_id(_pick(raw, 'songId', 'song_id'))
        given_by = _as_id(_pick(raw, 'givenBy', 'given_by'))
        value = _as_int(_pick(raw, 'ratingValue', 'rating_value'))
        if song_id is None or given_by is None or value is None:
            continue
        records.append(RatingRecord(song_id=song_id, given_by=given_by, rating_value=value))
    return records


def evaluate_payload(payload: Optional[Mapping[str, Any]]) -> GameEvaluation:
    """Re-derive the evaluation from a lobby state payload.

    This is what a polling client does with the JSON returned by
    ``GET /api/lobby/<id>``. A missing or invalid ``maxRounds`` can never
    match a round, so the game reads as unfinished.
    """
    payload = payload or {}
    lobby = payload.get('lobby') or {}
    max_rounds = _as_int(lobby.get('maxRounds')) if isinstance(lobby, Mapping) else None
    return evaluate_game(
        max_rounds if max_rounds is not None else 0,
        coerce_participants(payload.get('participants')),
        coerce_songs(payload.get('songs')),
        coerce_ratings(payload.get('ratings')),
    )
