from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from empatify import db, socketio
from empatify.models import Lobby
from empatify.services.lobbies.actions import (
    LobbyError,
    create_lobby as svc_create_lobby,
    delete_lobby as svc_delete_lobby,
    delete_song as svc_delete_song,
    ensure_participant,
    submit_rating as svc_submit_rating,
    submit_song as svc_submit_song,
)
from empatify.services.lobbies.state import lobby_state_payload


lobbies = Blueprint('lobbies', __name__)


@lobbies.errorhandler(LobbyError)
def handle_lobby_error(err: LobbyError):
    return jsonify({'error': err.message, 'code': err.code}), err.status


def _notify(lobby_id: str) -> None:
    socketio.emit('lobby_update', {'lobby_id': lobby_id}, to=f"lobby:{lobby_id}", namespace='/ws')


def _get_lobby(lobby_id: str) -> Lobby:
    lobby = db.session.get(Lobby, lobby_id)
    if lobby is None:
        raise LobbyError('Lobby not found', code='NOT_FOUND', status=404)
    return lobby


@lobbies.route('/create', methods=['POST'])
@login_required
def create_lobby():
    data = request.get_json(silent=True) or {}
    lobby, invited = svc_create_lobby(
        current_user,
        rounds=data.get('rounds'),
        category=data.get('category'),
        game_mode=data.get('gameMode'),
        copy_from_lobby_id=data.get('copyFromLobbyId'),
    )
    return jsonify({
        'lobbyId': lobby.id,
        'lobby': lobby.to_dict(),
        'invited': invited,
    }), 201


@lobbies.route('/<string:lobby_id>', methods=['GET'])
@login_required
def get_lobby_state(lobby_id):
    lobby = _get_lobby(lobby_id)
    return jsonify(lobby_state_payload(lobby))


@lobbies.route('/<string:lobby_id>', methods=['DELETE'])
@login_required
def delete_lobby(lobby_id):
    lobby = _get_lobby(lobby_id)
    svc_delete_lobby(lobby, current_user)
    return jsonify({'success': True, 'message': 'Lobby deleted successfully'})


@lobbies.route('/<string:lobby_id>/join', methods=['POST'])
@login_required
def join_lobby(lobby_id):
    lobby = _get_lobby(lobby_id)
    added = ensure_participant(lobby, current_user)
    if added:
        _notify(lobby.id)
    return jsonify({'success': True, 'joined': added, 'lobbyId': lobby.id})


@lobbies.route('/<string:lobby_id>/song', methods=['POST'])
@login_required
def submit_song(lobby_id):
    data = request.get_json(silent=True) or {}
    lobby = _get_lobby(lobby_id)
    song, created = svc_submit_song(lobby, current_user, data.get('spotifyTrackId'), data.get('roundNumber'))
    _notify(lobby.id)
    return jsonify({'success': True, 'created': created, 'song': song.to_dict()}), (201 if created else 200)


@lobbies.route('/<string:lobby_id>/song/<string:song_id>', methods=['DELETE'])
@login_required
def delete_song(lobby_id, song_id):
    lobby = _get_lobby(lobby_id)
    svc_delete_song(lobby, current_user, song_id)
    _notify(lobby.id)
    return jsonify({'success': True})


@lobbies.route('/<string:lobby_id>/rating', methods=['POST'])
@login_required
def submit_rating(lobby_id):
    data = request.get_json(silent=True) or {}
    lobby = _get_lobby(lobby_id)
    rating, created = svc_submit_rating(lobby, current_user, data.get('songId'), data.get('ratingValue'))
    _notify(lobby.id)
    return jsonify({'success': True, 'created': created, 'rating': rating.to_dict()})
