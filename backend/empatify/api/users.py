from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user, logout_user
from sqlalchemy import and_, or_
from empatify import db
from empatify.models import (
    User,
    Friend,
    Lobby,
    LobbyParticipant,
    Song,
    Rating,
    UserMessage,
    MessageReadStatus,
)


users = Blueprint('users', __name__)


def _friendship_query(user_id: str, other_id: str):
    return Friend.query.filter(or_(
        and_(Friend.user_id == user_id, Friend.friend_id == other_id),
        and_(Friend.user_id == other_id, Friend.friend_id == user_id),
    ))


@users.route('/check-name', methods=['GET'])
@login_required
def check_name():
    name = (request.args.get('name') or '').strip()
    if not name:
        return jsonify({'error': 'name is required', 'code': 'VALIDATION_ERROR'}), 400
    taken = User.query.filter(User.name == name, User.id != current_user.id).first() is not None
    return jsonify({'available': not taken, 'taken': taken})


@users.route('/update-name', methods=['PUT'])
@login_required
def update_name():
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'error': 'name is required', 'code': 'VALIDATION_ERROR'}), 400
    if current_user.name == name:
        return jsonify({'success': True, 'message': 'Name unchanged'})
    if User.query.filter(User.name == name, User.id != current_user.id).first():
        return jsonify({'error': 'Name is already taken', 'code': 'NAME_TAKEN'}), 409

    user = current_user._get_current_object()
    user.name = name
    db.session.add(user)
    db.session.commit()
    current_app.logger.info(f"[update-name] user={current_user.id}")
    return jsonify({'success': True, 'message': 'Name updated successfully'})


@users.route('/delete', methods=['DELETE'])
@login_required
def delete_account():
    user = db.session.get(User, current_user.id)
    user_id = user.id

    # Hosted lobbies go with their participants, songs and ratings
    for lobby in Lobby.query.filter_by(host_id=user_id).all():
        db.session.delete(lobby)
    for song in Song.query.filter_by(suggested_by=user_id).all():
        db.session.delete(song)
    Rating.query.filter_by(given_by=user_id).delete()
    LobbyParticipant.query.filter_by(user_id=user_id).delete()
    Friend.query.filter(or_(Friend.user_id == user_id, Friend.friend_id == user_id)).delete(synchronize_session=False)
    MessageReadStatus.query.filter_by(user_id=user_id).delete()
    message_ids = [m.id for m in UserMessage.query.filter(
        or_(UserMessage.sender_id == user_id, UserMessage.recipient_id == user_id)
    ).all()]
    if message_ids:
        MessageReadStatus.query.filter(MessageReadStatus.message_id.in_(message_ids)).delete(synchronize_session=False)
        UserMessage.query.filter(UserMessage.id.in_(message_ids)).delete(synchronize_session=False)
    db.session.delete(user)
    db.session.commit()
    logout_user()
    current_app.logger.info(f"[delete-account] user={user_id}")
    return jsonify({'message': 'User account deleted successfully'})


@users.route('/friend', methods=['POST'])
@login_required
def add_friend():
    data = request.get_json(silent=True) or {}
    friend_id = data.get('friendId')
    if not friend_id:
        return jsonify({'error': 'friendId is required', 'code': 'VALIDATION_ERROR'}), 400
    if friend_id == current_user.id:
        return jsonify({'error': 'Cannot add yourself as a friend', 'code': 'INVALID_REQUEST'}), 400
    if db.session.get(User, friend_id) is None:
        return jsonify({'error': 'Friend user not found', 'code': 'USER_NOT_FOUND'}), 404
    if _friendship_query(current_user.id, friend_id).first():
        return jsonify({'error': 'Already friends with this user', 'code': 'ALREADY_FRIENDS'}), 400

    db.session.add(Friend(user_id=current_user.id, friend_id=friend_id))
    db.session.commit()
    current_app.logger.info(f"[friend-add] user={current_user.id} friend={friend_id}")
    return jsonify({'success': True, 'message': 'Friend added successfully'})


@users.route('/friend', methods=['GET'])
@login_required
def check_friend():
    friend_id = request.args.get('friendId')
    if not friend_id:
        return jsonify({'error': 'friendId is required', 'code': 'VALIDATION_ERROR'}), 400
    return jsonify({'isFriend': _friendship_query(current_user.id, friend_id).first() is not None})


@users.route('/friends', methods=['GET'])
@login_required
def list_friends():
    friendships = Friend.query.filter(
        or_(Friend.user_id == current_user.id, Friend.friend_id == current_user.id)
    ).all()
    friend_ids = {f.friend_id if f.user_id == current_user.id else f.user_id for f in friendships}
    if not friend_ids:
        return jsonify({'friends': []})
    friend_users = User.query.filter(User.id.in_(friend_ids)).order_by(User.name).all()
    return jsonify({'friends': [
        {'id': u.id, 'name': u.name, 'email': u.email, 'avatarUrl': u.avatar_url} for u in friend_users
    ]})
