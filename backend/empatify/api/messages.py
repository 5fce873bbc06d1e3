from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from sqlalchemy import and_, or_
from empatify import db
from empatify.models import User, UserMessage, MessageReadStatus


messages = Blueprint('messages', __name__)


def _read_message_ids(user_id: str) -> set:
    return {r.message_id for r in MessageReadStatus.query.filter_by(user_id=user_id).all()}


@messages.route('/send', methods=['POST'])
@login_required
def send_message():
    data = request.get_json(silent=True) or {}
    recipient_ids = data.get('recipientIds')
    content = data.get('content')
    lobby_id = data.get('lobbyId') or None

    if not isinstance(recipient_ids, list) or not recipient_ids:
        return jsonify({'error': 'recipientIds is required and must be an array', 'code': 'VALIDATION_ERROR'}), 400
    if not isinstance(content, str) or not content.strip():
        return jsonify({'error': 'content is required', 'code': 'VALIDATION_ERROR'}), 400

    sent = []
    for recipient_id in recipient_ids:
        # Malformed ids, unknown recipients and self are skipped, not rejected
        if not isinstance(recipient_id, str) or recipient_id == current_user.id:
            continue
        if db.session.get(User, recipient_id) is None:
            continue
        message = UserMessage(
            sender_id=current_user.id,
            recipient_id=recipient_id,
            content=content.strip(),
            lobby_id=lobby_id,
        )
        db.session.add(message)
        sent.append(message)
    db.session.commit()
    current_app.logger.info(f"[message-send] sender={current_user.id} count={len(sent)}")
    return jsonify({
        'success': True,
        'messages': [m.to_dict() for m in sent],
        'count': len(sent),
    })


@messages.route('/list', methods=['GET'])
@login_required
def list_conversations():
    """Conversations grouped by partner, most recent first."""
    me = current_user.id
    all_messages = (
        UserMessage.query.filter(or_(UserMessage.sender_id == me, UserMessage.recipient_id == me))
        .order_by(UserMessage.sent_at.desc())
        .all()
    )
    read_ids = _read_message_ids(me)

    conversations = {}
    for message in all_messages:
        partner = message.recipient if message.sender_id == me else message.sender
        if partner is None:
            continue
        is_unread = message.recipient_id == me and message.id not in read_ids
        existing = conversations.get(partner.id)
        if existing is None:
            # Newest message comes first
            conversations[partner.id] = {
                'userId': partner.id,
                'userName': partner.name,
                'userAvatarUrl': partner.avatar_url,
                'lastMessage': message.content,
                'lastMessageTime': message.sent_at,
                'unreadCount': 1 if is_unread else 0,
                'lobbyId': message.lobby_id,
            }
        elif is_unread:
            existing['unreadCount'] += 1

    ordered = sorted(conversations.values(), key=lambda c: c['lastMessageTime'], reverse=True)
    for conversation in ordered:
        conversation['lastMessageTime'] = conversation['lastMessageTime'].isoformat()
    return jsonify({'conversations': ordered})


@messages.route('/conversation/<string:user_id>', methods=['GET'])
@login_required
def get_conversation(user_id):
    me = current_user.id
    conversation = (
        UserMessage.query.filter(or_(
            and_(UserMessage.sender_id == me, UserMessage.recipient_id == user_id),
            and_(UserMessage.sender_id == user_id, UserMessage.recipient_id == me),
        ))
        .order_by(UserMessage.sent_at.desc())
        .all()
    )
    read_ids = _read_message_ids(me)

    unread = [m for m in conversation if m.recipient_id == me and m.id not in read_ids]
    for message in unread:
        db.session.add(MessageReadStatus(message_id=message.id, user_id=me))
    if unread:
        db.session.commit()

    payload = []
    for message in conversation:
        item = message.to_dict()
        # isRead reflects the state before this request marked them
        item['isRead'] = message.id in read_ids if message.recipient_id == me else True
        item['isOwn'] = message.sender_id == me
        payload.append(item)

    other = db.session.get(User, user_id)
    return jsonify({
        'messages': payload,
        'otherUser': other.to_dict() if other else None,
    })


@messages.route('/unread-count', methods=['GET'])
@login_required
def unread_count():
    me = current_user.id
    read_ids = _read_message_ids(me)
    received = UserMessage.query.filter_by(recipient_id=me).all()
    return jsonify({'unreadCount': sum(1 for m in received if m.id not in read_ids)})
