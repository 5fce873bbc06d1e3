from flask import Blueprint, request, jsonify, current_app
from .models import db, User, Lobby, LobbyParticipant
from flask_login import login_user, logout_user, login_required, current_user
from empatify.services.lobbies.actions import ensure_participant
from empatify.services.lobbies.state import evaluate_rows, load_lobby_rows

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Empatify game server!'})


@main.route('/login', methods=['POST', 'OPTIONS'])
def login():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    user = User.query.filter_by(email=email).first() if email else None
    if user and user.check_password(data.get('password') or ''):
        login_user(user, remember=True)
        current_app.logger.info(f"[login] user={user.id}")
        return jsonify({"success": True, "user": user.to_dict()})
    return jsonify({"success": False, "message": "Invalid credentials"}), 401


@main.route('/register', methods=['POST', 'OPTIONS'])
def register():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    name = (data.get('name') or '').strip() or email.split('@')[0]
    if not email or not password:
        return jsonify({"success": False, "message": "Email and password are required"}), 400
    if User.query.filter_by(email=email).first():
        return jsonify({"success": False, "message": "Email already registered"}), 400
    if User.query.filter_by(name=name).first():
        return jsonify({"success": False, "message": "Name already taken"}), 409

    new_user = User(email=email, name=name, avatar_url=data.get('avatarUrl'))
    new_user.set_password(password)
    db.session.add(new_user)
    db.session.commit()
    login_user(new_user)
    current_app.logger.info(f"[register] user={new_user.id}")
    return jsonify({"success": True, "user": new_user.to_dict()}), 201


@main.route('/check_login', methods=['GET', 'OPTIONS'])
def check_login():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200

    @login_required
    def protected_check():
        return jsonify({"success": True, "user": current_user.to_dict()})

    return protected_check()


@main.route('/logout', methods=['POST', 'OPTIONS'])
@login_required
def logout():
    logout_user()
    return jsonify({"success": True})


@main.route('/lobbies/active')
@login_required
def get_active_lobbies():
    # Lobbies the current user takes part in, newest first
    lobbies = (
        Lobby.query.join(LobbyParticipant, LobbyParticipant.lobby_id == Lobby.id)
        .filter(LobbyParticipant.user_id == current_user.id)
        .order_by(Lobby.created_at.desc())
        .all()
    )
    return jsonify([lobby.to_dict() for lobby in lobbies])


@main.route('/lobby/<string:lobby_id>')
@login_required
def lobby_page(lobby_id):
    """Server view of a lobby.

    Joins the visitor if needed and decides whether they land on the
    playing view or the results view.
    """
    lobby = db.session.get(Lobby, lobby_id)
    if lobby is None:
        return jsonify({'error': 'Lobby not found', 'code': 'NOT_FOUND'}), 404

    ensure_participant(lobby, current_user)
    participants, songs, ratings = load_lobby_rows(lobby)
    evaluation = evaluate_rows(lobby, participants, songs, ratings)
    view = 'results' if evaluation.is_finished else 'play'
    current_app.logger.info(f"[lobby-page] lobby={lobby.id} user={current_user.id} view={view}")
    return jsonify({
        'view': view,
        'lobby': lobby.to_dict(),
        'participants': [p.to_dict() for p in participants],
        'currentUserId': current_user.id,
        'isFinished': evaluation.is_finished,
    })
