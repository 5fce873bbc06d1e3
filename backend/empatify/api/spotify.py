from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from itsdangerous import BadSignature, URLSafeTimedSerializer
from empatify import db
from empatify.models import User
from empatify.services.spotify.client import SpotifyAPIError, SpotifyAuthError, SpotifyClient
from empatify.services.spotify.tokens import get_valid_user_token, store_user_tokens, token_needs_refresh


spotify = Blueprint('spotify', __name__)

# OAuth state older than this is rejected (seconds)
STATE_MAX_AGE = 600


@spotify.errorhandler(SpotifyAuthError)
def handle_auth_error(err):
    current_app.logger.warning(f"[spotify] auth error: {err}")
    return jsonify({'error': str(err), 'code': 'SPOTIFY_AUTH_ERROR'}), 502


@spotify.errorhandler(SpotifyAPIError)
def handle_api_error(err):
    current_app.logger.warning(f"[spotify] api error: {err}")
    status = err.status_code if 400 <= err.status_code < 600 else 502
    return jsonify({'error': 'Spotify API request failed', 'code': 'SPOTIFY_API_ERROR'}), status


def get_spotify_client() -> SpotifyClient:
    cfg = current_app.config
    return SpotifyClient(
        cfg.get('SPOTIFY_CLIENT_ID'),
        cfg.get('SPOTIFY_CLIENT_SECRET'),
        timeout=int(cfg.get('SPOTIFY_TIMEOUT_SEC', 10)),
        token_cache=current_app.extensions['spotify_token_cache'],
    )


def _state_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt='spotify-oauth')


@spotify.route('/check-config', methods=['GET'])
def check_config():
    cfg = current_app.config
    return jsonify({
        'clientIdConfigured': bool(cfg.get('SPOTIFY_CLIENT_ID')),
        'clientSecretConfigured': bool(cfg.get('SPOTIFY_CLIENT_SECRET')),
        'redirectUri': cfg.get('SPOTIFY_REDIRECT_URI'),
    })


@spotify.route('/auth', methods=['GET'])
@login_required
def auth():
    client = get_spotify_client()
    state = _state_serializer().dumps({'userId': current_user.id})
    return jsonify({'url': client.authorize_url(current_app.config['SPOTIFY_REDIRECT_URI'], state)})


@spotify.route('/callback', methods=['GET'])
def callback():
    error = request.args.get('error')
    if error:
        return jsonify({'error': error, 'code': 'SPOTIFY_DENIED'}), 400
    code = request.args.get('code')
    state = request.args.get('state')
    if not code or not state:
        return jsonify({'error': 'missing_params', 'code': 'VALIDATION_ERROR'}), 400
    try:
        user_id = _state_serializer().loads(state, max_age=STATE_MAX_AGE)['userId']
    except (BadSignature, KeyError, TypeError):
        return jsonify({'error': 'invalid_state', 'code': 'INVALID_STATE'}), 400

    user = db.session.get(User, user_id)
    if user is None:
        return jsonify({'error': 'User not found', 'code': 'USER_NOT_FOUND'}), 404

    client = get_spotify_client()
    body = client.exchange_code(code, current_app.config['SPOTIFY_REDIRECT_URI'])
    profile = client.get_current_user(body['access_token'])
    user.spotify_user_id = profile.get('id')
    store_user_tokens(user, body)
    current_app.logger.info(f"[spotify-link] user={user.id} spotify_user={user.spotify_user_id}")
    return jsonify({'linked': True, 'spotifyUserId': user.spotify_user_id})


@spotify.route('/status', methods=['GET'])
@login_required
def status():
    linked = current_user.spotify_linked
    expires_at = current_user.spotify_token_expires_at
    return jsonify({
        'linked': linked,
        'spotifyUserId': current_user.spotify_user_id,
        'tokenExpiresAt': expires_at.isoformat() if expires_at else None,
        'needsRefresh': bool(linked and token_needs_refresh(current_user)),
    })


@spotify.route('/unlink', methods=['DELETE'])
@login_required
def unlink():
    user = current_user._get_current_object()
    user.spotify_access_token = None
    user.spotify_refresh_token = None
    user.spotify_token_expires_at = None
    user.spotify_user_id = None
    db.session.add(user)
    db.session.commit()
    current_app.logger.info(f"[spotify-unlink] user={current_user.id}")
    return jsonify({'message': 'Spotify connection removed successfully'})


@spotify.route('/search', methods=['GET'])
@login_required
def search():
    query = (request.args.get('q') or '').strip()
    if not query:
        return jsonify({'error': 'q is required', 'code': 'VALIDATION_ERROR'}), 400
    client = get_spotify_client()
    # Linked users search with their own token; others fall back to the app token
    token = get_valid_user_token(current_user._get_current_object(), client)
    return jsonify(client.search_tracks(query, access_token=token))


@spotify.route('/track/<string:track_id>', methods=['GET'])
@login_required
def track(track_id):
    client = get_spotify_client()
    token = get_valid_user_token(current_user._get_current_object(), client)
    return jsonify(client.get_track(track_id, access_token=token))
