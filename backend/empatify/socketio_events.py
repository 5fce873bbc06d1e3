from flask_socketio import join_room, leave_room, emit


def _room(lobby_id: str) -> str:
    return f"lobby:{lobby_id}"


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_lobby(data):
    lobby_id = (data or {}).get('lobby_id')
    if not lobby_id:
        emit('error', {'message': 'lobby_id is required'})
        return
    room = _room(lobby_id)
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_lobby(data):
    lobby_id = (data or {}).get('lobby_id')
    if not lobby_id:
        emit('error', {'message': 'lobby_id is required'})
        return
    room = _room(lobby_id)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from empatify import socketio

    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('join_lobby', handle_join_lobby, namespace=namespace)
        socketio.on_event('leave_lobby', handle_leave_lobby, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
