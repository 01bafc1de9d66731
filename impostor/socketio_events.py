from flask import request
from flask_socketio import emit
from impostor import socketio, get_hub, get_store

STATE_EVENT = 'game-state-update'
NAMESPACES = ('/ws', '/')


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _sender(sid: str, namespace: str):
    def send(payload):
        # socketio.emit because the hub may deliver from an HTTP request thread
        socketio.emit(STATE_EVENT, payload, to=sid, namespace=namespace)
    return send


def handle_connect(auth=None):
    viewer_id = auth.get('player_id') if isinstance(auth, dict) else None
    viewer_id = viewer_id or request.args.get('player_id')
    sid = _get_sid()
    get_hub().subscribe(sid, _sender(sid, request.namespace), viewer_id=viewer_id)


def handle_disconnect(reason=None):
    get_hub().unsubscribe(_get_sid())


def handle_identify(data):
    """Bind this connection to a registered player so it sees its own role."""
    player_id = (data or {}).get('player_id')
    if not player_id:
        emit('error', {'message': 'player_id is required'})
        return
    if get_store().get_state().player(player_id) is None:
        emit('error', {'message': f'Player {player_id} is not in the game'})
        return
    emit('identified', {'player_id': player_id})
    get_hub().identify(_get_sid(), player_id)


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers.

    Handlers live on namespace '/ws' and on the default namespace '/',
    which browser clients that never pick a namespace connect to.
    """
    for namespace in NAMESPACES:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('identify', handle_identify, namespace=namespace)
