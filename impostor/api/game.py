import os
import time

from flask import Blueprint, current_app, jsonify, request
from werkzeug.utils import secure_filename

from impostor import get_store
from impostor.exceptions import GameError, MissingFields


game = Blueprint('game', __name__)


@game.errorhandler(GameError)
def handle_game_error(exc):
    if exc.status_code >= 500:
        current_app.logger.error(f"[error] {exc.kind}: {exc}")
    return jsonify({'error': str(exc), 'kind': exc.kind}), exc.status_code


def _save_photo(photo) -> str:
    """Store an uploaded photo and return the reference clients load it from."""
    filename = f"{int(time.time() * 1000)}-{secure_filename(photo.filename or 'photo')}"
    photo.save(os.path.join(current_app.config['UPLOAD_FOLDER'], filename))
    return f"/uploads/{filename}"


def _discard_photo(photo_ref: str) -> None:
    path = os.path.join(current_app.config['UPLOAD_FOLDER'], os.path.basename(photo_ref))
    try:
        os.remove(path)
    except OSError:
        current_app.logger.warning(f"[upload] could not remove orphaned photo {path}")


@game.route('/upload', methods=['POST'])
def register_player():
    """
    Registers a player. Accepts multipart form data (name + photo file) or
    JSON with an already stored photo_ref.
    """
    photo = request.files.get('photo')
    if photo is not None:
        name = request.form.get('name')
        if not name:
            raise MissingFields('Name and photo are required')
        # Disk write happens before the session is touched
        photo_ref = _save_photo(photo)
        try:
            player = get_store().register_player(name, photo_ref)
        except GameError:
            _discard_photo(photo_ref)
            raise
    else:
        data = request.get_json(silent=True) or {}
        name = data.get('name')
        photo_ref = data.get('photo_ref')
        if not all([name, photo_ref]):
            raise MissingFields('Name and photo are required')
        player = get_store().register_player(name, photo_ref)

    return jsonify({'success': True, 'player': player.to_dict()}), 201


@game.route('/ready', methods=['POST'])
def mark_ready():
    data = request.get_json(silent=True) or {}
    round_started = get_store().mark_ready(data.get('player_id'))
    return jsonify({'success': True, 'round_started': round_started})


@game.route('/next-stage', methods=['POST'])
def next_stage():
    result = get_store().advance_stage()
    questioner = result.current_questioner
    return jsonify({
        'success': True,
        'stage': result.stage.value,
        # Roles stay private; clients read their own from the state feed
        'current_questioner': questioner.to_dict(include_role=False) if questioner else None,
    })


@game.route('/vote', methods=['POST'])
def cast_vote():
    data = request.get_json(silent=True) or {}
    receipt = get_store().cast_vote(data.get('voter_id'), data.get('voted_player_id'))
    return jsonify({
        'success': True,
        'voter': receipt.voter.to_dict(include_role=False),
        'voted_player': receipt.voted_player.to_dict(include_role=False),
        'recorded': receipt.recorded,
    })


@game.route('/player/<string:name>', methods=['GET'])
def get_player(name):
    """
    Looks a player up by display name so a returning client can recover its id.
    """
    player = get_store().get_player_by_name(name)
    return jsonify({'success': True, 'player': player.to_dict(include_role=False)})


@game.route('/game-state', methods=['GET'])
def get_game_state():
    viewer_id = request.args.get('player_id')
    return jsonify(get_store().get_state().to_dict(viewer_id=viewer_id))
