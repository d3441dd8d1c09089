from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from app.services.stones import StoneStateError, current_stone, save_stone_state, start_stone


stones_api = Blueprint('stones_api', __name__)


@stones_api.route('/current', methods=['GET'])
@login_required
def get_current_stone():
    """The stone being grown; a random one is started if there is none."""
    user = current_user._get_current_object()
    stone = current_stone(user) or start_stone(user)
    return jsonify(stone.to_dict())


@stones_api.route('/state', methods=['POST'])
@login_required
def save_state():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'Invalid request payload'}), 400
    try:
        stone = save_stone_state(current_user._get_current_object(), data)
    except StoneStateError as exc:
        return jsonify({'error': str(exc)}), exc.status
    return jsonify({'message': 'Stone state saved successfully', 'stone': stone.to_dict()}), 200
