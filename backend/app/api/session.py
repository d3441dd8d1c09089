from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from app.services.session import registry


session_api = Blueprint('session_api', __name__)


@session_api.route('/primary', methods=['GET'])
@login_required
def get_primary():
    """Current holder of the user's leader slot and the connected tabs."""
    record = registry.read_slot(current_user.id)
    tabs = registry.tabs_for(current_user.id)
    return jsonify({
        'primary': record.to_dict() if record else None,
        'tabs': [
            {'tab_id': t['coordinator'].tab_id, 'is_primary': t['coordinator'].is_primary}
            for t in tabs
        ],
    })


@session_api.route('/primary', methods=['DELETE'])
@login_required
def clear_primary():
    """Empty the leader slot, e.g. when the primary tab died without releasing it."""
    previous = registry.clear_slot(current_user.id)
    return jsonify({
        'cleared': previous is not None,
        'previous': previous.to_dict() if previous else None,
    })
