from flask import Blueprint, jsonify, current_app
from flask_login import login_required, current_user
from app.services.attendance import check_attendance
from app.services.xp import load_xp_table


profile_api = Blueprint('profile_api', __name__)


@profile_api.route('', methods=['GET'])
@login_required
def get_profile():
    table = {item.level: item for item in load_xp_table(current_app.config.get('XP_TABLE_PATH'))}
    profile = current_user.to_dict()
    current_level = table.get(profile['level'])
    profile['next_level_xp'] = current_level.cumulative_xp if current_level else None
    return jsonify(profile)


@profile_api.route('/attendance', methods=['POST'])
@login_required
def attendance():
    reward = check_attendance(current_user._get_current_object())
    return jsonify({
        'success': True,
        'message': 'attendance.success' if reward else '',
        'reward': reward,
        'balance': current_user.balance,
    })
