"""
Leaderboards
"""
from flask import Blueprint, current_app, jsonify, request

from aeroprep.core.auth import current_user_id, login_required
from aeroprep.core.schemas import LeaderboardQuery

ranking_bp = Blueprint('ranking', __name__)


@ranking_bp.route('/leaderboard')
@login_required
def leaderboard():
    """Top users plus the caller's own rank, even outside the top"""
    query = LeaderboardQuery.model_validate(request.args.to_dict())
    board = current_app.statistics.leaderboard_with_rank(
        current_user_id(), kind=query.type, category=query.category, limit=query.limit
    )
    return jsonify(dict(board, success=True))
