"""
Personal progress statistics
"""
from flask import Blueprint, current_app, jsonify, request

from aeroprep.core.auth import current_user_id, login_required
from aeroprep.core.schemas import ProgressQuery, StatisticsQuery

progress_bp = Blueprint('progress', __name__)


@progress_bp.route('/progress')
@login_required
def progress():
    query = ProgressQuery.model_validate(request.args.to_dict())
    summary = current_app.statistics.progress_summary(
        current_user_id(), category=query.category, question_type=query.question_type
    )
    return jsonify(dict(summary, success=True))


@progress_bp.route('/progress/stats')
@login_required
def progress_stats():
    query = StatisticsQuery.model_validate(request.args.to_dict())
    stats = current_app.statistics.user_statistics(current_user_id(), query.timeframe)
    return jsonify(dict(stats, success=True))
