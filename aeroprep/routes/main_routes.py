"""
Health check and the personal dashboard
"""
import logging

from flask import Blueprint, current_app, jsonify

from aeroprep.core.auth import current_user_id, login_required
from aeroprep.core.exam_manager import serialize_exam

logger = logging.getLogger(__name__)

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """Liveness probe that also touches the database"""
    try:
        current_app.db_manager.execute_query('SELECT 1 AS ok')
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return jsonify({'status': 'unhealthy', 'database': 'unavailable'}), 503
    return jsonify({'status': 'healthy', 'database': current_app.db_manager.db_type})


@main_bp.route('/api/dashboard/stats')
@login_required
def dashboard_stats():
    stats = current_app.statistics.dashboard(current_user_id())
    stats['upcomingExams'] = [serialize_exam(exam) for exam in current_app.exam_manager.list_exams()[:5]]
    return jsonify(dict(stats, success=True))
