"""
Exam listing, retrieval and submission
"""
from flask import Blueprint, current_app, jsonify, request

from aeroprep.core.auth import current_user_id, login_required
from aeroprep.core.exam_manager import serialize_exam
from aeroprep.core.schemas import ExamListQuery, SubmissionRequest

exam_bp = Blueprint('exam', __name__)


def get_exam_manager():
    return current_app.exam_manager


@exam_bp.route('')
@login_required
def list_exams():
    query = ExamListQuery.model_validate(request.args.to_dict())
    exams = get_exam_manager().list_exams(query.category)
    return jsonify({'success': True, 'exams': [serialize_exam(exam) for exam in exams]})


@exam_bp.route('/<int:exam_id>')
@login_required
def get_exam(exam_id):
    """Exam with its questions in order, without answer keys"""
    exam = get_exam_manager().get_exam(exam_id, include_answers=False)
    return jsonify(dict(exam, success=True))


@exam_bp.route('/<int:exam_id>/submit', methods=['POST'])
@login_required
def submit_exam(exam_id):
    data = SubmissionRequest.model_validate(request.get_json(silent=True) or {})
    results = current_app.submission_service.submit_exam(
        current_user_id(),
        exam_id,
        data.answers,
        time_spent=data.time_spent,
        idempotency_key=data.idempotency_key,
    )
    return jsonify({
        'success': True,
        'message': 'Exam submitted successfully',
        'results': results,
    })
