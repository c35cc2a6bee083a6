"""
Practice sessions
"""
import uuid

from flask import Blueprint, current_app, jsonify, request

from aeroprep.core.auth import current_user_id, login_required
from aeroprep.core.question_manager import describe_subject, parse_subject_id
from aeroprep.core.schemas import PracticeSubmissionRequest, QuestionSetQuery, SubjectQuery

practice_bp = Blueprint('practice', __name__)


def get_question_manager():
    return current_app.question_manager


@practice_bp.route('/questions')
@login_required
def practice_questions():
    """Random question batch; answer keys stay on the server"""
    query = QuestionSetQuery.model_validate(request.args.to_dict())
    questions = get_question_manager().get_question_set(
        query.category, query.question_type, query.difficulty, query.limit
    )
    return jsonify({
        'success': True,
        'sessionId': uuid.uuid4().hex,
        'questions': [get_question_manager().serialize(question, include_answer=False) for question in questions],
    })


@practice_bp.route('/subjects')
@login_required
def practice_subjects():
    query = SubjectQuery.model_validate(request.args.to_dict())
    subjects = get_question_manager().list_subjects(query.category, query.search)
    return jsonify({'success': True, 'subjects': subjects})


@practice_bp.route('/subjects/<subject_id>')
@login_required
def practice_subject(subject_id):
    """Question batch for one subject, e.g. 'pilot-math'"""
    category, question_type = parse_subject_id(subject_id)
    query = QuestionSetQuery.model_validate(dict(request.args.to_dict(), category=category))
    manager = get_question_manager()
    questions = manager.get_question_set(category, question_type, query.difficulty, query.limit)
    return jsonify({
        'success': True,
        'sessionId': uuid.uuid4().hex,
        'subject': describe_subject(category, question_type, len(questions)),
        'questions': [manager.serialize(question, include_answer=False) for question in questions],
    })


@practice_bp.route('/submit', methods=['POST'])
@login_required
def submit_practice():
    data = PracticeSubmissionRequest.model_validate(request.get_json(silent=True) or {})
    results = current_app.submission_service.submit_practice(
        current_user_id(),
        data.answers,
        time_spent=data.time_spent,
        session_id=data.session_id,
        idempotency_key=data.idempotency_key,
    )
    return jsonify({
        'success': True,
        'message': 'Practice session submitted successfully',
        'results': results,
    })
