"""
Administration: question bank, exams and users
"""
import logging
import math

from flask import Blueprint, current_app, jsonify, request

from aeroprep.core.auth import (
    admin_required, current_user_id, delete_user, get_user, serialize_user, update_user,
)
from aeroprep.core.errors import NotFoundError, ValidationError
from aeroprep.core.exam_manager import serialize_exam
from aeroprep.core.schemas import (
    AdminListQuery, AdminUserQuery, AdminUserUpdate, ExamCreate, ExamUpdate,
    QuestionCreate, QuestionUpdate, RoleUpdate,
)

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__)


def _json_body():
    return request.get_json(silent=True) or {}


@admin_bp.route('/dashboard')
@admin_required
def admin_dashboard():
    return jsonify(dict(current_app.statistics.admin_overview(), success=True))


# Questions

@admin_bp.route('/questions')
@admin_required
def list_questions():
    query = AdminListQuery.model_validate(request.args.to_dict())
    manager = current_app.question_manager
    page = manager.list_questions(
        query.category, query.question_type, query.difficulty, query.search, query.page, query.limit
    )
    return jsonify({
        'success': True,
        'questions': [manager.serialize(question) for question in page['questions']],
        'pagination': page['pagination'],
    })


@admin_bp.route('/questions', methods=['POST'])
@admin_required
def create_question():
    data = QuestionCreate.model_validate(_json_body())
    manager = current_app.question_manager
    question = manager.create_question(data, created_by=current_user_id())
    return jsonify({'success': True, 'question': manager.serialize(question)}), 201


@admin_bp.route('/questions/<int:question_id>')
@admin_required
def get_question(question_id):
    manager = current_app.question_manager
    question = manager.get_question(question_id)
    if question is None:
        raise NotFoundError('Question not found')
    return jsonify({'success': True, 'question': manager.serialize(question)})


@admin_bp.route('/questions/<int:question_id>', methods=['PUT'])
@admin_required
def update_question(question_id):
    data = QuestionUpdate.model_validate(_json_body())
    manager = current_app.question_manager
    question = manager.update_question(question_id, data)
    return jsonify({'success': True, 'question': manager.serialize(question)})


@admin_bp.route('/questions/<int:question_id>', methods=['DELETE'])
@admin_required
def delete_question(question_id):
    current_app.question_manager.delete_question(question_id)
    return jsonify({'success': True, 'message': 'Question deleted'})


# Exams

@admin_bp.route('/exams')
@admin_required
def list_exams():
    query = AdminListQuery.model_validate(request.args.to_dict())
    page = current_app.exam_manager.list_exams_paginated(query.category, query.search, query.page, query.limit)
    return jsonify({
        'success': True,
        'exams': [serialize_exam(exam) for exam in page['exams']],
        'pagination': page['pagination'],
    })


@admin_bp.route('/exams', methods=['POST'])
@admin_required
def create_exam():
    data = ExamCreate.model_validate(_json_body())
    exam = current_app.exam_manager.create_exam(data)
    return jsonify({'success': True, 'exam': serialize_exam(exam)}), 201


@admin_bp.route('/exams/<int:exam_id>')
@admin_required
def get_exam(exam_id):
    exam = current_app.exam_manager.get_exam(exam_id, include_answers=True)
    return jsonify(dict(exam, success=True))


@admin_bp.route('/exams/<int:exam_id>', methods=['PUT'])
@admin_required
def update_exam(exam_id):
    data = ExamUpdate.model_validate(_json_body())
    exam = current_app.exam_manager.update_exam(exam_id, data)
    return jsonify({'success': True, 'exam': serialize_exam(exam)})


@admin_bp.route('/exams/<int:exam_id>', methods=['DELETE'])
@admin_required
def delete_exam(exam_id):
    current_app.exam_manager.delete_exam(exam_id)
    return jsonify({'success': True, 'message': 'Exam deleted'})


# Users

@admin_bp.route('/users')
@admin_required
def list_users():
    query = AdminUserQuery.model_validate(request.args.to_dict())
    users, total = _list_users(current_app.db_manager, query)
    return jsonify({
        'success': True,
        'users': [serialize_user(user) for user in users],
        'pagination': {
            'page': query.page,
            'limit': query.limit,
            'total': total,
            'totalPages': math.ceil(total / query.limit),
        },
    })


@admin_bp.route('/users/<int:user_id>')
@admin_required
def get_user_detail(user_id):
    user = get_user(current_app.db_manager, user_id)
    if user is None:
        raise NotFoundError('User not found')
    return jsonify({'success': True, 'user': serialize_user(user)})


@admin_bp.route('/users/<int:user_id>', methods=['PUT'])
@admin_required
def update_user_detail(user_id):
    data = AdminUserUpdate.model_validate(_json_body())
    if data.role and user_id == current_user_id() and data.role != 'admin':
        raise ValidationError('You cannot change your own role')

    user = update_user(
        current_app.db_manager, user_id,
        name=data.name, email=data.email, password=data.password, role=data.role,
    )
    logger.info(f"User {user_id} updated by {current_user_id()}")
    return jsonify({'success': True, 'message': 'User updated successfully', 'user': serialize_user(user)})


@admin_bp.route('/users/<int:user_id>', methods=['DELETE'])
@admin_required
def delete_user_account(user_id):
    if user_id == current_user_id():
        raise ValidationError('Cannot delete your own account')
    delete_user(current_app.db_manager, user_id)
    logger.info(f"User {user_id} deleted by {current_user_id()}")
    return jsonify({'success': True, 'message': 'User deleted successfully'})


@admin_bp.route('/users/<int:user_id>/role', methods=['PUT'])
@admin_required
def update_user_role(user_id):
    data = RoleUpdate.model_validate(_json_body())
    db_manager = current_app.db_manager

    # Administrators cannot demote themselves
    if user_id == current_user_id():
        raise ValidationError('You cannot change your own role')
    if get_user(db_manager, user_id) is None:
        raise NotFoundError('User not found')

    db_manager.execute_query('UPDATE users SET role = :role WHERE id = :id', {'role': data.role, 'id': user_id})
    logger.info(f"User {user_id} role set to {data.role} by {current_user_id()}")
    return jsonify({'success': True, 'user': serialize_user(get_user(db_manager, user_id))})


def _list_users(db_manager, query):
    conditions = []
    params = {}
    if query.role:
        conditions.append('role = :role')
        params['role'] = query.role
    if query.search:
        conditions.append('(name LIKE :search OR email LIKE :search)')
        params['search'] = f'%{query.search}%'
    where = f"WHERE {' AND '.join(conditions)}" if conditions else ''

    total = db_manager.execute_query(f'SELECT COUNT(*) AS count FROM users {where}', params)[0]['count']
    users = db_manager.execute_query(f"""
        SELECT id, name, email, role, created_at
        FROM users
        {where}
        ORDER BY created_at DESC, id DESC
        LIMIT :limit OFFSET :offset
    """, dict(params, limit=query.limit, offset=(query.page - 1) * query.limit))
    return users, total
