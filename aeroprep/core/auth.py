import logging
from functools import wraps

from flask import current_app, jsonify, request, session
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from .database import serialize_timestamp, utc_now
from .errors import AuthenticationError, AuthorizationError, ConflictError, NotFoundError, ValidationError
from .schemas import LoginRequest, PasswordChange, ProfileUpdate, RegisterRequest

logger = logging.getLogger(__name__)


def current_user_id():
    return session.get('user_id')


def current_role():
    """Role as stored in users; a demotion applies from the next request on"""
    user_id = session.get('user_id')
    if user_id is None:
        return None
    rows = current_app.db_manager.execute_query(
        'SELECT role FROM users WHERE id = :id', {'id': user_id}
    )
    if not rows:
        return None
    session['role'] = rows[0]['role']
    return rows[0]['role']


def is_admin():
    return current_role() == 'admin'


def login_required(f):
    """Login check decorator"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user_id' not in session:
            raise AuthenticationError('Please log in')
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    """Admin role check decorator"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user_id' not in session:
            raise AuthenticationError('Please log in')
        role = current_role()
        if role is None:
            session.clear()
            raise AuthenticationError('Please log in')
        if role != 'admin':
            raise AuthorizationError('Administrator access required')
        return f(*args, **kwargs)
    return decorated_function


def serialize_user(user):
    return {
        'id': user['id'],
        'name': user['name'],
        'email': user['email'],
        'role': user['role'],
        'createdAt': serialize_timestamp(user.get('created_at')),
    }


def get_user(db_manager, user_id):
    users = db_manager.execute_query(
        'SELECT id, name, email, role, created_at FROM users WHERE id = :id', {'id': user_id}
    )
    return users[0] if users else None


def create_user(db_manager, name, email, password, role='user'):
    """Insert a user with a hashed password; duplicate emails raise ConflictError"""
    try:
        rows = db_manager.execute_query("""
            INSERT INTO users (name, email, password_hash, role, created_at)
            VALUES (:name, :email, :password_hash, :role, :created_at)
            RETURNING id
        """, {
            'name': name,
            'email': email.lower(),
            'password_hash': generate_password_hash(password),
            'role': role,
            'created_at': db_manager.timestamp(utc_now()),
        })
    except IntegrityError:
        raise ConflictError('An account with this email already exists')
    return get_user(db_manager, rows[0]['id'])


def update_user(db_manager, user_id, name=None, email=None, password=None, role=None):
    """Apply the given fields; an email owned by another account raises ConflictError"""
    if get_user(db_manager, user_id) is None:
        raise NotFoundError('User not found')

    updates = {}
    if name:
        updates['name'] = name
    if email:
        email = email.lower()
        taken = db_manager.execute_query(
            'SELECT id FROM users WHERE email = :email AND id != :id', {'email': email, 'id': user_id}
        )
        if taken:
            raise ConflictError('Email is already taken')
        updates['email'] = email
    if password:
        updates['password_hash'] = generate_password_hash(password)
    if role:
        updates['role'] = role

    if updates:
        assignments = ', '.join(f'{column} = :{column}' for column in updates)
        try:
            db_manager.execute_query(
                f'UPDATE users SET {assignments} WHERE id = :id', dict(updates, id=user_id)
            )
        except IntegrityError:
            raise ConflictError('Email is already taken')
    return get_user(db_manager, user_id)


def change_password(db_manager, user_id, current_password, new_password):
    users = db_manager.execute_query(
        'SELECT id, password_hash FROM users WHERE id = :id', {'id': user_id}
    )
    if not users:
        raise NotFoundError('User not found')
    if not check_password_hash(users[0]['password_hash'], current_password):
        raise ValidationError('Current password is incorrect')

    db_manager.execute_query(
        'UPDATE users SET password_hash = :password_hash WHERE id = :id',
        {'password_hash': generate_password_hash(new_password), 'id': user_id},
    )
    logger.info(f"User {user_id} changed their password")


def delete_user(db_manager, user_id):
    """Remove an account together with its progress, attempts and submission keys"""
    with db_manager.transaction() as tx:
        params = {'id': user_id}
        tx.execute_query('DELETE FROM submission_keys WHERE user_id = :id', params)
        tx.execute_query('DELETE FROM user_progress WHERE user_id = :id', params)
        tx.execute_query('DELETE FROM user_exam_attempts WHERE user_id = :id', params)
        # Authored questions stay in the bank
        tx.execute_query('UPDATE questions SET created_by = NULL WHERE created_by = :id', params)
        deleted = tx.execute_query('DELETE FROM users WHERE id = :id', params)
        if not deleted:
            raise NotFoundError('User not found')
    logger.info(f"User {user_id} deleted")


def ensure_admin_user(db_manager, config):
    """Create the bootstrap administrator from ADMIN_EMAIL/ADMIN_PASSWORD"""
    if not config.ADMIN_EMAIL or not config.ADMIN_PASSWORD:
        return None
    existing = db_manager.execute_query(
        'SELECT id, role FROM users WHERE email = :email', {'email': config.ADMIN_EMAIL.lower()}
    )
    if existing:
        if existing[0]['role'] != 'admin':
            db_manager.execute_query(
                "UPDATE users SET role = 'admin' WHERE id = :id", {'id': existing[0]['id']}
            )
            logger.info(f"Promoted {config.ADMIN_EMAIL} to administrator")
        return existing[0]['id']

    user = create_user(db_manager, config.ADMIN_NAME, config.ADMIN_EMAIL, config.ADMIN_PASSWORD, role='admin')
    logger.info(f"Administrator account created: {config.ADMIN_EMAIL}")
    return user['id']


def _start_session(user):
    session.clear()
    session.permanent = True
    session['user_id'] = user['id']
    session['name'] = user['name']
    session['role'] = user['role']


def init_auth_routes(app, db_manager):
    """Register the authentication endpoints"""

    @app.route('/api/auth/register', methods=['POST'])
    def register():
        data = RegisterRequest.model_validate(request.get_json(silent=True) or {})
        user = create_user(db_manager, data.name, data.email, data.password)
        _start_session(user)
        app.logger.info(f"New user registered: {user['email']}")
        return jsonify({'success': True, 'user': serialize_user(user)}), 201

    @app.route('/api/auth/login', methods=['POST'])
    def login():
        data = LoginRequest.model_validate(request.get_json(silent=True) or {})
        users = db_manager.execute_query(
            'SELECT id, name, email, role, password_hash, created_at FROM users WHERE email = :email',
            {'email': data.email.lower()},
        )
        if not users or not check_password_hash(users[0]['password_hash'], data.password):
            raise AuthenticationError('Invalid email or password')

        _start_session(users[0])
        return jsonify({'success': True, 'user': serialize_user(users[0])})

    @app.route('/api/auth/logout', methods=['POST'])
    def logout():
        session.clear()
        return jsonify({'success': True})

    @app.route('/api/auth/me')
    @login_required
    def me():
        user = get_user(db_manager, current_user_id())
        if user is None:
            session.clear()
            raise NotFoundError('User not found')
        return jsonify({'success': True, 'user': serialize_user(user)})

    @app.route('/api/settings/profile')
    @login_required
    def profile():
        user = get_user(db_manager, current_user_id())
        if user is None:
            raise NotFoundError('User not found')
        return jsonify({'success': True, 'user': serialize_user(user)})

    @app.route('/api/settings/profile', methods=['PUT'])
    @login_required
    def update_profile():
        data = ProfileUpdate.model_validate(request.get_json(silent=True) or {})
        user = update_user(db_manager, current_user_id(), name=data.name, email=data.email)
        session['name'] = user['name']
        return jsonify({'success': True, 'message': 'Profile updated successfully', 'user': serialize_user(user)})

    @app.route('/api/settings/profile', methods=['POST'])
    @login_required
    def update_password():
        data = PasswordChange.model_validate(request.get_json(silent=True) or {})
        change_password(db_manager, current_user_id(), data.current_password, data.new_password)
        return jsonify({'success': True, 'message': 'Password changed successfully'})
