"""
AeroPrep - aviation career exam preparation
Flask + PostgreSQL/SQLite JSON API
"""
import logging
from datetime import timedelta

from flask import Flask

from aeroprep.core.auth import ensure_admin_user, init_auth_routes
from aeroprep.core.certificates import CertificateIssuer
from aeroprep.core.config import Config
from aeroprep.core.database import DatabaseManager
from aeroprep.core.errors import register_error_handlers
from aeroprep.core.exam_manager import ExamManager
from aeroprep.core.question_manager import QuestionManager
from aeroprep.core.statistics import StatisticsAggregator
from aeroprep.core.submission import SubmissionService
from aeroprep.routes import (
    admin_bp, certificate_bp, exam_bp, main_bp, practice_bp, progress_bp, ranking_bp,
)

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


def create_app(config_class=None):
    """Application Factory Pattern"""
    config_class = config_class or Config.from_env()
    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(app)
    _configure_security(app, config_class)

    db_manager = _init_database(config_class)

    # Engine collaborators shared by every request
    app.db_manager = db_manager
    app.question_manager = QuestionManager(
        db_manager,
        default_limit=config_class.DEFAULT_PRACTICE_QUESTIONS,
        max_limit=config_class.MAX_PRACTICE_QUESTIONS,
    )
    app.exam_manager = ExamManager(db_manager, app.question_manager)
    app.submission_service = SubmissionService(db_manager, app.question_manager, app.exam_manager)
    app.statistics = StatisticsAggregator(
        db_manager,
        practice_min_attempts=config_class.PRACTICE_LEADERBOARD_MIN_ATTEMPTS,
        exam_min_attempts=config_class.EXAM_LEADERBOARD_MIN_ATTEMPTS,
    )
    app.certificate_issuer = CertificateIssuer(
        db_manager,
        prefix=config_class.CERTIFICATE_PREFIX,
        min_score=config_class.CERTIFICATE_MIN_SCORE,
    )

    init_auth_routes(app, db_manager)
    ensure_admin_user(db_manager, config_class)

    _register_blueprints(app)
    register_error_handlers(app)

    return app


def configure_logging(app):
    """Single stream handler at LOG_LEVEL"""
    level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO)
    root = logging.getLogger('aeroprep')
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    app.logger.setLevel(level)


def _configure_security(app, config_class):
    if not app.config['SECRET_KEY']:
        if config_class.DEBUG:
            app.config['SECRET_KEY'] = 'dev-secret-key-change-in-production'
            app.logger.warning("Using the development SECRET_KEY; set SECRET_KEY in production")
        else:
            raise ValueError("SECRET_KEY environment variable is not set")

    app.config.update(
        SESSION_COOKIE_SECURE=not config_class.DEBUG,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE='Lax',
        PERMANENT_SESSION_LIFETIME=timedelta(hours=24)
    )


def _init_database(config_class):
    try:
        db_manager = DatabaseManager(config_class.DATABASE_URL)
        db_manager.init_database()
        return db_manager
    except Exception as e:
        raise RuntimeError(f"Database initialization failed: {e}") from e


def _register_blueprints(app):
    blueprints = [
        (main_bp, {}),
        (practice_bp, {'url_prefix': '/api/practice'}),
        (exam_bp, {'url_prefix': '/api/exams'}),
        (progress_bp, {'url_prefix': '/api'}),
        (ranking_bp, {'url_prefix': '/api'}),
        (certificate_bp, {'url_prefix': '/api/certificates'}),
        (admin_bp, {'url_prefix': '/api/admin'}),
    ]

    for blueprint, options in blueprints:
        app.register_blueprint(blueprint, **options)
