"""
Configuration for the application
Loads settings from environment variables
"""
import os
from dotenv import load_dotenv

# Load environment variables (for local development)
load_dotenv()


def _read_environment():
    """Collect every setting from os.environ"""
    database_url = os.environ.get('DATABASE_URL', 'sqlite:///aeroprep.db')
    # Render and Heroku hand out postgres:// URLs
    if database_url.startswith('postgres://'):
        database_url = database_url.replace('postgres://', 'postgresql://', 1)

    return {
        # Flask settings
        'SECRET_KEY': os.environ.get('SECRET_KEY'),
        'DEBUG': os.environ.get('DEBUG', 'False').lower() == 'true',
        'LOG_LEVEL': os.environ.get('LOG_LEVEL', 'INFO').upper(),

        # Database settings
        'DATABASE_URL': database_url,

        # Admin bootstrap (optional, for initial setup)
        'ADMIN_EMAIL': os.environ.get('ADMIN_EMAIL'),
        'ADMIN_PASSWORD': os.environ.get('ADMIN_PASSWORD'),
        'ADMIN_NAME': os.environ.get('ADMIN_NAME', 'Administrator'),

        # Server settings
        'PORT': int(os.environ.get('PORT', 5002)),
        'HOST': os.environ.get('HOST', '0.0.0.0'),

        # Exam engine settings
        'CERTIFICATE_PREFIX': os.environ.get('CERTIFICATE_PREFIX', 'ET-'),
        'CERTIFICATE_MIN_SCORE': int(os.environ.get('CERTIFICATE_MIN_SCORE', 0)),
        'PRACTICE_LEADERBOARD_MIN_ATTEMPTS': int(os.environ.get('PRACTICE_LEADERBOARD_MIN_ATTEMPTS', 5)),
        'EXAM_LEADERBOARD_MIN_ATTEMPTS': int(os.environ.get('EXAM_LEADERBOARD_MIN_ATTEMPTS', 1)),
        'DEFAULT_PRACTICE_QUESTIONS': int(os.environ.get('DEFAULT_PRACTICE_QUESTIONS', 10)),
        'MAX_PRACTICE_QUESTIONS': int(os.environ.get('MAX_PRACTICE_QUESTIONS', 50)),
    }


class Config:
    """Application configuration"""

    _env = _read_environment()

    SECRET_KEY = _env['SECRET_KEY']
    DEBUG = _env['DEBUG']
    LOG_LEVEL = _env['LOG_LEVEL']
    DATABASE_URL = _env['DATABASE_URL']
    ADMIN_EMAIL = _env['ADMIN_EMAIL']
    ADMIN_PASSWORD = _env['ADMIN_PASSWORD']
    ADMIN_NAME = _env['ADMIN_NAME']
    PORT = _env['PORT']
    HOST = _env['HOST']
    CERTIFICATE_PREFIX = _env['CERTIFICATE_PREFIX']
    CERTIFICATE_MIN_SCORE = _env['CERTIFICATE_MIN_SCORE']
    PRACTICE_LEADERBOARD_MIN_ATTEMPTS = _env['PRACTICE_LEADERBOARD_MIN_ATTEMPTS']
    EXAM_LEADERBOARD_MIN_ATTEMPTS = _env['EXAM_LEADERBOARD_MIN_ATTEMPTS']
    DEFAULT_PRACTICE_QUESTIONS = _env['DEFAULT_PRACTICE_QUESTIONS']
    MAX_PRACTICE_QUESTIONS = _env['MAX_PRACTICE_QUESTIONS']
    del _env

    @classmethod
    def database_type(cls):
        """Database flavour derived from DATABASE_URL"""
        if cls.DATABASE_URL.startswith('postgresql'):
            return 'postgresql'
        return 'sqlite'

    @classmethod
    def from_env(cls):
        """Config subclass rebuilt from the current environment"""
        return type('EnvConfig', (cls,), _read_environment())
