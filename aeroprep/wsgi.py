"""
WSGI entry point: gunicorn aeroprep.wsgi:app
"""
from aeroprep.app import create_app

app = create_app()
