import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


class Config:
    # Environment
    FLASK_ENV = os.getenv('FLASK_ENV', 'development')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///portal.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Rendered and signed PDFs
    ARTIFACT_STORAGE_DIR = os.getenv('ARTIFACT_STORAGE_DIR', str(BASE_DIR / 'instance' / 'artifacts'))

    # Default templates
    DOCUMENT_TEMPLATES_DIR = os.getenv('DOCUMENT_TEMPLATES_DIR', str(BASE_DIR / 'document_templates'))
    SEED_DEFAULT_TEMPLATES = os.getenv('SEED_DEFAULT_TEMPLATES', 'True').lower() == 'true'

    # Contracts
    DEFAULT_COMMISSION_PERCENTAGE = float(os.getenv('DEFAULT_COMMISSION_PERCENTAGE', 15))


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    ARTIFACT_STORAGE_DIR = None  # In-memory artifact storage
    SEED_DEFAULT_TEMPLATES = True
