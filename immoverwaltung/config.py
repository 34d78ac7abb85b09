"""Flask Application Configuration."""
import os
from pathlib import Path

basedir = Path(__file__).parent.parent.absolute()


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Database URL - supports SQLite, PostgreSQL, MariaDB/MySQL
    # Fix postgres:// → postgresql:// (some tools use deprecated format)
    _database_url = os.environ.get('DATABASE_URL', '')
    if _database_url.startswith('postgres://'):
        _database_url = _database_url.replace('postgres://', 'postgresql://', 1)
    SQLALCHEMY_DATABASE_URI = _database_url or f'sqlite:///{basedir}/instance/immoverwaltung.db'

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Beziehungs-Abgleich beim Speichern einer Entität:
    # 'atomic'  - Set-Diff nach ID in einer Transaktion (kein Teilerfolg möglich)
    # 'replace' - alle löschen, dann neu einfügen (Teilerfolg möglich)
    RECONCILE_MODE = os.environ.get('RECONCILE_MODE', 'atomic')

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    WTF_CSRF_ENABLED = False
    RECONCILE_MODE = 'atomic'


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
