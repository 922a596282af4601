import os
import tempfile
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Base configuration"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///agrocredito.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }

    # Bearer tokens
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or SECRET_KEY
    JWT_EXPIRES_DAYS = int(os.environ.get('JWT_EXPIRES_DAYS') or 7)

    # The API authenticates with bearer tokens, not cookies
    WTF_CSRF_ENABLED = False

    # Upload configuration
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER') or os.path.join(os.path.dirname(os.path.abspath(__file__)), 'uploads')
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10MB max file size
    ALLOWED_EXTENSIONS = {'pdf', 'png', 'jpg', 'jpeg', 'gif'}

    # Pagination
    ITEMS_PER_PAGE = 25

    # Credit defaults
    DEFAULT_CURRENCY = 'AOA'
    DEFAULT_BASE_INTEREST_RATE = 15
    DEFAULT_EFFORT_RATE = 30
    PROJECT_TYPE_RATE_ADJUSTMENTS = {
        'cattle': -2,
        'corn': -1,
        'cassava': 0,
        'horticulture': 1,
        'poultry': 2,
        'other': 3,
    }
    FIRST_PAYMENT_DELAY_DAYS = 30

    # Seconds between client polls for new notifications
    NOTIFICATION_POLL_INTERVAL = 15

    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'

class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SQLALCHEMY_ECHO = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'DEBUG'

class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    # Database optimization for production
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
        'pool_size': 10,
        'max_overflow': 20
    }

class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    UPLOAD_FOLDER = os.path.join(tempfile.gettempdir(), 'agrocredito-test-uploads')
    JWT_SECRET_KEY = 'testing-secret'
    LOG_LEVEL = 'WARNING'

config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
