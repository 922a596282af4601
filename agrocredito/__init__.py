"""Application factory and initialization"""
import os
from datetime import datetime
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException
from config import config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()

def create_app(config_name='default', test_config=None):
    """Create and configure the Flask application"""
    app = Flask(__name__)
    app.config.from_object(config[config_name])
    if test_config:
        app.config.update(test_config)
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # Create upload folders if they don't exist
    upload_folder = app.config.get('UPLOAD_FOLDER')
    if upload_folder:
        os.makedirs(os.path.join(upload_folder, 'documents'), exist_ok=True)

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)

    # Bearer-token authentication, see agrocredito.auth.tokens
    from agrocredito.auth.tokens import load_user_from_request

    login_manager.request_loader(load_user_from_request)

    @login_manager.unauthorized_handler
    def unauthorized():
        return error_response(401, 'Authentication required')

    register_error_handlers(app)

    # Register blueprints
    from agrocredito.auth import auth_bp
    from agrocredito.main import main_bp
    from agrocredito.applications import applications_bp
    from agrocredito.accounts import accounts_bp
    from agrocredito.programs import programs_bp
    from agrocredito.notifications import notifications_bp
    from agrocredito.documents import documents_bp
    from agrocredito.settings import settings_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(main_bp, url_prefix='/api')
    app.register_blueprint(applications_bp, url_prefix='/api/credit-applications')
    app.register_blueprint(accounts_bp, url_prefix='/api/accounts')
    app.register_blueprint(programs_bp, url_prefix='/api/credit-programs')
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')
    app.register_blueprint(documents_bp, url_prefix='/api/documents')
    app.register_blueprint(settings_bp, url_prefix='/api')

    return app

def error_response(status_code, message, errors=None):
    """Build the JSON body shared by every error response"""
    payload = {
        'success': False,
        'message': message,
        'timestamp': datetime.utcnow().isoformat(),
    }
    if errors:
        payload['errors'] = errors
    response = jsonify(payload)
    response.status_code = status_code
    return response

def register_error_handlers(app):
    """Render HTTP errors as JSON"""

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        return error_response(error.code, error.description, getattr(error, 'errors', None))

    @app.errorhandler(Exception)
    def handle_unexpected_exception(error):
        db.session.rollback()
        app.logger.exception('Unhandled error: %s', error)
        message = str(error) if app.debug else 'Internal server error'
        return error_response(500, message)
