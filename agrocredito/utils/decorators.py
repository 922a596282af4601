"""Utility decorators"""
from functools import wraps
from flask import abort
from flask_login import current_user
from agrocredito import login_manager

def permission_required(permission):
    """Decorator to check if user has required permission"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return login_manager.unauthorized()

            if not current_user.has_permission(permission):
                abort(403, description='You do not have permission to perform this action')

            return f(*args, **kwargs)
        return decorated_function
    return decorator

def any_permission_required(*permissions):
    """Decorator to require at least one of the given permissions"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return login_manager.unauthorized()

            if not current_user.has_any_permission(permissions):
                abort(403, description='You do not have permission to perform this action')

            return f(*args, **kwargs)
        return decorated_function
    return decorator

def institution_required(f):
    """Decorator to require a financial institution or its staff"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return login_manager.unauthorized()

        if not current_user.is_institution_member:
            abort(403, description='Financial institution access required')

        return f(*args, **kwargs)
    return decorated_function

def institution_owner_required(f):
    """Decorator to require the institution account itself, not its staff"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return login_manager.unauthorized()

        if current_user.user_type != 'financial_institution' or current_user.parent_institution_id:
            abort(403, description='Only the financial institution can manage its staff')

        return f(*args, **kwargs)
    return decorated_function

def admin_required(f):
    """Decorator to require the administrator wildcard permission"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return login_manager.unauthorized()

        if not current_user.is_admin:
            abort(403, description='Admin access required')

        return f(*args, **kwargs)
    return decorated_function
