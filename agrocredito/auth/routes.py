"""Authentication routes"""
from datetime import datetime
from flask import jsonify, abort, current_app
from flask_login import login_required, current_user
from agrocredito import db
from agrocredito.auth import auth_bp
from agrocredito.auth.forms import LoginForm, RegistrationForm
from agrocredito.auth.tokens import create_jwt
from agrocredito.models import User
from agrocredito.utils.access_control import default_profile_for
from agrocredito.utils.helpers import log_activity, validate_form

def find_duplicate_user(phone=None, email=None, bi=None, exclude_id=None):
    """Name of the first identity field already taken by another user"""
    for field, value in (('phone', phone), ('email', email), ('bi', bi)):
        if not value:
            continue
        query = User.query.filter(getattr(User, field) == value)
        if exclude_id:
            query = query.filter(User.id != exclude_id)
        if query.first() is not None:
            return field
    return None

@auth_bp.route('/register', methods=['POST'])
def register():
    """Self-registration for applicants and institutions"""
    form = validate_form(RegistrationForm)
    email = form.email.data.strip().lower() if form.email.data else None

    duplicate = find_duplicate_user(form.phone.data, email, form.bi.data)
    if duplicate:
        abort(409, description=f'A user with this {duplicate} already exists')

    user = User(
        full_name=form.full_name.data.strip(),
        bi=form.bi.data,
        nif=form.nif.data or None,
        phone=form.phone.data,
        email=email,
        user_type=form.user_type.data,
        is_active=True
    )
    user.set_password(form.password.data)
    user.profile = default_profile_for(user.user_type)
    db.session.add(user)
    db.session.flush()

    log_activity(
        'register',
        entity_type='user',
        entity_id=user.id,
        description=f'User {user.full_name} registered as {user.user_type}',
        user_id=user.id
    )
    db.session.commit()
    current_app.logger.info('User %s registered as %s', user.id, user.user_type)

    return jsonify({'user': user.to_dict(), 'token': create_jwt(user)}), 201

@auth_bp.route('/login', methods=['POST'])
def login():
    """User login by phone or email"""
    form = validate_form(LoginForm)
    identifier = form.login_identifier.data.strip()

    if '@' in identifier:
        user = User.query.filter_by(email=identifier.lower()).first()
    else:
        user = User.query.filter_by(phone=identifier).first()

    if user is None or not user.check_password(form.password.data):
        abort(401, description='Invalid credentials')

    if not user.is_active:
        abort(403, description='Your account has been deactivated. Please contact the administrator.')

    user.last_login = datetime.utcnow()
    log_activity(
        'login',
        entity_type='user',
        entity_id=user.id,
        description=f'User {user.full_name} logged in',
        user_id=user.id
    )
    db.session.commit()
    current_app.logger.info('User %s logged in', user.id)

    return jsonify({'user': user.to_dict(), 'token': create_jwt(user)})

@auth_bp.route('/me')
@login_required
def me():
    """Current user"""
    return jsonify(current_user.to_dict())

@auth_bp.route('/permissions')
@login_required
def permissions():
    """Permission names granted to the current user"""
    return jsonify({
        'profile': current_user.profile.to_dict() if current_user.profile else None,
        'permissions': sorted(current_user.permission_names),
    })
