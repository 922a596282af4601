"""User, profile and institution staff management routes"""
from flask import jsonify, abort, request, current_app
from flask_login import login_required, current_user
from agrocredito import db
from agrocredito.auth.routes import find_duplicate_user
from agrocredito.models import CreditApplication, CreditProgram, Permission, Profile, User, APPLICANT_TYPES, WILDCARD_PERMISSION
from agrocredito.settings import settings_bp
from agrocredito.settings.forms import (
    AssignProfileForm, InternalUserForm, ProfileForm, ProfilePermissionsForm, UserEditForm, UserForm
)
from agrocredito.utils.access_control import default_profile_for
from agrocredito.utils.decorators import institution_owner_required, permission_required
from agrocredito.utils.helpers import log_activity, request_formdata, validate_form, validation_error

def _get_profile_or_400(profile_id):
    profile = db.session.get(Profile, profile_id)
    if profile is None or not profile.is_active:
        abort(400, description='Profile not found or inactive')
    return profile

def _get_permissions(permission_ids):
    permissions = Permission.query.filter(Permission.id.in_(permission_ids)).all() if permission_ids else []
    if len(permissions) != len(set(permission_ids)):
        abort(400, description='One or more permissions do not exist')
    return permissions

def _holds_wildcard(permissions):
    return WILDCARD_PERMISSION in {p.name for p in permissions}

def _check_wildcard_grant(permissions):
    if _holds_wildcard(permissions) and not current_user.is_admin:
        abort(403, description='Only administrators can grant administrator rights')

def _check_profile_editable(profile):
    """Administrator profiles are changed by administrators only"""
    if _holds_wildcard(profile.permissions) and not current_user.is_admin:
        abort(403, description='Only administrators can change administrator profiles')

def _is_system_admin_profile(profile):
    return profile.is_system and _holds_wildcard(profile.permissions)

def _check_identity_free(phone=None, email=None, bi=None, exclude_id=None):
    duplicate = find_duplicate_user(phone, email, bi, exclude_id)
    if duplicate:
        abort(409, description=f'A user with this {duplicate} already exists')

# Users
@settings_bp.route('/users')
@login_required
@permission_required('users.read')
def list_users():
    """List all users"""
    query = User.query
    user_type = request.args.get('userType')
    if user_type:
        query = query.filter_by(user_type=user_type)
    users = query.order_by(User.created_at.desc()).all()
    return jsonify([u.to_dict() for u in users])

@settings_bp.route('/users/financial-institutions')
def financial_institutions():
    """Active institutions, for applicants choosing where to apply"""
    institutions = User.query.filter(
        User.user_type == 'financial_institution',
        User.parent_institution_id.is_(None),
        User.is_active.is_(True)
    ).order_by(User.full_name).all()
    return jsonify([{'id': i.id, 'fullName': i.full_name, 'email': i.email, 'phone': i.phone} for i in institutions])

@settings_bp.route('/users', methods=['POST'])
@login_required
@permission_required('users.create')
def add_user():
    """Add new user"""
    form = validate_form(UserForm)
    email = form.email.data.strip().lower() if form.email.data else None
    _check_identity_free(form.phone.data, email, form.bi.data)

    if form.user_type.data == 'admin' and not current_user.is_admin:
        abort(403, description='Only administrators can create administrators')

    parent_id = form.parent_institution_id.data or None
    if parent_id:
        parent = db.session.get(User, parent_id)
        if parent is None or parent.user_type != 'financial_institution' or parent.parent_institution_id:
            abort(400, description='Parent institution not found')
        if form.user_type.data != 'financial_institution':
            abort(400, description='Only institution staff can belong to an institution')

    profile = _get_profile_or_400(form.profile_id.data) if form.profile_id.data else default_profile_for(form.user_type.data)
    _check_wildcard_grant(profile.permissions)
    if form.user_type.data == 'admin' and not _holds_wildcard(profile.permissions):
        abort(400, description='Administrators need an administrator profile')

    user = User(
        full_name=form.full_name.data.strip(),
        bi=form.bi.data,
        nif=form.nif.data or None,
        phone=form.phone.data,
        email=email,
        user_type=form.user_type.data,
        parent_institution_id=parent_id,
        profile=profile,
        is_active=True
    )
    user.set_password(form.password.data)
    db.session.add(user)
    db.session.flush()

    log_activity(
        'create_user',
        entity_type='user',
        entity_id=user.id,
        description=f'Created user: {user.full_name} as {user.user_type}'
    )
    db.session.commit()
    return jsonify(user.to_dict()), 201

@settings_bp.route('/users/<id>')
@login_required
@permission_required('users.read')
def view_user(id):
    """View user"""
    user = db.get_or_404(User, id, description='User not found')
    return jsonify(user.to_dict())

def _apply_user_edit(user, form, formdata):
    email = form.email.data.strip().lower() if form.email.data else None
    _check_identity_free(form.phone.data, email, exclude_id=user.id)

    if form.full_name.data:
        user.full_name = form.full_name.data.strip()
    if form.nif.data:
        user.nif = form.nif.data
    if form.phone.data:
        user.phone = form.phone.data
    if email:
        user.email = email
    if form.password.data:
        user.set_password(form.password.data)
    if 'is_active' in formdata:
        if user.id == current_user.id and not form.is_active.data:
            abort(400, description='You cannot deactivate your own account')
        user.is_active = form.is_active.data

@settings_bp.route('/users/<id>', methods=['PATCH'])
@login_required
@permission_required('users.update')
def edit_user(id):
    """Edit user"""
    user = db.get_or_404(User, id, description='User not found')
    formdata = request_formdata()
    form = UserEditForm(formdata=formdata)
    if not form.validate():
        raise validation_error(form)

    _apply_user_edit(user, form, formdata)
    log_activity('update_user', entity_type='user', entity_id=user.id, description=f'Updated user: {user.full_name}')
    db.session.commit()
    return jsonify(user.to_dict())

@settings_bp.route('/users/<id>/profile', methods=['PATCH'])
@login_required
@permission_required('users.update')
def assign_profile(id):
    """Assign a profile to a user"""
    user = db.get_or_404(User, id, description='User not found')
    form = validate_form(AssignProfileForm)
    profile = _get_profile_or_400(form.profile_id.data)

    if _holds_wildcard(profile.permissions) and not current_user.is_admin:
        abort(403, description='Only administrators can grant administrator profiles')

    user.profile = profile
    log_activity(
        'assign_profile',
        entity_type='user',
        entity_id=user.id,
        description=f'Assigned profile {profile.name} to {user.full_name}'
    )
    db.session.commit()
    return jsonify(user.to_dict())

@settings_bp.route('/users/<id>/deactivate', methods=['PATCH'])
@login_required
@permission_required('users.delete')
def deactivate_user(id):
    """Deactivate user"""
    user = db.get_or_404(User, id, description='User not found')

    if user.id == current_user.id:
        abort(400, description='You cannot deactivate your own account')

    user.is_active = False
    log_activity('deactivate_user', entity_type='user', entity_id=user.id, description=f'Deactivated user: {user.full_name}')
    db.session.commit()
    current_app.logger.info('User %s deactivated by %s', user.id, current_user.id)
    return jsonify(user.to_dict())

# Profiles
@settings_bp.route('/profiles')
@login_required
@permission_required('profiles.read')
def list_profiles():
    """List profiles"""
    profiles = Profile.query.order_by(Profile.name).all()
    return jsonify([p.to_dict() for p in profiles])

@settings_bp.route('/profiles/permissions/all')
@login_required
@permission_required('profiles.read')
def list_permissions():
    """Full permission catalogue"""
    permissions = Permission.query.order_by(Permission.module, Permission.action).all()
    return jsonify([p.to_dict() for p in permissions])

@settings_bp.route('/profiles', methods=['POST'])
@login_required
@permission_required('profiles.manage')
def add_profile():
    """Add new profile"""
    formdata = request_formdata()
    form = ProfileForm(formdata=formdata)
    if not form.validate():
        raise validation_error(form)

    if Profile.query.filter_by(name=form.name.data.strip()).first():
        abort(409, description='A profile with this name already exists')

    profile = Profile(
        name=form.name.data.strip(),
        description=form.description.data,
        is_active=form.is_active.data if 'is_active' in formdata else True,
        is_system=False
    )
    permissions = _get_permissions(form.permission_ids.data or [])
    _check_wildcard_grant(permissions)
    profile.permissions = permissions
    db.session.add(profile)
    db.session.flush()

    log_activity('create_profile', entity_type='profile', entity_id=profile.id, description=f'Created profile: {profile.name}')
    db.session.commit()
    return jsonify(profile.to_dict(include_permissions=True)), 201

@settings_bp.route('/profiles/<id>')
@login_required
@permission_required('profiles.read')
def view_profile(id):
    """View profile with permissions"""
    profile = db.get_or_404(Profile, id, description='Profile not found')
    return jsonify(profile.to_dict(include_permissions=True))

@settings_bp.route('/profiles/<id>', methods=['PATCH'])
@login_required
@permission_required('profiles.manage')
def edit_profile(id):
    """Edit profile"""
    profile = db.get_or_404(Profile, id, description='Profile not found')
    _check_profile_editable(profile)
    formdata = request_formdata()
    form = ProfileForm(formdata=formdata)
    if not form.validate():
        raise validation_error(form)

    name = form.name.data.strip()
    duplicate = Profile.query.filter(Profile.name == name, Profile.id != profile.id).first()
    if duplicate:
        abort(409, description='A profile with this name already exists')
    if profile.is_system and name != profile.name:
        abort(400, description='System profiles cannot be renamed')

    permissions = None
    if 'permission_ids' in formdata:
        permissions = _get_permissions(form.permission_ids.data or [])
        _check_wildcard_grant(permissions)
    if _is_system_admin_profile(profile):
        if 'is_active' in formdata and not form.is_active.data:
            abort(400, description='The administrator profile cannot be deactivated')
        if permissions is not None and {p.id for p in permissions} != {p.id for p in profile.permissions}:
            abort(400, description='The administrator profile permissions cannot be changed')

    profile.name = name
    profile.description = form.description.data
    if 'is_active' in formdata:
        profile.is_active = form.is_active.data
    if permissions is not None:
        profile.permissions = permissions

    log_activity('update_profile', entity_type='profile', entity_id=profile.id, description=f'Updated profile: {profile.name}')
    db.session.commit()
    return jsonify(profile.to_dict(include_permissions=True))

@settings_bp.route('/profiles/<id>', methods=['DELETE'])
@login_required
@permission_required('profiles.manage')
def delete_profile(id):
    """Delete a profile nobody uses"""
    profile = db.get_or_404(Profile, id, description='Profile not found')
    _check_profile_editable(profile)

    if profile.is_system:
        abort(400, description='System profiles cannot be deleted')
    if profile.users.count():
        abort(409, description='This profile is assigned to users')

    log_activity('delete_profile', entity_type='profile', entity_id=profile.id, description=f'Deleted profile: {profile.name}')
    db.session.delete(profile)
    db.session.commit()
    return jsonify({'message': 'Profile deleted'})

@settings_bp.route('/profiles/<id>/permissions')
@login_required
@permission_required('profiles.read')
def profile_permissions(id):
    """Permissions of a profile"""
    profile = db.get_or_404(Profile, id, description='Profile not found')
    return jsonify([p.to_dict() for p in profile.permissions])

@settings_bp.route('/profiles/<id>/permissions', methods=['POST'])
@login_required
@permission_required('profiles.manage')
def add_profile_permissions(id):
    """Grant permissions to a profile"""
    profile = db.get_or_404(Profile, id, description='Profile not found')
    _check_profile_editable(profile)
    form = validate_form(ProfilePermissionsForm)
    permissions = _get_permissions(form.permission_ids.data)
    _check_wildcard_grant(permissions)
    if _is_system_admin_profile(profile):
        abort(400, description='The administrator profile permissions cannot be changed')

    granted = {p.id for p in profile.permissions}
    for permission in permissions:
        if permission.id not in granted:
            profile.permissions.append(permission)

    log_activity('grant_permissions', entity_type='profile', entity_id=profile.id, description=f'Granted permissions to profile: {profile.name}')
    db.session.commit()
    return jsonify(profile.to_dict(include_permissions=True))

@settings_bp.route('/profiles/<id>/permissions/<permission_id>', methods=['DELETE'])
@login_required
@permission_required('profiles.manage')
def remove_profile_permission(id, permission_id):
    """Revoke one permission from a profile"""
    profile = db.get_or_404(Profile, id, description='Profile not found')
    _check_profile_editable(profile)
    if _is_system_admin_profile(profile):
        abort(400, description='The administrator profile permissions cannot be changed')
    permission = next((p for p in profile.permissions if p.id == permission_id), None)
    if permission is None:
        abort(404, description='Permission not granted to this profile')

    profile.permissions.remove(permission)
    log_activity('revoke_permission', entity_type='profile', entity_id=profile.id, description=f'Revoked {permission.name} from profile: {profile.name}')
    db.session.commit()
    return jsonify(profile.to_dict(include_permissions=True))

# Institution staff
def _get_own_staff(id):
    user = User.query.filter_by(id=id, parent_institution_id=current_user.id).first()
    if user is None:
        abort(404, description='Internal user not found')
    return user

def _staff_profile(profile_id):
    profile = _get_profile_or_400(profile_id)
    if _holds_wildcard(profile.permissions):
        abort(400, description='Administrator profiles cannot be given to institution staff')
    return profile

@settings_bp.route('/financial-users/internal')
@login_required
@institution_owner_required
def list_internal_users():
    """Staff of the current institution"""
    users = current_user.internal_users.order_by(User.created_at.desc()).all()
    return jsonify([u.to_dict() for u in users])

@settings_bp.route('/financial-users/internal', methods=['POST'])
@login_required
@institution_owner_required
def add_internal_user():
    """Add a staff member to the current institution"""
    form = validate_form(InternalUserForm)
    email = form.email.data.strip().lower() if form.email.data else None
    _check_identity_free(form.phone.data, email, form.bi.data)

    profile = _staff_profile(form.profile_id.data) if form.profile_id.data else default_profile_for('financial_institution')
    user = User(
        full_name=form.full_name.data.strip(),
        bi=form.bi.data,
        nif=form.nif.data or None,
        phone=form.phone.data,
        email=email,
        user_type='financial_institution',
        parent_institution_id=current_user.id,
        profile=profile,
        is_active=True
    )
    user.set_password(form.password.data)
    db.session.add(user)
    db.session.flush()

    log_activity('create_internal_user', entity_type='user', entity_id=user.id, description=f'Added staff member: {user.full_name}')
    db.session.commit()
    return jsonify(user.to_dict()), 201

@settings_bp.route('/financial-users/internal/<id>', methods=['PATCH'])
@login_required
@institution_owner_required
def edit_internal_user(id):
    """Edit a staff member"""
    user = _get_own_staff(id)
    formdata = request_formdata()
    form = UserEditForm(formdata=formdata)
    if not form.validate():
        raise validation_error(form)

    _apply_user_edit(user, form, formdata)
    log_activity('update_internal_user', entity_type='user', entity_id=user.id, description=f'Updated staff member: {user.full_name}')
    db.session.commit()
    return jsonify(user.to_dict())

@settings_bp.route('/financial-users/internal/<id>/deactivate', methods=['PATCH'])
@login_required
@institution_owner_required
def deactivate_internal_user(id):
    """Deactivate a staff member"""
    user = _get_own_staff(id)
    user.is_active = False
    log_activity('deactivate_internal_user', entity_type='user', entity_id=user.id, description=f'Deactivated staff member: {user.full_name}')
    db.session.commit()
    return jsonify(user.to_dict())

@settings_bp.route('/financial-users/internal/<id>/profile', methods=['PATCH'])
@login_required
@institution_owner_required
def assign_internal_profile(id):
    """Assign a profile to a staff member"""
    user = _get_own_staff(id)
    form = validate_form(AssignProfileForm)
    user.profile = _staff_profile(form.profile_id.data)
    log_activity('assign_profile', entity_type='user', entity_id=user.id, description=f'Assigned profile {user.profile.name} to {user.full_name}')
    db.session.commit()
    return jsonify(user.to_dict())

@settings_bp.route('/financial-users/clients')
@login_required
@institution_owner_required
def list_clients():
    """Applicants who applied to the current institution's programs"""
    clients = User.query.join(
        CreditApplication, CreditApplication.user_id == User.id
    ).join(
        CreditProgram, CreditApplication.credit_program_id == CreditProgram.id
    ).filter(
        CreditProgram.financial_institution_id == current_user.id,
        User.user_type.in_(APPLICANT_TYPES)
    ).distinct().order_by(User.full_name).all()
    return jsonify([c.to_dict() for c in clients])
