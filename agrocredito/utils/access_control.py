"""Permission catalogue and default profiles"""
from flask import current_app
from agrocredito import db
from agrocredito.models import Permission, Profile, WILDCARD_PERMISSION

PERMISSIONS = {
    WILDCARD_PERMISSION: 'Full access to every module',
    'users.create': 'Create users',
    'users.read': 'View users',
    'users.update': 'Edit users and assign profiles',
    'users.delete': 'Deactivate users',
    'profiles.read': 'View profiles and permissions',
    'profiles.manage': 'Create, edit and delete profiles',
    'credit_programs.create': 'Create credit programs',
    'credit_programs.read': 'View credit programs',
    'credit_programs.update': 'Edit and toggle credit programs',
    'credit_programs.delete': 'Delete credit programs',
    'credit_applications.create': 'Submit credit applications',
    'credit_applications.read': 'View credit applications',
    'credit_applications.update': 'Edit credit applications',
    'credit_applications.review': 'Put credit applications under review',
    'credit_applications.approve': 'Approve credit applications',
    'credit_applications.reject': 'Reject credit applications',
    'accounts.create': 'Open accounts',
    'accounts.read': 'View accounts',
    'accounts.update': 'Edit accounts',
    'payments.create': 'Record payments',
    'payments.read': 'View payments',
    'notifications.create': 'Send notifications to users',
    'admin.dashboard': 'View the admin dashboard',
    'admin.reports': 'View reports',
    'admin.settings': 'Manage system settings',
}

APPLICANT_PERMISSIONS = [
    'credit_programs.read',
    'credit_applications.create',
    'credit_applications.read',
    'accounts.read',
    'payments.create',
    'payments.read',
]

INSTITUTION_PERMISSIONS = [
    'users.read',
    'profiles.read',
    'credit_programs.create',
    'credit_programs.read',
    'credit_programs.update',
    'credit_programs.delete',
    'credit_applications.read',
    'credit_applications.update',
    'credit_applications.review',
    'credit_applications.approve',
    'credit_applications.reject',
    'accounts.read',
    'accounts.update',
    'payments.read',
]

DEFAULT_PROFILES = {
    'Administrator': ('Full system access', [WILDCARD_PERMISSION]),
    'Financial Institution': ('Credit program and application management', INSTITUTION_PERMISSIONS),
    'Farmer': ('Individual farmer', APPLICANT_PERMISSIONS),
    'Agricultural Company': ('Agricultural company', APPLICANT_PERMISSIONS),
    'Cooperative': ('Agricultural cooperative', APPLICANT_PERMISSIONS),
    'Analyst': ('Institution staff reviewing applications', [
        'credit_programs.read',
        'credit_applications.read',
        'credit_applications.review',
        'accounts.read',
        'payments.read',
    ]),
    'Manager': ('Institution staff deciding on applications', [
        'credit_programs.read',
        'credit_programs.update',
        'credit_applications.read',
        'credit_applications.review',
        'credit_applications.approve',
        'credit_applications.reject',
        'accounts.read',
        'payments.read',
    ]),
}

PROFILE_BY_USER_TYPE = {
    'admin': 'Administrator',
    'financial_institution': 'Financial Institution',
    'farmer': 'Farmer',
    'company': 'Agricultural Company',
    'cooperative': 'Cooperative',
}

def seed_access_control():
    """Create missing permissions and default profiles; existing grants are kept"""
    permissions = {p.name: p for p in Permission.query.all()}
    for name, description in PERMISSIONS.items():
        if name in permissions:
            continue
        if name == WILDCARD_PERMISSION:
            module, action = '*', '*'
        else:
            module, action = name.split('.', 1)
        permission = Permission(name=name, module=module, action=action, description=description)
        db.session.add(permission)
        permissions[name] = permission

    created = 0
    for name, (description, grants) in DEFAULT_PROFILES.items():
        profile = Profile.query.filter_by(name=name).first()
        if profile is not None:
            continue
        profile = Profile(name=name, description=description, is_system=True)
        profile.permissions = [permissions[grant] for grant in grants]
        db.session.add(profile)
        created += 1

    db.session.commit()
    current_app.logger.info('Access control seeded: %d permissions, %d new profiles', len(permissions), created)

def default_profile_for(user_type):
    name = PROFILE_BY_USER_TYPE.get(user_type)
    if name is None:
        return None
    return Profile.query.filter_by(name=name).first()
