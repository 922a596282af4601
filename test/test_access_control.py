"""
Test permission checks, profiles and institution staff management
"""
from agrocredito import db
from agrocredito.models import Permission, Profile, User
from agrocredito.utils.access_control import PERMISSIONS, seed_access_control
from conftest import make_user, auth_headers

def _profile(name):
    return Profile.query.filter_by(name=name).first()

def _permission_ids(*names):
    return [p.id for p in Permission.query.filter(Permission.name.in_(names)).all()]

def test_seed_is_idempotent(app):
    seed_access_control()
    seed_access_control()
    assert Permission.query.count() == len(PERMISSIONS)
    assert Profile.query.filter_by(name='Administrator').count() == 1
    assert all(p.is_system for p in Profile.query.all())

def test_admin_holds_wildcard(app, admin, farmer):
    assert admin.is_admin
    assert admin.has_permission('anything.at_all')
    assert admin.has_all_permissions(['users.create', 'profiles.manage'])

    assert not farmer.is_admin
    assert farmer.has_permission('credit_applications.create')
    assert not farmer.has_permission('credit_applications.approve')
    assert farmer.has_any_permission(['credit_applications.approve', 'payments.create'])
    assert not farmer.has_all_permissions(['credit_applications.approve', 'payments.create'])

def test_inactive_profile_grants_nothing(app, institution):
    profile = institution.profile
    profile.is_active = False
    db.session.commit()
    assert institution.permission_names == set()
    assert not institution.has_permission('credit_applications.read')

def test_user_without_profile_is_refused(client):
    user = make_user('farmer')
    user.profile = None
    db.session.commit()
    response = client.get('/api/credit-applications/user', headers=auth_headers(user))
    assert response.status_code == 200
    response = client.post('/api/credit-applications', json={}, headers=auth_headers(user))
    assert response.status_code == 403

def test_custom_profile_changes_access(client, admin, institution):
    response = client.post('/api/profiles', json={
        'name': 'Auditor',
        'description': 'Read-only access to users',
        'permissionIds': _permission_ids('users.read'),
    }, headers=auth_headers(admin))
    assert response.status_code == 201
    profile = response.get_json()
    assert [p['name'] for p in profile['permissions']] == ['users.read']
    assert profile['isSystem'] is False

    auditor = make_user('financial_institution', parent=institution, profile=db.session.get(Profile, profile['id']))
    assert client.get('/api/users', headers=auth_headers(auditor)).status_code == 200
    assert client.get('/api/profiles', headers=auth_headers(auditor)).status_code == 403

    # grants apply on the next request
    response = client.post(f"/api/profiles/{profile['id']}/permissions",
                           json={'permissionIds': _permission_ids('profiles.read')},
                           headers=auth_headers(admin))
    assert response.status_code == 200
    assert client.get('/api/profiles', headers=auth_headers(auditor)).status_code == 200

    permission_id = _permission_ids('profiles.read')[0]
    response = client.delete(f"/api/profiles/{profile['id']}/permissions/{permission_id}", headers=auth_headers(admin))
    assert response.status_code == 200
    assert client.get('/api/profiles', headers=auth_headers(auditor)).status_code == 403

def test_profile_guards(client, admin, farmer):
    system = _profile('Farmer')
    assert client.delete(f'/api/profiles/{system.id}', headers=auth_headers(admin)).status_code == 400
    response = client.patch(f'/api/profiles/{system.id}', json={'name': 'Agricultor'}, headers=auth_headers(admin))
    assert response.status_code == 400

    response = client.post('/api/profiles', json={'name': 'Farmer'}, headers=auth_headers(admin))
    assert response.status_code == 409

    response = client.post('/api/profiles', json={'name': 'Temporary'}, headers=auth_headers(admin))
    custom_id = response.get_json()['id']
    make_user('farmer', profile=db.session.get(Profile, custom_id))
    assert client.delete(f'/api/profiles/{custom_id}', headers=auth_headers(admin)).status_code == 409

    response = client.post('/api/profiles', json={'name': 'Unused'}, headers=auth_headers(admin))
    unused_id = response.get_json()['id']
    assert client.delete(f'/api/profiles/{unused_id}', headers=auth_headers(admin)).status_code == 200
    assert db.session.get(Profile, unused_id) is None

def test_unknown_permission_rejected(client, admin):
    response = client.post('/api/profiles', json={'name': 'Broken', 'permissionIds': ['nope']},
                           headers=auth_headers(admin))
    assert response.status_code == 400
    assert _profile('Broken') is None

def test_only_admin_grants_admin_profile(client, admin, institution, farmer):
    administrator = _profile('Administrator')
    manager = make_user('financial_institution', parent=institution,
                        profile=_profile('Financial Institution'))
    manager.profile.permissions.append(Permission.query.filter_by(name='users.update').one())
    db.session.commit()

    response = client.patch(f'/api/users/{farmer.id}/profile', json={'profileId': administrator.id},
                            headers=auth_headers(manager))
    assert response.status_code == 403

    response = client.patch(f'/api/users/{farmer.id}/profile', json={'profileId': administrator.id},
                            headers=auth_headers(admin))
    assert response.status_code == 200
    assert db.session.get(User, farmer.id).is_admin

def test_admin_manages_users(client, admin):
    response = client.post('/api/users', json={
        'fullName': 'Maria Técnica',
        'bi': '123456789LA123',
        'phone': '+244923456789',
        'email': 'Maria@Example.ao',
        'password': 'secret123',
        'userType': 'cooperative',
    }, headers=auth_headers(admin))
    assert response.status_code == 201
    created = response.get_json()
    assert created['email'] == 'maria@example.ao'
    assert created['profileName'] == 'Cooperative'

    response = client.post('/api/users', json={
        'fullName': 'Outra Pessoa',
        'bi': '987654321LA321',
        'phone': '+244923456789',
        'password': 'secret123',
        'userType': 'farmer',
    }, headers=auth_headers(admin))
    assert response.status_code == 409

    response = client.patch(f"/api/users/{created['id']}/deactivate", headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.get_json()['isActive'] is False

    assert client.patch(f'/api/users/{admin.id}/deactivate', headers=auth_headers(admin)).status_code == 400

def test_deactivated_user_token_is_refused(client, farmer):
    headers = auth_headers(farmer)
    farmer.is_active = False
    db.session.commit()
    assert client.get('/api/auth/me', headers=headers).status_code == 401

def test_institution_manages_staff(client, institution, other_institution):
    response = client.post('/api/financial-users/internal', json={
        'fullName': 'Analista Um',
        'bi': '111222333LA444',
        'phone': '+244911222333',
        'password': 'secret123',
        'profileId': _profile('Analyst').id,
    }, headers=auth_headers(institution))
    assert response.status_code == 201
    staff = response.get_json()
    assert staff['parentInstitutionId'] == institution.id
    assert staff['profileName'] == 'Analyst'

    response = client.get('/api/financial-users/internal', headers=auth_headers(institution))
    assert [u['id'] for u in response.get_json()] == [staff['id']]
    assert client.get('/api/financial-users/internal', headers=auth_headers(other_institution)).get_json() == []

    # other institutions cannot touch this staff member
    response = client.patch(f"/api/financial-users/internal/{staff['id']}/deactivate",
                            headers=auth_headers(other_institution))
    assert response.status_code == 404

    response = client.patch(f"/api/financial-users/internal/{staff['id']}/profile",
                            json={'profileId': _profile('Administrator').id},
                            headers=auth_headers(institution))
    assert response.status_code == 400

    response = client.patch(f"/api/financial-users/internal/{staff['id']}/profile",
                            json={'profileId': _profile('Manager').id},
                            headers=auth_headers(institution))
    assert response.status_code == 200
    assert response.get_json()['profileName'] == 'Manager'

    staff_user = db.session.get(User, staff['id'])
    assert staff_user.institution_id == institution.id
    # staff cannot manage other staff
    assert client.get('/api/financial-users/internal', headers=auth_headers(staff_user)).status_code == 403

def test_public_institution_list(client, institution, other_institution):
    make_user('financial_institution', parent=institution)
    response = client.get('/api/users/financial-institutions')
    assert response.status_code == 200
    assert {i['id'] for i in response.get_json()} == {institution.id, other_institution.id}

def _support_user():
    """Farmer whose own custom profile may manage profiles"""
    profile = Profile(name='Support', is_system=False, is_active=True)
    profile.permissions = Permission.query.filter(Permission.name.in_(['profiles.manage', 'profiles.read'])).all()
    db.session.add(profile)
    db.session.commit()
    return make_user('farmer', profile=profile)

def test_profile_managers_cannot_grant_wildcard(client):
    support = _support_user()
    headers = auth_headers(support)
    wildcard = _permission_ids('*')

    response = client.post(f'/api/profiles/{support.profile.id}/permissions',
                           json={'permissionIds': wildcard}, headers=headers)
    assert response.status_code == 403
    assert client.get('/api/accounts', headers=headers).status_code == 403

    response = client.patch(f'/api/profiles/{support.profile.id}',
                            json={'name': 'Support', 'permissionIds': wildcard + _permission_ids('profiles.manage')},
                            headers=headers)
    assert response.status_code == 403

    response = client.post('/api/profiles', json={'name': 'Root', 'permissionIds': wildcard}, headers=headers)
    assert response.status_code == 403
    assert _profile('Root') is None

    assert not db.session.get(User, support.id).is_admin

def test_profile_managers_cannot_touch_administrator_profile(client):
    support = _support_user()
    administrator = _profile('Administrator')
    response = client.patch(f'/api/profiles/{administrator.id}',
                            json={'name': 'Administrator', 'description': 'changed'},
                            headers=auth_headers(support))
    assert response.status_code == 403

def test_admin_can_grant_wildcard_to_custom_profile(client, admin):
    response = client.post('/api/profiles', json={'name': 'Deputy', 'permissionIds': _permission_ids('*')},
                           headers=auth_headers(admin))
    assert response.status_code == 201
    assert [p['name'] for p in response.get_json()['permissions']] == ['*']

def test_administrator_profile_is_locked(client, admin):
    administrator = _profile('Administrator')
    headers = auth_headers(admin)

    response = client.patch(f'/api/profiles/{administrator.id}',
                            json={'name': 'Administrator', 'isActive': False}, headers=headers)
    assert response.status_code == 400

    response = client.patch(f'/api/profiles/{administrator.id}',
                            json={'name': 'Administrator', 'permissionIds': _permission_ids('users.read')},
                            headers=headers)
    assert response.status_code == 400

    wildcard_id = _permission_ids('*')[0]
    response = client.delete(f'/api/profiles/{administrator.id}/permissions/{wildcard_id}', headers=headers)
    assert response.status_code == 400

    response = client.post(f'/api/profiles/{administrator.id}/permissions',
                           json={'permissionIds': _permission_ids('users.read')}, headers=headers)
    assert response.status_code == 400

    # the description may still change
    response = client.patch(f'/api/profiles/{administrator.id}',
                            json={'name': 'Administrator', 'description': 'Plataforma'}, headers=headers)
    assert response.status_code == 200

    administrator = db.session.get(Profile, administrator.id)
    assert administrator.is_active is True
    assert [p.name for p in administrator.permissions] == ['*']
    assert client.get('/api/profiles', headers=headers).status_code == 200

ADMIN_PAYLOAD = {
    'fullName': 'Nova Administradora',
    'bi': '555666777LA888',
    'phone': '+244925000111',
    'password': 'secret123',
    'userType': 'admin',
}

def test_admin_user_needs_admin_profile(client, admin):
    response = client.post('/api/users', json=dict(ADMIN_PAYLOAD, profileId=_profile('Farmer').id),
                           headers=auth_headers(admin))
    assert response.status_code == 400
    assert User.query.filter_by(bi=ADMIN_PAYLOAD['bi']).first() is None

    response = client.post('/api/users', json=ADMIN_PAYLOAD, headers=auth_headers(admin))
    assert response.status_code == 201
    assert response.get_json()['profileName'] == 'Administrator'

def test_user_creators_cannot_hand_out_admin_profile(client, admin):
    response = client.post('/api/profiles', json={
        'name': 'Onboarding', 'permissionIds': _permission_ids('users.create'),
    }, headers=auth_headers(admin))
    onboarding = make_user('farmer', profile=db.session.get(Profile, response.get_json()['id']))

    response = client.post('/api/users', json=dict(ADMIN_PAYLOAD, userType='farmer',
                                                   profileId=_profile('Administrator').id),
                           headers=auth_headers(onboarding))
    assert response.status_code == 403

    response = client.post('/api/users', json=ADMIN_PAYLOAD, headers=auth_headers(onboarding))
    assert response.status_code == 403
    assert User.query.filter_by(bi=ADMIN_PAYLOAD['bi']).first() is None
