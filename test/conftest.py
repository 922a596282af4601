"""Shared fixtures: app on in-memory SQLite, seeded profiles, users and tokens"""
import shutil
from decimal import Decimal
import pytest
from flask import g
from flask.testing import FlaskClient
from agrocredito import create_app, db
from agrocredito.auth.tokens import create_jwt
from agrocredito.models import CreditApplication, CreditProgram, User
from agrocredito.utils.access_control import default_profile_for, seed_access_control

class ApiClient(FlaskClient):
    """Test client that forgets the previous request's user

    Tests share one app context, so the user Flask-Login caches on g would
    otherwise leak from one request into the next.
    """

    def open(self, *args, **kwargs):
        g.pop('_login_user', None)
        return super().open(*args, **kwargs)

@pytest.fixture
def app():
    app = create_app('testing')
    app.test_client_class = ApiClient
    with app.app_context():
        db.create_all()
        seed_access_control()
        yield app
        db.session.remove()
        db.drop_all()
    shutil.rmtree(app.config['UPLOAD_FOLDER'], ignore_errors=True)

@pytest.fixture
def client(app):
    return app.test_client()

_counter = {'n': 0}

def make_user(user_type='farmer', parent=None, profile=None, **kwargs):
    _counter['n'] += 1
    n = _counter['n']
    user = User(
        full_name=kwargs.pop('full_name', f'Test User {n}'),
        bi=kwargs.pop('bi', f'{n:09d}LA{n % 1000:03d}'),
        phone=kwargs.pop('phone', f'+244{900000000 + n}'),
        email=kwargs.pop('email', f'user{n}@example.ao'),
        user_type=user_type,
        parent_institution_id=parent.id if parent else None,
        is_active=kwargs.pop('is_active', True),
        **kwargs
    )
    user.set_password('secret123')
    user.profile = profile or default_profile_for(user_type)
    db.session.add(user)
    db.session.commit()
    return user

def auth_headers(user):
    return {'Authorization': f'Bearer {create_jwt(user)}'}

@pytest.fixture
def farmer(app):
    return make_user('farmer', full_name='João Agricultor')

@pytest.fixture
def other_farmer(app):
    return make_user('cooperative', full_name='Cooperativa Kwanza')

@pytest.fixture
def institution(app):
    return make_user('financial_institution', full_name='Banco Rural')

@pytest.fixture
def other_institution(app):
    return make_user('financial_institution', full_name='Banco Sul')

@pytest.fixture
def admin(app):
    return make_user('admin', full_name='Administrador')

@pytest.fixture
def program(app, institution):
    program = CreditProgram(
        financial_institution_id=institution.id,
        name='Crédito Campanha Agrícola',
        project_types=['corn', 'cassava', 'cattle'],
        min_amount=Decimal('100000'),
        max_amount=Decimal('1000000'),
        min_term=6,
        max_term=36,
        interest_rate=Decimal('15'),
        effort_rate=Decimal('30'),
        processing_fee=Decimal('1'),
        is_active=True
    )
    db.session.add(program)
    db.session.commit()
    return program

def make_application(applicant, program=None, **kwargs):
    values = dict(
        user_id=applicant.id,
        credit_program_id=program.id if program else None,
        project_name='Milho de sequeiro',
        project_type='corn',
        description='Plantio de 20 hectares de milho',
        amount=Decimal('450000'),
        term=18,
        monthly_income=Decimal('200000'),
        status='pending'
    )
    values.update(kwargs)
    application = CreditApplication(**values)
    db.session.add(application)
    db.session.commit()
    return application

def application_payload(program=None, **overrides):
    payload = {
        'projectName': 'Milho de sequeiro',
        'projectType': 'corn',
        'description': 'Plantio de 20 hectares de milho',
        'amount': 450000,
        'term': 18,
        'monthlyIncome': 200000,
        'monthlyExpenses': 50000,
        'familyMembers': 5,
        'experienceYears': 10,
    }
    if program is not None:
        payload['creditProgramId'] = program.id
    payload.update(overrides)
    return payload
