"""
Test credit application submission, status transitions and account opening
"""
from datetime import datetime, timedelta
from decimal import Decimal
import threading
import pytest
from agrocredito import create_app, db
from agrocredito.applications.workflow import reconcile_approved_accounts
from agrocredito.models import Account, CreditApplication, Notification, Profile
from agrocredito.utils.access_control import seed_access_control
from conftest import make_user, auth_headers, make_application, application_payload

def _patch_status(client, application, user, status, reason=None):
    payload = {'status': status}
    if reason is not None:
        payload['rejectionReason'] = reason
    return client.patch(f'/api/credit-applications/{application.id}/status',
                        json=payload, headers=auth_headers(user))

def test_submit_application_notifies_applicant_and_institution(client, farmer, institution, program):
    response = client.post('/api/credit-applications', json=application_payload(program), headers=auth_headers(farmer))
    assert response.status_code == 201
    data = response.get_json()
    assert data['status'] == 'pending'
    assert data['creditProgramId'] == program.id
    assert data['amount'] == 450000.0

    application = db.session.get(CreditApplication, data['id'])
    assert application.user_id == farmer.id

    farmer_notes = Notification.query.filter_by(user_id=farmer.id, related_id=application.id).all()
    assert [n.type for n in farmer_notes] == ['application_submitted']
    institution_notes = Notification.query.filter_by(user_id=institution.id, related_id=application.id).all()
    assert [n.type for n in institution_notes] == ['new_application_received']

def test_submit_without_program_notifies_every_institution(client, farmer, institution, other_institution):
    response = client.post('/api/credit-applications', json=application_payload(), headers=auth_headers(farmer))
    assert response.status_code == 201
    application_id = response.get_json()['id']

    for user in (institution, other_institution):
        assert Notification.query.filter_by(
            user_id=user.id, related_id=application_id, type='new_application_received'
        ).count() == 1

def test_submit_outside_program_limits(client, farmer, program):
    response = client.post('/api/credit-applications',
                           json=application_payload(program, amount=50000, projectType='poultry'),
                           headers=auth_headers(farmer))
    assert response.status_code == 400
    errors = response.get_json()['errors']
    assert 'amount' in errors
    assert 'project_type' in errors
    assert CreditApplication.query.count() == 0

def test_submit_requires_fields(client, farmer):
    response = client.post('/api/credit-applications',
                           json={'projectType': 'corn', 'amount': 1000},
                           headers=auth_headers(farmer))
    assert response.status_code == 400
    body = response.get_json()
    assert body['success'] is False
    assert 'project_name' in body['errors']
    assert 'term' in body['errors']

def test_institution_cannot_submit(client, institution):
    response = client.post('/api/credit-applications', json=application_payload(), headers=auth_headers(institution))
    assert response.status_code == 403

def test_submit_requires_authentication(client):
    response = client.post('/api/credit-applications', json=application_payload())
    assert response.status_code == 401
    assert response.get_json()['success'] is False

def test_review_then_approve_opens_one_account(client, farmer, institution, program):
    application = make_application(farmer, program)

    response = _patch_status(client, application, institution, 'under_review')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'under_review'
    assert response.get_json()['reviewedBy'] == institution.id
    assert 'account' not in response.get_json()

    response = _patch_status(client, application, institution, 'approved')
    assert response.status_code == 200
    data = response.get_json()
    assert data['status'] == 'approved'
    assert data['approvedBy'] == institution.id
    assert data['account']['outstandingBalance'] == data['account']['totalAmount']
    assert data['account']['financialInstitutionId'] == institution.id

    account = Account.query.filter_by(application_id=application.id).one()
    assert account.user_id == farmer.id
    assert account.principal == Decimal('450000.00')
    assert account.total_amount == account.monthly_payment * account.term
    assert account.is_active is True
    expected_due = datetime.utcnow() + timedelta(days=30)
    assert abs(account.next_payment_date - expected_due) < timedelta(minutes=5)

    # A repeated approval is refused and no second account appears
    response = _patch_status(client, application, institution, 'approved')
    assert response.status_code == 409
    assert Account.query.filter_by(application_id=application.id).count() == 1

def test_approve_directly_from_pending(client, farmer, institution, program):
    application = make_application(farmer, program)
    response = _patch_status(client, application, institution, 'approved')
    assert response.status_code == 200

    application = db.session.get(CreditApplication, application.id)
    assert application.status == 'approved'
    assert application.reviewed_by == institution.id
    assert application.interest_rate == Decimal('15.00')
    assert application.account is not None
    assert Notification.query.filter_by(user_id=farmer.id, type='application_approved').count() == 1

def test_reject_requires_reason(client, farmer, institution, program):
    application = make_application(farmer, program)

    response = _patch_status(client, application, institution, 'rejected')
    assert response.status_code == 400
    assert 'rejection_reason' in response.get_json()['errors']

    response = _patch_status(client, application, institution, 'rejected', reason='   ')
    assert response.status_code == 400
    assert db.session.get(CreditApplication, application.id).status == 'pending'

    response = _patch_status(client, application, institution, 'rejected', reason='Rendimento insuficiente')
    assert response.status_code == 200
    assert response.get_json()['rejectionReason'] == 'Rendimento insuficiente'
    assert Account.query.count() == 0

    note = Notification.query.filter_by(user_id=farmer.id, type='application_rejected').one()
    assert 'Rendimento insuficiente' in note.message

@pytest.mark.parametrize('status', ['under_review', 'approved', 'rejected'])
def test_terminal_statuses_are_final(client, farmer, institution, program, status):
    application = make_application(farmer, program, status='rejected', rejection_reason='Incompleto',
                                   reviewed_by=institution.id)
    response = _patch_status(client, application, institution, status, reason='Outra vez')
    assert response.status_code == 409
    assert db.session.get(CreditApplication, application.id).status == 'rejected'
    assert Account.query.count() == 0

def test_under_review_cannot_go_back(client, farmer, institution, program):
    application = make_application(farmer, program, status='under_review', reviewed_by=institution.id)
    response = _patch_status(client, application, institution, 'under_review')
    assert response.status_code == 409

def test_unknown_status_is_rejected(client, farmer, institution, program):
    application = make_application(farmer, program)
    response = _patch_status(client, application, institution, 'pending')
    assert response.status_code == 400
    assert 'status' in response.get_json()['errors']

def test_other_institution_cannot_transition(client, farmer, other_institution, program):
    application = make_application(farmer, program)
    response = _patch_status(client, application, other_institution, 'under_review')
    assert response.status_code == 403
    assert db.session.get(CreditApplication, application.id).status == 'pending'

def test_program_less_application_locked_to_reviewing_institution(client, farmer, institution, other_institution):
    application = make_application(farmer)
    assert _patch_status(client, application, institution, 'under_review').status_code == 200
    assert _patch_status(client, application, other_institution, 'approved').status_code == 403

    response = _patch_status(client, application, institution, 'approved')
    assert response.status_code == 200
    assert response.get_json()['account']['financialInstitutionId'] == institution.id

def test_applicant_cannot_change_status(client, farmer, program):
    application = make_application(farmer, program)
    response = _patch_status(client, application, farmer, 'approved')
    assert response.status_code == 403

def test_admin_can_transition(client, farmer, admin, program):
    application = make_application(farmer, program)
    response = _patch_status(client, application, admin, 'approved')
    assert response.status_code == 200
    assert response.get_json()['account']['financialInstitutionId'] == program.financial_institution_id

def test_analyst_can_review_but_not_approve(client, farmer, institution, program):
    analyst = make_user('financial_institution', parent=institution,
                        profile=Profile.query.filter_by(name='Analyst').first())
    application = make_application(farmer, program)

    assert _patch_status(client, application, analyst, 'under_review').status_code == 200
    assert _patch_status(client, application, analyst, 'approved').status_code == 403
    assert db.session.get(CreditApplication, application.id).status == 'under_review'

def test_approval_caps_payment_at_effort_rate(client, farmer, institution, program):
    application = make_application(farmer, program, amount=Decimal('750000'), term=12,
                                   monthly_income=Decimal('100000'))
    response = _patch_status(client, application, institution, 'approved')
    assert response.status_code == 200

    account = Account.query.filter_by(application_id=application.id).one()
    assert account.monthly_payment == Decimal('30000.00')
    assert account.total_amount == Decimal('360000.00')
    assert account.outstanding_balance == account.total_amount

def test_zero_income_cannot_be_submitted(client, farmer, program):
    response = client.post('/api/credit-applications', json=application_payload(program, monthlyIncome=0),
                           headers=auth_headers(farmer))
    assert response.status_code == 400
    assert 'monthly_income' in response.get_json()['errors']
    assert CreditApplication.query.count() == 0

@pytest.mark.parametrize('income', [Decimal('0'), None])
def test_approval_requires_positive_income(client, farmer, institution, program, income):
    application = make_application(farmer, program, monthly_income=income)
    response = _patch_status(client, application, institution, 'approved')
    assert response.status_code == 400
    assert 'monthly_income' in response.get_json()['errors']
    assert db.session.get(CreditApplication, application.id).status == 'pending'
    assert Account.query.count() == 0

def test_institution_queue_groups(client, farmer, other_farmer, institution, other_institution, program):
    new = make_application(farmer, program)
    reviewing = make_application(farmer, program, status='under_review', reviewed_by=institution.id)
    done = make_application(other_farmer, program, status='rejected', rejection_reason='x',
                            reviewed_by=institution.id)
    elsewhere = make_application(other_farmer, status='under_review', reviewed_by=other_institution.id)

    response = client.get('/api/credit-applications/financial-institution', headers=auth_headers(institution))
    assert response.status_code == 200
    groups = response.get_json()
    assert [a['id'] for a in groups['new']] == [new.id]
    assert [a['id'] for a in groups['underReview']] == [reviewing.id]
    assert [a['id'] for a in groups['historical']] == [done.id]
    all_ids = {a['id'] for group in groups.values() for a in group}
    assert elsewhere.id not in all_ids

def test_applicant_sees_only_own_applications(client, farmer, other_farmer, program):
    mine = make_application(farmer, program)
    theirs = make_application(other_farmer, program)

    response = client.get('/api/credit-applications/user', headers=auth_headers(farmer))
    assert [a['id'] for a in response.get_json()] == [mine.id]

    assert client.get(f'/api/credit-applications/{mine.id}', headers=auth_headers(farmer)).status_code == 200
    assert client.get(f'/api/credit-applications/{theirs.id}', headers=auth_headers(farmer)).status_code == 403
    assert client.get('/api/credit-applications', headers=auth_headers(farmer)).status_code == 403

def test_view_missing_application(client, farmer):
    response = client.get('/api/credit-applications/does-not-exist', headers=auth_headers(farmer))
    assert response.status_code == 404
    assert response.get_json()['message'] == 'Credit application not found'

def test_reconcile_opens_missing_accounts(app, farmer, institution, program):
    application = make_application(farmer, program, status='approved', approved_by=institution.id,
                                   reviewed_by=institution.id, interest_rate=Decimal('15'))

    opened = reconcile_approved_accounts()
    assert len(opened) == 1
    assert opened[0].application_id == application.id
    assert opened[0].financial_institution_id == institution.id

    assert reconcile_approved_accounts() == []
    assert Account.query.filter_by(application_id=application.id).count() == 1

def test_simulate_payment(client, farmer):
    response = client.post('/api/credit-applications/simulate',
                           json={'amount': 120000, 'term': 12, 'interestRate': 0},
                           headers=auth_headers(farmer))
    assert response.status_code == 200
    data = response.get_json()
    assert data['monthlyPayment'] == 10000.0
    assert data['totalInterest'] == 0.0
    # no ceiling applies here, so none is reported
    assert not {'effortRate', 'maxMonthlyPayment', 'effortRatePercentage', 'isEffortRateViolated'} & set(data)

@pytest.fixture
def file_app(tmp_path):
    """App on a file-backed database so each thread gets its own connection"""
    app = create_app('testing', {
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'agrocredito.db'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 30}},
    })
    with app.app_context():
        db.create_all()
        seed_access_control()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()

def test_concurrent_approvals_open_one_account(file_app):
    farmer = make_user('farmer')
    institution = make_user('financial_institution')
    application = make_application(farmer)
    headers = auth_headers(institution)
    url = f'/api/credit-applications/{application.id}/status'

    barrier = threading.Barrier(2)
    statuses = []

    def approve():
        # a fresh thread has no app context, so the request gets its own session
        client = file_app.test_client()
        barrier.wait()
        response = client.patch(url, json={'status': 'approved'}, headers=headers)
        statuses.append(response.status_code)

    threads = [threading.Thread(target=approve) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert sorted(statuses) == [200, 409]
    db.session.expire_all()
    assert Account.query.filter_by(application_id=application.id).count() == 1
    assert db.session.get(CreditApplication, application.id).status == 'approved'
