"""Credit application lifecycle

Applications start as ``pending`` and move to ``under_review``, then to one
of the terminal states ``approved`` or ``rejected``. Pending applications may
be approved or rejected directly. Approval opens the repayment account in the
same transaction as the status change.
"""
from datetime import datetime, timedelta
from flask import current_app
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import BadRequest, Conflict, Forbidden
from agrocredito import db
from agrocredito.models import Account, CreditApplication, CreditApplicationDocument, CreditProgram, Document, User, to_money
from agrocredito.notifications.fanout import notify_application_submitted, notify_status_change
from agrocredito.utils.helpers import log_activity
from agrocredito.utils.loan_calculator import calculate_schedule, resolve_effort_rate, resolve_interest_rate

# target status -> statuses it may be reached from
ALLOWED_TRANSITIONS = {
    'under_review': ('pending',),
    'approved': ('pending', 'under_review'),
    'rejected': ('pending', 'under_review'),
}

TRANSITION_PERMISSIONS = {
    'under_review': 'credit_applications.review',
    'approved': 'credit_applications.approve',
    'rejected': 'credit_applications.reject',
}

APPLICATION_FIELDS = (
    'project_name', 'project_type', 'description', 'amount', 'term',
    'productivity', 'agriculture_type', 'credit_delivery_method', 'credit_guarantee_declaration',
    'monthly_income', 'expected_project_income', 'monthly_expenses', 'other_debts',
    'family_members', 'experience_years',
)

def _bad_request(message, errors=None):
    error = BadRequest(message)
    if errors:
        error.errors = errors
    return error

def check_program_limits(program, amount, term, project_type):
    """Field errors for an application that falls outside the program's ranges"""
    errors = {}
    if not program.accepts_amount(amount):
        errors['amount'] = [f'Amount must be between {program.min_amount} and {program.max_amount}']
    if not program.accepts_term(term):
        errors['term'] = [f'Term must be between {program.min_term} and {program.max_term} months']
    if not program.accepts_project_type(project_type):
        errors['project_type'] = ['Project type is not covered by this credit program']
    return errors

def submit_application(form, applicant, document_ids=()):
    """Persist a pending application and notify the parties involved"""
    program = None
    if form.credit_program_id.data:
        program = db.session.get(CreditProgram, form.credit_program_id.data)
        if program is None or not program.is_active:
            raise _bad_request('Credit program not found or inactive',
                               {'credit_program_id': ['Credit program not found or inactive']})
        errors = check_program_limits(program, form.amount.data, form.term.data, form.project_type.data)
        if errors:
            raise _bad_request('Application is outside the credit program limits', errors)

    application = CreditApplication(user_id=applicant.id, credit_program_id=program.id if program else None, status='pending')
    for field in APPLICATION_FIELDS:
        setattr(application, field, getattr(form, field).data)

    try:
        db.session.add(application)
        db.session.flush()

        link_documents(application, applicant, document_ids)
        notify_application_submitted(application)
        log_activity(
            'submit_credit_application',
            entity_type='credit_application',
            entity_id=application.id,
            description=f'Submitted credit application: {application.project_name}',
            user_id=applicant.id
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info('Credit application %s submitted by %s', application.id, applicant.id)
    return application

def link_documents(application, applicant, document_ids):
    """Attach the applicant's active documents; unknown ids are skipped and logged"""
    linked = 0
    for document_id in dict.fromkeys(document_ids):
        document = db.session.get(Document, document_id)
        if document is None or document.user_id != applicant.id or not document.is_active:
            current_app.logger.warning('Document %s not linked to application %s', document_id, application.id)
            continue
        db.session.add(CreditApplicationDocument(
            credit_application_id=application.id,
            document_id=document.id,
            is_required=True
        ))
        linked += 1
    return linked

def can_view_application(application, user):
    if user.is_admin or application.user_id == user.id:
        return True
    if not user.is_institution_member or not user.has_permission('credit_applications.read'):
        return False
    owner = application.owning_institution_id
    if owner is not None:
        return owner == user.institution_id
    # Applications without a program are open to every institution until one takes them
    if application.reviewer is not None:
        return application.reviewer.institution_id == user.institution_id
    return True

def check_transition_scope(application, actor):
    """Raise Forbidden unless the actor's institution may act on the application"""
    if actor.is_admin:
        return
    if not actor.is_institution_member:
        raise Forbidden('Only financial institutions can change application status')

    owner = application.owning_institution_id
    if owner is not None and owner != actor.institution_id:
        raise Forbidden('This application belongs to another institution')

    reviewer = application.reviewer
    if reviewer is not None and reviewer.institution_id != actor.institution_id:
        raise Forbidden('This application is being reviewed by another institution')

def transition_application(application, new_status, actor, rejection_reason=None):
    """Move an application to ``new_status`` in a single transaction"""
    if new_status not in ALLOWED_TRANSITIONS:
        raise _bad_request(f'Invalid status: {new_status}')

    rejection_reason = (rejection_reason or '').strip() or None
    if new_status == 'rejected' and not rejection_reason:
        raise _bad_request('A rejection reason is required', {'rejection_reason': ['A rejection reason is required']})

    check_transition_scope(application, actor)
    if new_status == 'approved' and not (application.monthly_income and application.monthly_income > 0):
        raise _bad_request('A positive monthly income is required for approval',
                           {'monthly_income': ['Monthly income must be positive']})

    previous_status = application.status
    now = datetime.utcnow()
    values = {
        CreditApplication.status: new_status,
        CreditApplication.updated_at: now,
    }
    interest_rate = None
    if new_status == 'under_review':
        values[CreditApplication.reviewed_by] = actor.id
    elif new_status == 'approved':
        interest_rate = application_interest_rate(application)
        values[CreditApplication.approved_by] = actor.id
        values[CreditApplication.reviewed_by] = application.reviewed_by or actor.id
        values[CreditApplication.interest_rate] = interest_rate
        values[CreditApplication.rejection_reason] = None
    else:
        values[CreditApplication.rejection_reason] = rejection_reason
        values[CreditApplication.reviewed_by] = application.reviewed_by or actor.id
        values[CreditApplication.approved_by] = None

    try:
        # Conditional update: a concurrent or repeated transition matches zero rows
        updated = CreditApplication.query.filter(
            CreditApplication.id == application.id,
            CreditApplication.status.in_(ALLOWED_TRANSITIONS[new_status])
        ).update(values, synchronize_session=False)
        if updated == 0:
            raise Conflict(f'Cannot change status from {previous_status} to {new_status}')
        db.session.refresh(application)

        account = None
        if new_status == 'approved':
            account = open_account(application, interest_rate=interest_rate, institution_id=application.owning_institution_id or actor.institution_id)

        notify_status_change(application)
        log_activity(
            f'application_{new_status}',
            entity_type='credit_application',
            entity_id=application.id,
            description=f'Changed status of {application.project_name} from {previous_status} to {new_status}',
            user_id=actor.id
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict('An account already exists for this application')
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info('Credit application %s moved from %s to %s by %s',
                            application.id, previous_status, new_status, actor.id)
    if account is not None:
        current_app.logger.info('Account %s opened for application %s', account.id, application.id)
    return application

def application_interest_rate(application):
    cfg = current_app.config
    return resolve_interest_rate(
        application.project_type,
        application.program,
        base_rate=cfg['DEFAULT_BASE_INTEREST_RATE'],
        adjustments=cfg['PROJECT_TYPE_RATE_ADJUSTMENTS']
    )

def open_account(application, interest_rate=None, institution_id=None):
    """Create the repayment account for an approved application; the caller commits"""
    cfg = current_app.config
    if interest_rate is None:
        interest_rate = application.interest_rate if application.interest_rate is not None else application_interest_rate(application)
    effort_rate = resolve_effort_rate(application.program, cfg['DEFAULT_EFFORT_RATE'])

    schedule = calculate_schedule(
        application.amount,
        application.term,
        interest_rate,
        monthly_income=application.monthly_income,
        effort_rate=effort_rate
    )

    account = Account(
        application_id=application.id,
        user_id=application.user_id,
        financial_institution_id=institution_id,
        principal=to_money(application.amount),
        interest_rate=interest_rate,
        term=application.term,
        total_amount=schedule['total_amount'],
        outstanding_balance=schedule['total_amount'],
        monthly_payment=schedule['monthly_payment'],
        next_payment_date=datetime.utcnow() + timedelta(days=cfg['FIRST_PAYMENT_DELAY_DAYS']),
        is_active=True
    )
    db.session.add(account)
    db.session.flush()
    return account

def reconcile_approved_accounts():
    """Open the missing account of every approved application that lacks one"""
    orphans = CreditApplication.query.outerjoin(
        Account, Account.application_id == CreditApplication.id
    ).filter(
        CreditApplication.status == 'approved',
        Account.id.is_(None)
    ).all()

    opened = []
    for application in orphans:
        approver = db.session.get(User, application.approved_by) if application.approved_by else None
        institution_id = application.owning_institution_id or (approver.institution_id if approver else None)
        try:
            account = open_account(application, institution_id=institution_id)
            log_activity(
                'reconcile_account',
                entity_type='account',
                entity_id=account.id,
                description=f'Opened missing account for approved application {application.id}',
                user_id=application.approved_by
            )
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            current_app.logger.warning('Account for application %s was opened concurrently', application.id)
            continue
        except ValueError as e:
            db.session.rollback()
            current_app.logger.error('Cannot open account for application %s: %s', application.id, e)
            continue
        opened.append(account)
        current_app.logger.info('Reconciled account %s for application %s', account.id, application.id)

    current_app.logger.info('Reconciliation finished: %d account(s) opened', len(opened))
    return opened
