"""Main routes"""
from datetime import datetime
from flask import jsonify, abort, current_app
from flask_login import login_required
from sqlalchemy import func
from agrocredito import db
from agrocredito.main import main_bp
from agrocredito.main.forms import CreditSimulationForm
from agrocredito.models import Account, CreditApplication, CreditProgram, Payment, User, APPLICANT_TYPES
from agrocredito.utils.decorators import permission_required
from agrocredito.utils.helpers import validate_form
from agrocredito.utils.loan_calculator import calculate_schedule, resolve_effort_rate, resolve_interest_rate, schedule_to_dict

@main_bp.route('/health')
def health():
    """Liveness check"""
    return jsonify({'status': 'ok', 'timestamp': datetime.utcnow().isoformat()})

@main_bp.route('/simulate-credit', methods=['POST'])
def simulate_credit():
    """Public credit simulator with the effort-rate ceiling applied"""
    form = validate_form(CreditSimulationForm)
    cfg = current_app.config

    program = None
    if form.credit_program_id.data:
        program = db.session.get(CreditProgram, form.credit_program_id.data)
        if program is None or not program.is_active:
            abort(404, description='Credit program not found')

    interest_rate = resolve_interest_rate(
        form.project_type.data or 'other',
        program,
        base_rate=cfg['DEFAULT_BASE_INTEREST_RATE'],
        adjustments=cfg['PROJECT_TYPE_RATE_ADJUSTMENTS']
    )
    effort_rate = resolve_effort_rate(program, cfg['DEFAULT_EFFORT_RATE'])

    schedule = calculate_schedule(
        form.amount.data,
        form.term.data,
        interest_rate,
        monthly_income=form.monthly_income.data,
        effort_rate=effort_rate
    )
    result = schedule_to_dict(schedule)
    result['monthlyIncome'] = float(form.monthly_income.data)
    result['effortRate'] = float(effort_rate)
    result['creditProgramId'] = program.id if program else None
    return jsonify(result)

@main_bp.route('/admin/stats')
@login_required
@permission_required('admin.dashboard')
def admin_stats():
    """Dashboard figures for administrators"""
    status_counts = dict(
        db.session.query(CreditApplication.status, func.count(CreditApplication.id))
        .group_by(CreditApplication.status).all()
    )

    stats = {
        'totalApplications': sum(status_counts.values()),
        'pendingApplications': status_counts.get('pending', 0),
        'underReviewApplications': status_counts.get('under_review', 0),
        'approvedApplications': status_counts.get('approved', 0),
        'rejectedApplications': status_counts.get('rejected', 0),
        'totalUsers': User.query.filter_by(is_active=True).count(),
        'totalApplicants': User.query.filter(User.user_type.in_(APPLICANT_TYPES), User.is_active.is_(True)).count(),
        'totalInstitutions': User.query.filter(
            User.user_type == 'financial_institution',
            User.parent_institution_id.is_(None),
            User.is_active.is_(True)
        ).count(),
        'activeAccounts': Account.query.filter_by(is_active=True).count(),
        'totalPrincipal': float(db.session.query(func.coalesce(func.sum(Account.principal), 0)).scalar() or 0),
        'totalOutstanding': float(
            db.session.query(func.coalesce(func.sum(Account.outstanding_balance), 0))
            .filter(Account.is_active.is_(True)).scalar() or 0
        ),
        'totalPayments': Payment.query.count(),
        'totalPaid': float(db.session.query(func.coalesce(func.sum(Payment.amount), 0)).scalar() or 0),
    }
    return jsonify(stats)
