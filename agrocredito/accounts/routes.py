"""Account and payment routes"""
from flask import jsonify, abort
from flask_login import login_required, current_user
from agrocredito import db
from agrocredito.accounts import accounts_bp
from agrocredito.accounts.forms import PaymentForm
from agrocredito.accounts.ledger import record_payment
from agrocredito.models import Account, Payment
from agrocredito.utils.decorators import admin_required, institution_required, permission_required
from agrocredito.utils.helpers import validate_form

def _get_visible_account(id):
    account = db.get_or_404(Account, id, description='Account not found')
    if not account.can_be_viewed_by(current_user):
        abort(403, description='You do not have access to this account')
    return account

@accounts_bp.route('')
@login_required
@admin_required
def list_accounts():
    """List all accounts"""
    accounts = Account.query.order_by(Account.created_at.desc()).all()
    return jsonify([a.to_dict() for a in accounts])

@accounts_bp.route('/user')
@login_required
def user_accounts():
    """Accounts owned by the current user"""
    accounts = current_user.accounts.order_by(Account.created_at.desc()).all()
    return jsonify([a.to_dict() for a in accounts])

@accounts_bp.route('/financial-institution')
@login_required
@institution_required
@permission_required('accounts.read')
def institution_accounts():
    """Accounts opened by the current institution"""
    accounts = Account.query.filter_by(
        financial_institution_id=current_user.institution_id
    ).order_by(Account.created_at.desc()).all()
    return jsonify([a.to_dict() for a in accounts])

@accounts_bp.route('/<id>')
@login_required
def view_account(id):
    """View account"""
    account = _get_visible_account(id)
    return jsonify(account.to_dict())

@accounts_bp.route('/<id>/payments', methods=['GET'])
@login_required
def list_payments(id):
    """Payments for an account, newest first"""
    account = _get_visible_account(id)
    payments = account.payments.order_by(None).order_by(Payment.payment_date.desc(), Payment.created_at.desc()).all()
    return jsonify([p.to_dict() for p in payments])

@accounts_bp.route('/<id>/payments', methods=['POST'])
@login_required
@permission_required('payments.create')
def add_payment(id):
    """Record a payment against the caller's account"""
    account = db.get_or_404(Account, id, description='Account not found')
    form = validate_form(PaymentForm)
    payment = record_payment(account, form.amount.data, current_user)
    return jsonify({
        'payment': payment.to_dict(),
        'account': account.to_dict(),
    }), 201

@accounts_bp.route('/<id>/schedule')
@login_required
def payment_schedule(id):
    """Amortization table with installment status"""
    account = _get_visible_account(id)
    return jsonify({
        'account': account.to_dict(),
        'totalPaid': float(account.get_total_paid()),
        'schedule': account.generate_payment_schedule(),
    })
