"""Repayment ledger: payment recording against an account"""
from datetime import datetime
from decimal import Decimal
from dateutil.relativedelta import relativedelta
from flask import current_app
from sqlalchemy import case
from werkzeug.exceptions import BadRequest, Conflict, Forbidden
from agrocredito import db
from agrocredito.models import Account, Payment, to_money
from agrocredito.notifications.fanout import notify_payment_received
from agrocredito.utils.helpers import log_activity

def record_payment(account, amount, payer):
    """Append a payment and decrement the balance, floored at zero

    The balance update is a single SQL statement so concurrent payments never
    overwrite each other. The next due date moves one calendar month past the
    moment of payment.
    """
    amount = to_money(amount)
    if amount <= Decimal('0'):
        raise BadRequest('Payment amount must be greater than zero')
    if account.user_id != payer.id:
        raise Forbidden('You can only record payments for your own accounts')

    now = datetime.utcnow()
    next_payment_date = now + relativedelta(months=1)
    balance = Account.outstanding_balance

    try:
        updated = Account.query.filter(
            Account.id == account.id,
            Account.is_active.is_(True),
            Account.outstanding_balance > 0
        ).update({
            Account.outstanding_balance: case((balance > amount, balance - amount), else_=0),
            Account.next_payment_date: next_payment_date,
            Account.updated_at: now,
        }, synchronize_session=False)
        if updated == 0:
            raise Conflict('This account is closed or already settled')
        db.session.refresh(account)

        payment = Payment(
            account_id=account.id,
            amount=amount,
            payment_date=now,
            balance_after=to_money(account.outstanding_balance)
        )
        db.session.add(payment)
        db.session.flush()

        notify_payment_received(account, payment)
        log_activity(
            'account_payment',
            entity_type='account',
            entity_id=account.id,
            description=f'Payment of {amount} for account {account.id}',
            user_id=payer.id
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info('Payment %s of %s recorded on account %s, balance %s',
                            payment.id, amount, account.id, payment.balance_after)
    return payment
