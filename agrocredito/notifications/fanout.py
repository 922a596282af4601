"""Notification producers

Every helper here only adds rows to the current session. The caller commits
them together with the change that triggered them.
"""
from flask import current_app
from agrocredito import db
from agrocredito.models import Notification, User

def notify(user_id, notification_type, title, message, related_id=None):
    notification = Notification(
        user_id=user_id,
        type=notification_type,
        title=title,
        message=message,
        related_id=related_id
    )
    db.session.add(notification)
    return notification

def active_institution_ids():
    rows = db.session.query(User.id).filter(
        User.user_type == 'financial_institution',
        User.parent_institution_id.is_(None),
        User.is_active.is_(True)
    ).all()
    return [row.id for row in rows]

def notify_application_submitted(application):
    """Confirm receipt to the applicant and alert the institutions that may review it"""
    notifications = [notify(
        application.user_id,
        'application_submitted',
        'Solicitação enviada',
        f'A sua solicitação de crédito para "{application.project_name}" foi enviada e está pendente de análise.',
        application.id
    )]

    if application.program is not None:
        institution_ids = [application.program.financial_institution_id]
    else:
        institution_ids = active_institution_ids()

    applicant_name = application.applicant.full_name if application.applicant else 'Um cliente'
    for institution_id in institution_ids:
        notifications.append(notify(
            institution_id,
            'new_application_received',
            'Nova solicitação de crédito',
            f'{applicant_name} submeteu a solicitação "{application.project_name}".',
            application.id
        ))
    return notifications

def notify_status_change(application):
    """Tell the applicant about the application's new status"""
    if application.status == 'under_review':
        return notify(
            application.user_id,
            'application_under_review',
            'Solicitação em análise',
            f'A sua solicitação "{application.project_name}" está em análise.',
            application.id
        )
    if application.status == 'approved':
        return notify(
            application.user_id,
            'application_approved',
            'Solicitação aprovada',
            f'A sua solicitação "{application.project_name}" foi aprovada. A sua conta de crédito já está disponível.',
            application.id
        )
    if application.status == 'rejected':
        return notify(
            application.user_id,
            'application_rejected',
            'Solicitação rejeitada',
            f'A sua solicitação "{application.project_name}" foi rejeitada. Motivo: {application.rejection_reason}',
            application.id
        )
    raise ValueError(f'No notification for status {application.status}')

def notify_payment_received(account, payment):
    currency = current_app.config.get('DEFAULT_CURRENCY', 'AOA')
    return notify(
        account.user_id,
        'payment_received',
        'Pagamento recebido',
        f'Recebemos o seu pagamento de {payment.amount:,.2f} {currency}. Saldo em dívida: {payment.balance_after:,.2f} {currency}.',
        account.id
    )
