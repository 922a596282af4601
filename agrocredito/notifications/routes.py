"""Notification routes"""
from flask import jsonify, abort, request, current_app
from flask_login import login_required, current_user
from agrocredito import db
from agrocredito.models import Notification, User
from agrocredito.notifications import notifications_bp
from agrocredito.notifications.fanout import notify
from agrocredito.notifications.forms import NotificationForm
from agrocredito.utils.decorators import permission_required
from agrocredito.utils.helpers import log_activity, parse_iso_datetime, query_flag, validate_form

def _get_own_notification(id):
    notification = db.get_or_404(Notification, id, description='Notification not found')
    if notification.user_id != current_user.id:
        abort(403, description='You can only manage your own notifications')
    return notification

@notifications_bp.route('')
@login_required
def list_notifications():
    """Current user's notifications, newest first"""
    query = Notification.query.filter_by(user_id=current_user.id)

    if query_flag('unreadOnly'):
        query = query.filter_by(is_read=False)

    since = parse_iso_datetime(request.args.get('since'))
    if since is not None:
        query = query.filter(Notification.created_at > since)

    limit = request.args.get('limit', current_app.config['ITEMS_PER_PAGE'] * 2, type=int)
    notifications = query.order_by(Notification.created_at.desc()).limit(max(1, limit)).all()
    return jsonify([n.to_dict() for n in notifications])

@notifications_bp.route('/unread-count')
@login_required
def unread_count():
    """Badge count and the poll interval clients should use"""
    count = Notification.query.filter_by(user_id=current_user.id, is_read=False).count()
    return jsonify({
        'count': count,
        'pollInterval': current_app.config['NOTIFICATION_POLL_INTERVAL'],
    })

@notifications_bp.route('/read-all', methods=['PATCH'])
@login_required
def mark_all_read():
    """Mark every notification of the current user as read"""
    updated = Notification.query.filter_by(
        user_id=current_user.id, is_read=False
    ).update({Notification.is_read: True}, synchronize_session=False)
    db.session.commit()
    return jsonify({'updated': updated})

@notifications_bp.route('/<id>/read', methods=['PATCH'])
@login_required
def mark_read(id):
    """Mark one notification as read"""
    notification = _get_own_notification(id)
    if not notification.is_read:
        notification.is_read = True
        db.session.commit()
    return jsonify(notification.to_dict())

@notifications_bp.route('/<id>', methods=['DELETE'])
@login_required
def delete_notification(id):
    """Delete one of the current user's notifications"""
    notification = _get_own_notification(id)
    db.session.delete(notification)
    db.session.commit()
    return jsonify({'message': 'Notification deleted'})

@notifications_bp.route('', methods=['POST'])
@login_required
@permission_required('notifications.create')
def create_notification():
    """Send a notification to a user"""
    form = validate_form(NotificationForm)
    recipient = db.session.get(User, form.user_id.data)
    if recipient is None:
        abort(404, description='Recipient not found')

    notification = notify(recipient.id, form.type.data, form.title.data, form.message.data, form.related_id.data or None)
    db.session.flush()
    log_activity(
        'send_notification',
        entity_type='notification',
        entity_id=notification.id,
        description=f'Sent {notification.type} notification to {recipient.full_name}'
    )
    db.session.commit()
    return jsonify(notification.to_dict()), 201
