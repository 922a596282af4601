"""
Test notification polling, read state and ownership
"""
from datetime import datetime, timedelta
from agrocredito import db
from agrocredito.models import Notification
from agrocredito.notifications.fanout import notify
from conftest import auth_headers

def _notify(user, title='Aviso', created_at=None, is_read=False):
    notification = notify(user.id, 'system', title, f'{title} mensagem')
    notification.is_read = is_read
    if created_at is not None:
        notification.created_at = created_at
    db.session.commit()
    return notification

def test_list_newest_first(client, farmer):
    now = datetime.utcnow()
    old = _notify(farmer, 'Antiga', now - timedelta(hours=2))
    new = _notify(farmer, 'Nova', now)

    response = client.get('/api/notifications', headers=auth_headers(farmer))
    assert response.status_code == 200
    assert [n['id'] for n in response.get_json()] == [new.id, old.id]

def test_list_filters(client, farmer):
    now = datetime.utcnow()
    _notify(farmer, 'Lida', now - timedelta(hours=3), is_read=True)
    older = _notify(farmer, 'Por ler antiga', now - timedelta(hours=2))
    recent = _notify(farmer, 'Por ler recente', now)

    response = client.get('/api/notifications?unreadOnly=true', headers=auth_headers(farmer))
    assert {n['id'] for n in response.get_json()} == {older.id, recent.id}

    since = (now - timedelta(hours=1)).isoformat() + 'Z'
    response = client.get('/api/notifications', query_string={'since': since}, headers=auth_headers(farmer))
    assert [n['id'] for n in response.get_json()] == [recent.id]

    response = client.get('/api/notifications?limit=1', headers=auth_headers(farmer))
    assert [n['id'] for n in response.get_json()] == [recent.id]

def test_invalid_since_is_rejected(client, farmer):
    response = client.get('/api/notifications?since=yesterday', headers=auth_headers(farmer))
    assert response.status_code == 400

def test_unread_count_and_poll_interval(client, app, farmer):
    _notify(farmer)
    _notify(farmer)
    _notify(farmer, is_read=True)

    response = client.get('/api/notifications/unread-count', headers=auth_headers(farmer))
    assert response.get_json() == {'count': 2, 'pollInterval': app.config['NOTIFICATION_POLL_INTERVAL']}

def test_mark_read_and_read_all(client, farmer, other_farmer):
    first = _notify(farmer)
    _notify(farmer)
    foreign = _notify(other_farmer)

    response = client.patch(f'/api/notifications/{first.id}/read', headers=auth_headers(farmer))
    assert response.status_code == 200
    assert response.get_json()['isRead'] is True

    response = client.patch('/api/notifications/read-all', headers=auth_headers(farmer))
    assert response.get_json() == {'updated': 1}
    assert Notification.query.filter_by(user_id=farmer.id, is_read=False).count() == 0
    assert db.session.get(Notification, foreign.id).is_read is False

def test_cannot_touch_another_users_notification(client, farmer, other_farmer):
    foreign = _notify(other_farmer)

    assert client.patch(f'/api/notifications/{foreign.id}/read', headers=auth_headers(farmer)).status_code == 403
    assert client.delete(f'/api/notifications/{foreign.id}', headers=auth_headers(farmer)).status_code == 403
    assert db.session.get(Notification, foreign.id).is_read is False

    response = client.get('/api/notifications', headers=auth_headers(farmer))
    assert response.get_json() == []

def test_delete_own_notification(client, farmer):
    notification = _notify(farmer)
    response = client.delete(f'/api/notifications/{notification.id}', headers=auth_headers(farmer))
    assert response.status_code == 200
    assert db.session.get(Notification, notification.id) is None
    assert client.delete(f'/api/notifications/{notification.id}', headers=auth_headers(farmer)).status_code == 404

def test_admin_sends_notification(client, admin, farmer):
    payload = {'userId': farmer.id, 'type': 'system', 'title': 'Manutenção', 'message': 'Sistema indisponível às 22h'}

    response = client.post('/api/notifications', json=payload, headers=auth_headers(farmer))
    assert response.status_code == 403

    response = client.post('/api/notifications', json=payload, headers=auth_headers(admin))
    assert response.status_code == 201
    assert response.get_json()['userId'] == farmer.id
    assert Notification.query.filter_by(user_id=farmer.id, title='Manutenção').count() == 1

    payload['userId'] = 'nobody'
    assert client.post('/api/notifications', json=payload, headers=auth_headers(admin)).status_code == 404

def test_polling_requires_authentication(client):
    assert client.get('/api/notifications/unread-count').status_code == 401
