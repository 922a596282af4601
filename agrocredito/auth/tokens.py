"""Bearer token issuance and request authentication"""
from datetime import datetime, timedelta
import jwt
from flask import current_app
from agrocredito import db

def _jwt_secret():
    return current_app.config['JWT_SECRET_KEY']

def create_jwt(user, expires_days=None):
    now = datetime.utcnow()
    if expires_days is None:
        expires_days = current_app.config['JWT_EXPIRES_DAYS']
    payload = {
        'sub': user.id,
        'userType': user.user_type,
        'iat': int(now.timestamp()),
        'exp': int((now + timedelta(days=expires_days)).timestamp()),
    }
    return jwt.encode(payload, _jwt_secret(), algorithm='HS256')

def verify_jwt(token):
    try:
        data = jwt.decode(token, _jwt_secret(), algorithms=['HS256'])
        return True, data
    except jwt.InvalidTokenError as e:
        return False, str(e)

def bearer_token(request):
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()

def user_from_token(token):
    """Active user named by a valid token, or None"""
    from agrocredito.models import User

    if not token:
        return None
    ok, data = verify_jwt(token)
    if not ok:
        current_app.logger.debug('Rejected bearer token: %s', data)
        return None
    user = db.session.get(User, data.get('sub'))
    if user is None or not user.is_active:
        return None
    return user

def load_user_from_request(request):
    return user_from_token(bearer_token(request))
