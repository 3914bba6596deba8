import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Optional

from flask import current_app, g, request
from jose import JWTError, jwt
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import AuthenticationError, ForbiddenError
from .storage import USERS, get_store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    id: int
    role: str = 'user'
    email: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_admin(self):
        return self.role == 'admin'

    @classmethod
    def from_user(cls, user):
        return cls(id=user['id'], role=user.get('role', 'user'),
                   email=user.get('email'), name=user.get('name'))


def hash_password(password):
    return generate_password_hash(password)


def check_password(hashed_password, password):
    return check_password_hash(hashed_password, password)


def sanitize_user(user):
    if not user:
        return None
    return {key: value for key, value in user.items() if key != 'password'}


def create_access_token(user, expires_delta=None):
    config = current_app.config
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=config['JWT_EXPIRES_MINUTES']))
    payload = {
        'sub': str(user['id']),
        'email': user.get('email'),
        'role': user.get('role', 'user'),
        'type': 'access',
        'exp': expire,
    }
    return jwt.encode(payload, config['JWT_SECRET'], algorithm=config['JWT_ALGORITHM'])


def create_refresh_token(user, expires_delta=None):
    config = current_app.config
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=config['JWT_REFRESH_EXPIRES_MINUTES']))
    payload = {'sub': str(user['id']), 'type': 'refresh', 'exp': expire}
    return jwt.encode(payload, config['JWT_REFRESH_SECRET'], algorithm=config['JWT_ALGORITHM'])


def generate_tokens(user):
    return {
        'accessToken': create_access_token(user),
        'refreshToken': create_refresh_token(user),
    }


def decode_token(token, refresh=False):
    config = current_app.config
    secret = config['JWT_REFRESH_SECRET'] if refresh else config['JWT_SECRET']
    try:
        payload = jwt.decode(token, secret, algorithms=[config['JWT_ALGORITHM']])
    except JWTError:
        raise AuthenticationError()
    expected = 'refresh' if refresh else 'access'
    if payload.get('type') != expected or payload.get('sub') is None:
        raise AuthenticationError()
    try:
        return int(payload['sub'])
    except (TypeError, ValueError):
        raise AuthenticationError()


def find_user(users, user_id):
    return next((u for u in users if u['id'] == user_id), None)


def find_user_by_email(users, email):
    email = email.lower()
    return next((u for u in users if u['email'].lower() == email), None)


def _bearer_token():
    header = request.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        return header[len('Bearer '):].strip() or None
    return None


def load_actor(token):
    """Resolve a token to an ``Actor``; the account must still be active."""
    user_id = decode_token(token)
    user = find_user(get_store().load(USERS), user_id)
    if not user or not user.get('is_active', True):
        raise AuthenticationError('Token tidak valid')
    return Actor.from_user(user)


def token_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        token = _bearer_token()
        if not token:
            raise AuthenticationError('Token akses diperlukan')
        g.actor = load_actor(token)
        return view(*args, **kwargs)
    return wrapper


def optional_auth(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        token = _bearer_token()
        g.actor = None
        if token:
            try:
                g.actor = load_actor(token)
            except AuthenticationError:
                logger.debug('Ignoring invalid token on public endpoint %s', request.path)
        return view(*args, **kwargs)
    return wrapper


def admin_required(view):
    @wraps(view)
    @token_required
    def wrapper(*args, **kwargs):
        if not g.actor.is_admin:
            raise ForbiddenError('Akses admin diperlukan')
        return view(*args, **kwargs)
    return wrapper
