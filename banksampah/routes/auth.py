import logging

from flask import Blueprint, g, jsonify

from ..auth import (check_password, decode_token, find_user, find_user_by_email,
                    generate_tokens, hash_password, sanitize_user, token_required)
from ..errors import AuthenticationError, ValidationError
from ..schemas import LoginRequest, RefreshTokenRequest, RegisterRequest
from ..storage import USERS, generate_id, get_store, utcnow_iso
from .common import parse_body

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@bp.route('/register', methods=['POST'])
def register():
    data = parse_body(RegisterRequest)
    store = get_store()
    users = store.load(USERS)

    # Check existing email
    if find_user_by_email(users, data.email):
        raise ValidationError('Pengguna sudah terdaftar',
                              details={'message': 'Email sudah digunakan oleh akun lain'})

    now = utcnow_iso()
    user = {
        'id': generate_id(users),
        'name': data.name,
        'email': data.email.lower(),
        'password': hash_password(data.password),
        'phone': data.phone,
        'address': data.address,
        'role': 'user',
        'is_active': True,
        'email_verified': False,
        'ewallet_accounts': {},
        'admin_notes': [],
        'join_date': now,
        'created_at': now,
        'updated_at': now,
    }
    users.append(user)
    store.save(USERS, users)
    logger.info('User %s registered (%s)', user['id'], user['email'])

    return jsonify({
        'success': True,
        'message': 'Registrasi berhasil',
        'user': sanitize_user(user),
        **generate_tokens(user),
    }), 201


@bp.route('/login', methods=['POST'])
def login():
    data = parse_body(LoginRequest)
    store = get_store()
    users = store.load(USERS)

    user = find_user_by_email(users, data.email)
    if not user or not check_password(user['password'], data.password):
        logger.warning('Failed login for %s', data.email)
        raise AuthenticationError('Email atau password salah')
    if not user.get('is_active', True):
        raise AuthenticationError('Akun Anda telah dinonaktifkan. Hubungi administrator.')

    user['last_login'] = utcnow_iso()
    store.save(USERS, users)
    logger.info('User %s logged in', user['id'])

    return jsonify({
        'success': True,
        'message': 'Login berhasil',
        'user': sanitize_user(user),
        **generate_tokens(user),
    })


@bp.route('/refresh-token', methods=['POST'])
def refresh_token():
    data = parse_body(RefreshTokenRequest)
    user_id = decode_token(data.refresh_token, refresh=True)
    user = find_user(get_store().load(USERS), user_id)
    if not user or not user.get('is_active', True):
        raise AuthenticationError('Token tidak valid')
    return jsonify({
        'success': True,
        'message': 'Token berhasil diperbarui',
        **generate_tokens(user),
    })


@bp.route('/logout', methods=['POST'])
@token_required
def logout():
    logger.info('User %s logged out', g.actor.id)
    return jsonify({'success': True, 'message': 'Logout berhasil'})
