import logging

from flask import Blueprint, g, jsonify

from ..audit import append_admin_note
from ..auth import check_password, hash_password, sanitize_user, token_required
from ..errors import AuthenticationError, ValidationError
from ..schemas import AccountDelete, EwalletUpdate, PasswordChange, ProfileUpdate
from ..stats import user_summary
from ..storage import SUBMISSIONS, USERS, get_store, utcnow_iso
from .common import load_current_user, parse_body

logger = logging.getLogger(__name__)

bp = Blueprint('users', __name__, url_prefix='/api/users')


@bp.route('/profile', methods=['GET'])
@token_required
def get_profile():
    _, user = load_current_user(g.actor)
    submissions = get_store().load(SUBMISSIONS)
    return jsonify({
        'success': True,
        'user': sanitize_user(user),
        'stats': user_summary(user['id'], submissions),
    })


@bp.route('/profile', methods=['PUT'])
@token_required
def update_profile():
    data = parse_body(ProfileUpdate)
    users, user = load_current_user(g.actor)

    changes = data.model_dump(exclude_none=True)
    if 'ewallet_accounts' in changes:
        changes['ewallet_accounts'] = {
            **(user.get('ewallet_accounts') or {}), **changes['ewallet_accounts']}
    user.update(changes)
    user['updated_at'] = utcnow_iso()
    get_store().save(USERS, users)
    logger.info('User %s updated profile fields %s', user['id'], sorted(changes))

    return jsonify({
        'success': True,
        'message': 'Profil berhasil diperbarui',
        'user': sanitize_user(user),
    })


@bp.route('/ewallet', methods=['PATCH'])
@token_required
def update_ewallet():
    data = parse_body(EwalletUpdate)
    accounts = data.model_dump(exclude_none=True)
    if not accounts:
        raise ValidationError('Minimal satu akun e-wallet harus diisi')

    users, user = load_current_user(g.actor)
    user['ewallet_accounts'] = {**(user.get('ewallet_accounts') or {}), **accounts}
    user['updated_at'] = utcnow_iso()
    get_store().save(USERS, users)
    logger.info('User %s updated e-wallet accounts %s', user['id'], sorted(accounts))

    return jsonify({
        'success': True,
        'message': 'Akun e-wallet berhasil diperbarui',
        'ewallet_accounts': user['ewallet_accounts'],
    })


@bp.route('/password', methods=['PATCH'])
@token_required
def change_password():
    data = parse_body(PasswordChange)
    users, user = load_current_user(g.actor)
    if not check_password(user['password'], data.current_password):
        raise AuthenticationError('Password saat ini salah')

    user['password'] = hash_password(data.new_password)
    user['updated_at'] = utcnow_iso()
    get_store().save(USERS, users)
    logger.info('User %s changed password', user['id'])

    return jsonify({'success': True, 'message': 'Password berhasil diubah'})


@bp.route('/account', methods=['DELETE'])
@token_required
def delete_account():
    """Deactivate the account; records are kept for the audit trail."""
    data = parse_body(AccountDelete)
    users, user = load_current_user(g.actor)
    if not check_password(user['password'], data.password):
        raise AuthenticationError('Password salah')

    submissions = get_store().load(SUBMISSIONS)
    open_subs = [s for s in submissions
                 if s['user_id'] == user['id'] and s['status'] not in ('completed', 'cancelled')]
    if open_subs:
        raise ValidationError(
            'Akun tidak dapat dihapus',
            details={'message': 'Masih ada submission yang sedang diproses',
                     'submissions': [s['id'] for s in open_subs]})

    now = utcnow_iso()
    user['is_active'] = False
    user['deleted_at'] = now
    user['updated_at'] = now
    append_admin_note(user, 'account_deleted', data.reason or 'Dihapus oleh pengguna', user['id'], timestamp=now)
    get_store().save(USERS, users)
    logger.info('User %s deleted their account', user['id'])

    return jsonify({'success': True, 'message': 'Akun berhasil dihapus'})
