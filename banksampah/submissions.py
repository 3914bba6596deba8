"""Submission lifecycle: creation, status transitions and payout figures.

A submission snapshots ``price_per_kg`` when it is created. Every later
figure (estimated or actual) is derived from that snapshot, never from the
live pricing table. Status changes follow ``TRANSITIONS``; ``completed`` and
``cancelled`` accept nothing further.
"""
import logging
from datetime import datetime
from enum import Enum

from .audit import append_status_history
from .config import EWALLET_PROVIDERS
from .errors import ForbiddenError, InvalidTransitionError, NotFoundError, ValidationError
from .pricing import PricingTable
from .storage import SUBMISSIONS, generate_id, utcnow_iso

logger = logging.getLogger(__name__)


class SubmissionStatus(str, Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    PICKED_UP = 'picked_up'
    VERIFIED = 'verified'
    PROCESSED = 'processed'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


S = SubmissionStatus

TRANSITIONS = {
    S.PENDING: {S.CONFIRMED, S.CANCELLED},
    S.CONFIRMED: {S.PICKED_UP, S.CANCELLED},
    S.PICKED_UP: {S.VERIFIED, S.PROCESSED, S.CANCELLED},
    S.VERIFIED: {S.COMPLETED, S.CANCELLED},
    S.PROCESSED: {S.COMPLETED, S.CANCELLED},
    S.COMPLETED: set(),
    S.CANCELLED: set(),
}

TERMINAL_STATES = frozenset({S.COMPLETED, S.CANCELLED})
WEIGHING_STATES = frozenset({S.VERIFIED, S.PROCESSED})

# status -> timestamp field stamped when the status is entered
STATUS_TIMESTAMPS = {
    S.CONFIRMED: 'confirmed_at',
    S.PICKED_UP: 'pickup_time',
    S.VERIFIED: 'verification_time',
    S.PROCESSED: 'verification_time',
    S.COMPLETED: 'transfer_time',
    S.CANCELLED: 'cancelled_at',
}


def parse_status(value):
    try:
        return SubmissionStatus(value)
    except ValueError:
        raise InvalidTransitionError(
            'Status tidak valid',
            details={'status': value, 'allowed': [s.value for s in SubmissionStatus]})


def is_terminal(submission):
    return parse_status(submission['status']) in TERMINAL_STATES


def _as_number(value, name):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f'{name} harus berupa angka', details={name: value})
    return float(value)


def _as_iso(value, name):
    if isinstance(value, datetime):
        return value.isoformat()
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00')).isoformat()
    except ValueError:
        raise ValidationError('Jadwal penjemputan tidak valid', details={name: value})


def create_submission(submissions, user, waste_type, estimated_weight, ewallet_type,
                      pickup_address, pickup_schedule, notes='', images=None,
                      pickup_coordinates=None, bank_sampah_id=None,
                      pricing=None, min_weight=0.1, max_weight=100):
    """Build a new ``pending`` submission record for ``user``.

    The record is not added to ``submissions``; the list is only used to
    pick the next id.
    """
    pricing = pricing or PricingTable()
    price_per_kg = pricing.price_for(waste_type)

    estimated_weight = _as_number(estimated_weight, 'estimated_weight')
    if not min_weight <= estimated_weight <= max_weight:
        raise ValidationError(
            f'Berat harus antara {min_weight} - {max_weight} kg',
            details={'estimated_weight': estimated_weight})

    if ewallet_type not in EWALLET_PROVIDERS:
        raise ValidationError('Jenis e-wallet tidak valid', details={'ewallet_type': ewallet_type})
    ewallet_account = (user.get('ewallet_accounts') or {}).get(ewallet_type)
    if not ewallet_account:
        raise ValidationError(
            'E-wallet tidak terdaftar',
            details={'message': f'Akun {ewallet_type.upper()} belum terdaftar di profil Anda'})

    estimated_value, platform_fee, estimated_transfer = pricing.split(estimated_weight, price_per_kg)
    now = utcnow_iso()
    submission = {
        'id': generate_id(submissions),
        'user_id': user['id'],
        'bank_sampah_id': bank_sampah_id,
        'waste_type': waste_type,
        'estimated_weight': estimated_weight,
        'actual_weight': None,
        'price_per_kg': price_per_kg,
        'estimated_value': estimated_value,
        'actual_value': None,
        'platform_fee': platform_fee,
        'estimated_transfer': estimated_transfer,
        'actual_transfer': None,
        'ewallet_type': ewallet_type,
        'ewallet_account': ewallet_account,
        'pickup_address': pickup_address,
        'pickup_coordinates': pickup_coordinates,
        'pickup_schedule': _as_iso(pickup_schedule, 'pickup_schedule'),
        'notes': notes or '',
        'images': list(images or []),
        'status': S.PENDING.value,
        'status_history': [],
        'pickup_driver': None,
        'pickup_time': None,
        'verification_time': None,
        'transfer_time': None,
        'created_at': now,
        'updated_at': now,
    }
    append_status_history(submission, S.PENDING.value, 'Submission dibuat', user['id'], timestamp=now)
    return submission


def apply_transition(submission, new_status, actor, note='', actual_weight=None,
                     pickup_driver=None, pricing=None):
    """Move ``submission`` to ``new_status`` in place.

    All checks run before any field is written, so a rejected transition
    leaves the record untouched.
    """
    pricing = pricing or PricingTable()
    target = parse_status(new_status)
    current = parse_status(submission['status'])

    if current in TERMINAL_STATES:
        raise InvalidTransitionError(
            f'Submission dengan status {current.value} tidak dapat diubah',
            details={'from': current.value, 'to': target.value})
    if target not in TRANSITIONS[current]:
        raise InvalidTransitionError(
            f'Status tidak dapat diubah dari {current.value} ke {target.value}',
            details={'from': current.value, 'to': target.value,
                     'allowed': sorted(s.value for s in TRANSITIONS[current])})

    if not actor.is_admin:
        owner_cancel = (target is S.CANCELLED and current is S.PENDING
                        and submission['user_id'] == actor.id)
        if not owner_cancel:
            raise ForbiddenError('Anda tidak memiliki akses untuk mengubah status submission ini')

    changes = {}
    if actual_weight is not None:
        if target not in WEIGHING_STATES:
            raise ValidationError(
                'Berat aktual hanya dapat diisi saat verifikasi',
                details={'status': target.value})
        weight = _as_number(actual_weight, 'actual_weight')
        if weight <= 0:
            raise ValidationError('Berat aktual harus lebih dari 0', details={'actual_weight': weight})
        value, fee, transfer = pricing.split(weight, submission['price_per_kg'])
        changes.update({
            'actual_weight': weight,
            'actual_value': value,
            'platform_fee': fee,
            'actual_transfer': transfer,
        })

    now = utcnow_iso()
    timestamp_field = STATUS_TIMESTAMPS.get(target)
    if timestamp_field:
        changes[timestamp_field] = now
    if target is S.PICKED_UP and pickup_driver:
        changes['pickup_driver'] = pickup_driver
    changes['status'] = target.value
    changes['updated_at'] = now

    submission.update(changes)
    append_status_history(submission, target.value, note, actor.id, timestamp=now)
    return submission


def cancel_submission(submission, actor):
    if submission['user_id'] != actor.id:
        raise ForbiddenError('Hanya pemilik submission yang dapat membatalkan')
    if submission['status'] != S.PENDING.value:
        raise ForbiddenError(
            'Submission tidak dapat dibatalkan',
            details={'message': 'Hanya submission dengan status pending yang dapat dibatalkan'})
    return apply_transition(submission, S.CANCELLED, actor, 'Dibatalkan oleh pengguna')


def annotate_submission(submission, admin_notes=None, pickup_driver=None):
    """Admin edits that do not change status; refused once terminal."""
    if is_terminal(submission):
        raise InvalidTransitionError(
            f'Submission dengan status {submission["status"]} tidak dapat diubah')
    if admin_notes:
        submission['admin_notes'] = admin_notes
    if pickup_driver:
        submission['pickup_driver'] = pickup_driver
    submission['updated_at'] = utcnow_iso()
    return submission


def find_submission(submissions, submission_id, user_id=None):
    for submission in submissions:
        if submission['id'] == submission_id and (user_id is None or submission['user_id'] == user_id):
            return submission
    raise NotFoundError('Submission tidak ditemukan')


class SubmissionLifecycle:
    """Loads the submission collection, applies one change and saves it back."""

    def __init__(self, store, pricing=None, min_weight=0.1, max_weight=100):
        self.store = store
        self.pricing = pricing or PricingTable()
        self.min_weight = min_weight
        self.max_weight = max_weight

    def create(self, user, **fields):
        submissions = self.store.load(SUBMISSIONS)
        submission = create_submission(
            submissions, user, pricing=self.pricing,
            min_weight=self.min_weight, max_weight=self.max_weight, **fields)
        submissions.append(submission)
        self.store.save(SUBMISSIONS, submissions)
        logger.info('Submission %s created by user %s (%s, %.2f kg)',
                    submission['id'], user['id'], submission['waste_type'],
                    submission['estimated_weight'])
        return submission

    def transition(self, submission_id, new_status, actor, note='', actual_weight=None,
                   pickup_driver=None):
        submissions = self.store.load(SUBMISSIONS)
        submission = find_submission(submissions, submission_id)
        apply_transition(submission, new_status, actor, note=note, actual_weight=actual_weight,
                         pickup_driver=pickup_driver, pricing=self.pricing)
        self.store.save(SUBMISSIONS, submissions)
        logger.info('Submission %s moved to %s by user %s',
                    submission_id, submission['status'], actor.id)
        return submission

    def cancel(self, submission_id, actor):
        submissions = self.store.load(SUBMISSIONS)
        submission = find_submission(submissions, submission_id)
        cancel_submission(submission, actor)
        self.store.save(SUBMISSIONS, submissions)
        logger.info('Submission %s cancelled by owner %s', submission_id, actor.id)
        return submission

    def annotate(self, submission_id, admin_notes=None, pickup_driver=None):
        submissions = self.store.load(SUBMISSIONS)
        submission = find_submission(submissions, submission_id)
        annotate_submission(submission, admin_notes=admin_notes, pickup_driver=pickup_driver)
        self.store.save(SUBMISSIONS, submissions)
        return submission
