"""Append-only logs embedded in records.

``status_history`` on submissions and ``admin_notes`` on users are audit
trails. They are only ever extended through the helpers below; existing
entries are never rewritten.
"""
from .storage import utcnow_iso


def _append(record, key, entry):
    record[key] = [*record.get(key, []), dict(entry)]
    return entry


def append_status_history(submission, status, note, updated_by, timestamp=None):
    entry = {
        'status': status,
        'timestamp': timestamp or utcnow_iso(),
        'note': note or '',
        'updated_by': updated_by,
    }
    return _append(submission, 'status_history', entry)


def append_admin_note(user, action, reason, admin_id, timestamp=None):
    entry = {
        'action': action,
        'reason': reason or '',
        'admin_id': admin_id,
        'timestamp': timestamp or utcnow_iso(),
    }
    return _append(user, 'admin_notes', entry)
