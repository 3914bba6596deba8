from flask import current_app, request

from ..errors import NotFoundError, ValidationError
from ..pricing import get_pricing
from ..storage import USERS, get_store
from ..submissions import SubmissionLifecycle


def parse_body(model, data=None):
    if data is None:
        data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    return model.model_validate(data)


def int_arg(name, default):
    value = request.args.get(name)
    if value in (None, ''):
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f'Parameter {name} harus berupa angka', details={name: value})


def float_arg(name, default):
    value = request.args.get(name)
    if value in (None, ''):
        return default
    try:
        return float(value)
    except ValueError:
        raise ValidationError(f'Parameter {name} harus berupa angka', details={name: value})


def get_lifecycle():
    config = current_app.config
    return SubmissionLifecycle(
        get_store(),
        pricing=get_pricing(config),
        min_weight=config['MIN_SUBMISSION_WEIGHT'],
        max_weight=config['MAX_SUBMISSION_WEIGHT'],
    )


def load_user(users, user_id):
    user = next((u for u in users if u['id'] == user_id), None)
    if not user:
        raise NotFoundError('Pengguna tidak ditemukan')
    return user


def load_current_user(actor):
    users = get_store().load(USERS)
    return users, load_user(users, actor.id)
