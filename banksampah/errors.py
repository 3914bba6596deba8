"""Error taxonomy for the Bank Sampah API and the Flask handlers that render it."""
import logging

import pydantic
from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class BankSampahError(Exception):
    status_code = 500
    default_message = 'Terjadi kesalahan pada server'

    def __init__(self, message=None, details=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details

    def to_dict(self):
        payload = {'success': False, 'error': self.message}
        if self.details is not None:
            payload['details'] = self.details
        return payload


class ValidationError(BankSampahError):
    status_code = 400
    default_message = 'Data tidak valid'


class NotFoundError(BankSampahError):
    status_code = 404
    default_message = 'Data tidak ditemukan'


class ForbiddenError(BankSampahError):
    status_code = 403
    default_message = 'Akses ditolak'


class AuthenticationError(BankSampahError):
    status_code = 401
    default_message = 'Token tidak valid atau sudah kedaluwarsa'


class InvalidTransitionError(BankSampahError):
    status_code = 409
    default_message = 'Perubahan status tidak diizinkan'


class StorageError(BankSampahError):
    status_code = 500
    default_message = 'Gagal mengakses penyimpanan data'


def pydantic_details(exc):
    return [
        {
            'field': '.'.join(str(part) for part in err.get('loc', ())),
            'message': err.get('msg', ''),
        }
        for err in exc.errors()
    ]


def register_error_handlers(app):
    @app.errorhandler(BankSampahError)
    def handle_domain_error(error):
        if isinstance(error, StorageError):
            logger.error('Storage failure: %s', error.message)
            return jsonify({'success': False, 'error': StorageError.default_message}), 500
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(pydantic.ValidationError)
    def handle_schema_error(error):
        return jsonify({
            'success': False,
            'error': 'Data tidak valid',
            'details': pydantic_details(error),
        }), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        messages = {
            404: 'Endpoint tidak ditemukan',
            405: 'Metode tidak diizinkan',
            413: 'Ukuran file terlalu besar',
        }
        return jsonify({
            'success': False,
            'error': messages.get(error.code, error.name),
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.exception('Unhandled error: %s', error)
        return jsonify({'success': False, 'error': BankSampahError.default_message}), 500
