import json
import logging
import os
import uuid

from flask import Blueprint, current_app, g, jsonify, request
from werkzeug.utils import secure_filename

from ..auth import admin_required, token_required
from ..directory import find_point, paginate, validate_page
from ..errors import BankSampahError, ValidationError
from ..schemas import StatusUpdate, SubmissionCreate
from ..stats import user_summary
from ..storage import BANK_SAMPAH, SUBMISSIONS, get_store
from ..submissions import find_submission
from .common import get_lifecycle, int_arg, load_current_user, parse_body

logger = logging.getLogger(__name__)

bp = Blueprint('submissions', __name__, url_prefix='/api/submissions')


def _file_size(file):
    file.stream.seek(0, os.SEEK_END)
    size = file.stream.tell()
    file.stream.seek(0)
    return size


def _check_images(files):
    config = current_app.config
    if len(files) > config['MAX_IMAGES_PER_SUBMISSION']:
        raise ValidationError(f'Maksimal {config["MAX_IMAGES_PER_SUBMISSION"]} gambar per submission')
    for file in files:
        ext = file.filename.rsplit('.', 1)[-1].lower() if '.' in file.filename else ''
        if ext not in config['ALLOWED_IMAGE_EXTENSIONS']:
            raise ValidationError('Hanya file gambar (JPEG, PNG) yang diizinkan',
                                  details={'filename': file.filename})
        if _file_size(file) > config['MAX_FILE_SIZE']:
            raise ValidationError('Ukuran file terlalu besar', details={'filename': file.filename})


def _save_images(files):
    folder = current_app.config['UPLOAD_FOLDER']
    os.makedirs(folder, exist_ok=True)
    images = []
    for file in files:
        original = secure_filename(file.filename)
        filename = f'submission-{uuid.uuid4().hex}-{original}'
        path = os.path.join(folder, filename)
        file.save(path)
        images.append({
            'filename': filename,
            'original_name': file.filename,
            'path': f'/uploads/submissions/{filename}',
            'size': os.path.getsize(path),
            'mimetype': file.mimetype,
        })
    if images:
        logger.info('Stored %d submission image(s) in %s', len(images), folder)
    return images


def _remove_images(images):
    folder = current_app.config['UPLOAD_FOLDER']
    for image in images:
        path = os.path.join(folder, image['filename'])
        if os.path.exists(path):
            os.remove(path)


def _form_payload():
    data = request.form.to_dict()
    if data.get('pickup_coordinates'):
        try:
            data['pickup_coordinates'] = json.loads(data['pickup_coordinates'])
        except ValueError:
            raise ValidationError('Koordinat tidak valid',
                                  details={'pickup_coordinates': data['pickup_coordinates']})
    return data


@bp.route('', methods=['GET'])
@token_required
def list_submissions():
    status = request.args.get('status')
    page, limit = validate_page(int_arg('page', 1), int_arg('limit', 10))

    submissions = [s for s in get_store().load(SUBMISSIONS) if s['user_id'] == g.actor.id]
    if status:
        submissions = [s for s in submissions if s['status'] == status]
    submissions.sort(key=lambda s: s.get('created_at') or '', reverse=True)

    total = len(submissions)
    return jsonify({
        'success': True,
        'submissions': paginate(submissions, page, limit),
        'pagination': {
            'current_page': page,
            'per_page': limit,
            'total': total,
            'total_pages': -(-total // limit),
        },
    })


@bp.route('/stats/summary', methods=['GET'])
@token_required
def summary():
    submissions = get_store().load(SUBMISSIONS)
    return jsonify({'success': True, 'stats': user_summary(g.actor.id, submissions)})


@bp.route('/<int:submission_id>', methods=['GET'])
@token_required
def get_submission(submission_id):
    owner = None if g.actor.is_admin else g.actor.id
    submission = find_submission(get_store().load(SUBMISSIONS), submission_id, user_id=owner)
    return jsonify({'success': True, 'submission': submission})


@bp.route('', methods=['POST'])
@token_required
def create_submission():
    files = [f for f in request.files.getlist('images') if f and f.filename]
    if request.mimetype == 'multipart/form-data':
        data = parse_body(SubmissionCreate, _form_payload())
    else:
        data = parse_body(SubmissionCreate)

    _, user = load_current_user(g.actor)
    if data.bank_sampah_id is not None:
        find_point(get_store().load(BANK_SAMPAH), data.bank_sampah_id)

    _check_images(files)
    images = data.images + _save_images(files)
    try:
        submission = get_lifecycle().create(
            user,
            waste_type=data.waste_type,
            estimated_weight=data.estimated_weight,
            ewallet_type=data.ewallet_type,
            pickup_address=data.pickup_address,
            pickup_schedule=data.pickup_schedule,
            notes=data.notes,
            images=images,
            pickup_coordinates=data.pickup_coordinates.model_dump() if data.pickup_coordinates else None,
            bank_sampah_id=data.bank_sampah_id,
        )
    except BankSampahError:
        _remove_images(images[len(data.images):])
        raise

    return jsonify({
        'success': True,
        'message': 'Submission berhasil dibuat',
        'submission': submission,
    }), 201


@bp.route('/<int:submission_id>/status', methods=['PATCH'])
@admin_required
def update_status(submission_id):
    data = parse_body(StatusUpdate)
    submission = get_lifecycle().transition(
        submission_id, data.status, g.actor,
        note=data.note,
        actual_weight=data.actual_weight,
        pickup_driver=data.driver_id,
    )
    return jsonify({
        'success': True,
        'message': 'Status submission berhasil diperbarui',
        'submission': submission,
    })


@bp.route('/<int:submission_id>/cancel', methods=['PATCH'])
@token_required
def cancel(submission_id):
    submission = get_lifecycle().cancel(submission_id, g.actor)
    return jsonify({
        'success': True,
        'message': 'Submission berhasil dibatalkan',
        'submission': submission,
    })
