import logging
from io import BytesIO

from flask import Blueprint, g, jsonify, request, send_file

from ..audit import append_admin_note
from ..auth import admin_required, sanitize_user
from ..directory import paginate, validate_page
from ..errors import ValidationError
from ..reports import build_report_pdf
from ..schemas import AdminSubmissionUpdate, UserStatusUpdate
from ..stats import admin_dashboard, filter_by_date_range, generate_report, user_stats
from ..storage import BANK_SAMPAH, SUBMISSIONS, USERS, get_store, utcnow_iso
from .common import get_lifecycle, int_arg, load_user, parse_body

logger = logging.getLogger(__name__)

bp = Blueprint('admin', __name__, url_prefix='/api/admin')


def _page_info(page, limit, total):
    return {
        'current_page': page,
        'per_page': limit,
        'total': total,
        'total_pages': -(-total // limit),
    }


@bp.route('/dashboard', methods=['GET'])
@admin_required
def dashboard():
    store = get_store()
    stats = admin_dashboard(store.load(USERS), store.load(SUBMISSIONS), store.load(BANK_SAMPAH))
    return jsonify({'success': True, 'dashboard': stats})


@bp.route('/users', methods=['GET'])
@admin_required
def list_users():
    search = request.args.get('search', '').strip().lower()
    role = request.args.get('role')
    status = request.args.get('status')
    page, limit = validate_page(int_arg('page', 1), int_arg('limit', 20))

    users = get_store().load(USERS)
    if search:
        users = [u for u in users
                 if search in (u.get('name') or '').lower() or search in (u.get('email') or '').lower()]
    if role:
        users = [u for u in users if u.get('role') == role]
    if status == 'active':
        users = [u for u in users if u.get('is_active')]
    elif status == 'inactive':
        users = [u for u in users if not u.get('is_active')]
    users.sort(key=lambda u: u.get('created_at') or '', reverse=True)

    return jsonify({
        'success': True,
        'users': [sanitize_user(u) for u in paginate(users, page, limit)],
        'pagination': _page_info(page, limit, len(users)),
    })


@bp.route('/users/<int:user_id>', methods=['GET'])
@admin_required
def user_detail(user_id):
    store = get_store()
    user = load_user(store.load(USERS), user_id)
    submissions = store.load(SUBMISSIONS)
    recent = sorted((s for s in submissions if s['user_id'] == user_id),
                    key=lambda s: s.get('created_at') or '', reverse=True)[:10]
    return jsonify({
        'success': True,
        'user': sanitize_user(user),
        'stats': user_stats(user_id, submissions),
        'recent_submissions': recent,
    })


@bp.route('/users/<int:user_id>/status', methods=['PATCH'])
@admin_required
def update_user_status(user_id):
    data = parse_body(UserStatusUpdate)
    if user_id == g.actor.id and not data.is_active:
        raise ValidationError('Admin tidak dapat menonaktifkan akunnya sendiri')

    store = get_store()
    users = store.load(USERS)
    user = load_user(users, user_id)
    now = utcnow_iso()
    user['is_active'] = data.is_active
    user['updated_at'] = now
    action = 'activated' if data.is_active else 'deactivated'
    append_admin_note(user, action, data.reason, g.actor.id, timestamp=now)
    store.save(USERS, users)
    logger.info('User %s %s by admin %s', user_id, action, g.actor.id)

    return jsonify({
        'success': True,
        'message': 'Pengguna berhasil diaktifkan' if data.is_active else 'Pengguna berhasil dinonaktifkan',
        'user': sanitize_user(user),
    })


@bp.route('/submissions', methods=['GET'])
@admin_required
def list_submissions():
    status = request.args.get('status')
    waste_type = request.args.get('waste_type')
    user_id = int_arg('user_id', None)
    page, limit = validate_page(int_arg('page', 1), int_arg('limit', 20))

    store = get_store()
    users = {u['id']: u for u in store.load(USERS)}
    submissions = filter_by_date_range(
        store.load(SUBMISSIONS), request.args.get('date_from'), request.args.get('date_to'))
    if status:
        submissions = [s for s in submissions if s['status'] == status]
    if waste_type:
        submissions = [s for s in submissions if s['waste_type'] == waste_type]
    if user_id is not None:
        submissions = [s for s in submissions if s['user_id'] == user_id]
    submissions.sort(key=lambda s: s.get('created_at') or '', reverse=True)

    enriched = []
    for s in paginate(submissions, page, limit):
        owner = users.get(s['user_id'])
        enriched.append({
            **s,
            'user_name': owner['name'] if owner else 'Unknown',
            'user_email': owner['email'] if owner else None,
        })

    return jsonify({
        'success': True,
        'submissions': enriched,
        'pagination': _page_info(page, limit, len(submissions)),
    })


@bp.route('/submissions/<int:submission_id>', methods=['PATCH'])
@admin_required
def update_submission(submission_id):
    data = parse_body(AdminSubmissionUpdate)
    lifecycle = get_lifecycle()

    if data.status:
        submission = lifecycle.transition(
            submission_id, data.status, g.actor,
            note=data.admin_notes or 'Status diubah oleh admin',
            actual_weight=data.actual_weight,
            pickup_driver=data.pickup_driver,
        )
    elif data.actual_weight is not None:
        raise ValidationError('Berat aktual hanya dapat diisi bersama perubahan status verifikasi')
    elif data.admin_notes or data.pickup_driver:
        submission = lifecycle.annotate(
            submission_id, admin_notes=data.admin_notes, pickup_driver=data.pickup_driver)
        logger.info('Submission %s annotated by admin %s', submission_id, g.actor.id)
    else:
        raise ValidationError('Tidak ada perubahan yang dikirim')

    return jsonify({
        'success': True,
        'message': 'Submission berhasil diperbarui',
        'submission': submission,
    })


@bp.route('/reports/<report_type>', methods=['GET'])
@admin_required
def report(report_type):
    output = request.args.get('format', 'json').lower()
    if output not in ('json', 'pdf'):
        raise ValidationError('Format laporan tidak valid', details={'available_formats': ['json', 'pdf']})

    store = get_store()
    data = generate_report(
        report_type, store.load(USERS), store.load(SUBMISSIONS),
        date_from=request.args.get('date_from'),
        date_to=request.args.get('date_to'),
    )
    logger.info('Report %s (%s) generated by admin %s', report_type, output, g.actor.id)

    if output == 'pdf':
        return send_file(
            BytesIO(build_report_pdf(report_type, data)),
            mimetype='application/pdf',
            as_attachment=True,
            download_name=f'laporan-{report_type}.pdf',
        )
    return jsonify({'success': True, 'report_type': report_type, 'report': data})
