from flask import Blueprint, g, jsonify, request

from ..auth import token_required
from ..errors import ValidationError
from ..reports import render_trend_chart
from ..stats import leaderboard, month_over_month, platform_stats, user_dashboard, waste_type_trends
from ..storage import BANK_SAMPAH, SUBMISSIONS, USERS, get_store
from .common import int_arg

bp = Blueprint('stats', __name__, url_prefix='/api/stats')


def _months(default):
    months = int_arg('months', default)
    if months < 1:
        raise ValidationError('Jumlah bulan minimal 1', details={'months': months})
    return months


def _wants_chart():
    return request.args.get('chart', '').lower() in ('1', 'true', 'yes')


@bp.route('/user', methods=['GET'])
@token_required
def user():
    submissions = get_store().load(SUBMISSIONS)
    stats = user_dashboard(g.actor.id, submissions, months=_months(6))
    response = {'success': True, 'stats': stats}
    if _wants_chart():
        response['chart'] = render_trend_chart(stats['monthly_earnings'], 'Pendapatan Bulanan')
    return jsonify(response)


@bp.route('/platform', methods=['GET'])
@token_required
def platform():
    store = get_store()
    stats = platform_stats(
        store.load(USERS), store.load(SUBMISSIONS), store.load(BANK_SAMPAH),
        months=_months(12),
        date_from=request.args.get('date_from'),
        date_to=request.args.get('date_to'),
    )
    response = {'success': True, 'stats': stats}
    if _wants_chart():
        response['chart'] = render_trend_chart(stats['monthly_growth'], 'Pertumbuhan Platform')
    return jsonify(response)


@bp.route('/leaderboard', methods=['GET'])
@token_required
def leaderboard_view():
    store = get_store()
    result = leaderboard(
        store.load(USERS), store.load(SUBMISSIONS),
        metric=request.args.get('type', 'weight'),
        limit=int_arg('limit', 10),
        actor_id=g.actor.id,
    )
    return jsonify({'success': True, **result})


@bp.route('/trends/waste-types', methods=['GET'])
@token_required
def trends():
    months = _months(6)
    return jsonify({
        'success': True,
        'trends': waste_type_trends(get_store().load(SUBMISSIONS), months=months),
        'period': f'{months} months',
    })


@bp.route('/comparison', methods=['GET'])
@token_required
def comparison():
    store = get_store()
    return jsonify({
        'success': True,
        'comparison': month_over_month(store.load(USERS), store.load(SUBMISSIONS)),
    })
