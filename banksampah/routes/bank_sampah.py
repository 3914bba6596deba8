from flask import Blueprint, g, jsonify, request

from ..auth import optional_auth, token_required
from ..directory import (DEFAULT_RADIUS_KM, SearchQuery, city_counts, directory_summary,
                         find_point, nearby_points, points_by_waste_type, public_view,
                         search_points, waste_type_counts)
from ..errors import ValidationError
from ..geo import distance_to_point, parse_location
from ..reviews import list_reviews, save_review
from ..schemas import ReviewCreate
from ..storage import BANK_SAMPAH, get_store
from .common import float_arg, int_arg, parse_body

bp = Blueprint('bank_sampah', __name__, url_prefix='/api/bank-sampah')


def _positive_radius(default):
    radius = float_arg('radius', default)
    if radius <= 0:
        raise ValidationError('Radius harus lebih dari 0', details={'radius': radius})
    return radius


@bp.route('', methods=['GET'])
@optional_auth
def list_bank_sampah():
    query = SearchQuery(
        search=request.args.get('search', '').strip(),
        city=request.args.get('city', '').strip(),
        waste_type=request.args.get('waste_type', '').strip(),
        location=parse_location(request.args.get('latitude'), request.args.get('longitude')),
        radius=_positive_radius(DEFAULT_RADIUS_KM),
        sort_by=request.args.get('sort_by', 'rating'),
        page=int_arg('page', 1),
        limit=int_arg('limit', 10),
    )
    result = search_points(get_store().load(BANK_SAMPAH), query)
    return jsonify({
        'success': True,
        'bank_sampah': result.items,
        'pagination': result.pagination(),
        'filters': result.filters,
    })


@bp.route('/stats/summary', methods=['GET'])
def stats_summary():
    return jsonify({'success': True, 'stats': directory_summary(get_store().load(BANK_SAMPAH))})


@bp.route('/meta/cities', methods=['GET'])
def cities():
    return jsonify({'success': True, 'cities': city_counts(get_store().load(BANK_SAMPAH))})


@bp.route('/meta/waste-types', methods=['GET'])
def waste_types():
    return jsonify({'success': True, 'waste_types': waste_type_counts(get_store().load(BANK_SAMPAH))})


@bp.route('/nearby/<latitude>/<longitude>', methods=['GET'])
def nearby(latitude, longitude):
    lat, lon = parse_location(latitude, longitude)
    radius = _positive_radius(5.0)
    limit = int_arg('limit', 5)
    if limit < 1:
        raise ValidationError('limit minimal 1', details={'limit': limit})

    points = nearby_points(get_store().load(BANK_SAMPAH), lat, lon, radius=radius, limit=limit)
    return jsonify({
        'success': True,
        'bank_sampah': points,
        'search_params': {'latitude': lat, 'longitude': lon, 'radius': radius, 'limit': limit},
        'total_found': len(points),
    })


@bp.route('/search/by-waste-type/<waste_type>', methods=['GET'])
def by_waste_type(waste_type):
    location = parse_location(request.args.get('latitude'), request.args.get('longitude'))
    radius = _positive_radius(DEFAULT_RADIUS_KM)
    points = points_by_waste_type(get_store().load(BANK_SAMPAH), waste_type,
                                  location=location, radius=radius)
    return jsonify({
        'success': True,
        'waste_type': waste_type,
        'bank_sampah': points,
        'total_found': len(points),
    })


@bp.route('/<int:point_id>', methods=['GET'])
@optional_auth
def detail(point_id):
    point = find_point(get_store().load(BANK_SAMPAH), point_id)
    location = parse_location(request.args.get('latitude'), request.args.get('longitude'))
    distance = distance_to_point(location[0], location[1], point) if location else None

    view = public_view(point, distance)
    view['recent_reviews'] = sorted(point.get('reviews') or [],
                                    key=lambda r: r.get('created_at') or '', reverse=True)[:5]
    if g.actor:
        view['user_review'] = next(
            (r for r in point.get('reviews') or [] if r['user_id'] == g.actor.id), None)
    return jsonify({'success': True, 'bank_sampah': view})


@bp.route('/<int:point_id>/review', methods=['POST'])
@token_required
def add_review(point_id):
    data = parse_body(ReviewCreate)
    outcome = save_review(get_store(), point_id, g.actor, data.rating, data.comment)
    return jsonify({
        'success': True,
        'message': 'Review berhasil ditambahkan' if outcome.created else 'Review berhasil diperbarui',
        'review': outcome.review,
        'bank_sampah_rating': outcome.rating,
    }), 201 if outcome.created else 200


@bp.route('/<int:point_id>/reviews', methods=['GET'])
def reviews(point_id):
    point = find_point(get_store().load(BANK_SAMPAH), point_id)
    result = list_reviews(point, sort=request.args.get('sort', 'newest'),
                          page=int_arg('page', 1), limit=int_arg('limit', 10))
    return jsonify({'success': True, **result})
