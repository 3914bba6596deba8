"""Search, ranking and metadata over waste-bank points (bank sampah)."""
from dataclasses import dataclass, field
from math import ceil
from typing import Any, Dict, List, Optional, Tuple

from .errors import NotFoundError, ValidationError
from .geo import distance_to_point

SORT_KEYS = ('rating', 'distance', 'name')
DEFAULT_RADIUS_KM = 10.0
MAX_LIMIT = 100


@dataclass
class SearchQuery:
    search: str = ''
    city: str = ''
    waste_type: str = ''
    location: Optional[Tuple[float, float]] = None
    radius: float = DEFAULT_RADIUS_KM
    sort_by: str = 'rating'
    page: int = 1
    limit: int = 10


@dataclass
class SearchResult:
    items: List[Dict[str, Any]]
    total: int
    page: int
    limit: int
    filters: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_pages(self):
        return ceil(self.total / self.limit) if self.limit else 0

    def pagination(self):
        return {
            'current_page': self.page,
            'per_page': self.limit,
            'total': self.total,
            'total_pages': self.total_pages,
        }


def validate_page(page, limit):
    try:
        page, limit = int(page), int(limit)
    except (TypeError, ValueError):
        raise ValidationError('Parameter halaman tidak valid', details={'page': page, 'limit': limit})
    if page < 1 or not 1 <= limit <= MAX_LIMIT:
        raise ValidationError(
            f'page minimal 1 dan limit antara 1 - {MAX_LIMIT}',
            details={'page': page, 'limit': limit})
    return page, limit


def paginate(items, page, limit):
    offset = (page - 1) * limit
    return items[offset:offset + limit]


def public_view(point, distance=None):
    """Listing shape of a point: embedded reviews are served by their own endpoint."""
    view = {key: value for key, value in point.items() if key != 'reviews'}
    if distance is not None:
        view['distance'] = round(distance, 2)
    return view


def _matches_text(point, needle):
    return any(needle in (point.get(key) or '').lower() for key in ('name', 'address', 'description'))


def search_points(points, query: SearchQuery) -> SearchResult:
    if query.sort_by not in SORT_KEYS:
        raise ValidationError('Parameter sort_by tidak valid',
                              details={'sort_by': query.sort_by, 'allowed': list(SORT_KEYS)})
    page, limit = validate_page(query.page, query.limit)

    candidates = [p for p in points if p.get('is_active')]

    if query.search:
        needle = query.search.lower()
        candidates = [p for p in candidates if _matches_text(p, needle)]
    if query.city:
        city = query.city.lower()
        candidates = [p for p in candidates if (p.get('city') or '').lower() == city]
    if query.waste_type:
        candidates = [p for p in candidates if query.waste_type in p.get('accepted_waste_types', [])]

    # (point, unrounded distance or None)
    ranked = [(p, None) for p in candidates]
    if query.location:
        lat, lon = query.location
        ranked = [(p, distance_to_point(lat, lon, p)) for p in candidates]
        ranked = [(p, d) for p, d in ranked if d <= query.radius]

    if query.sort_by == 'distance':
        if query.location:
            ranked.sort(key=lambda item: item[1])
    elif query.sort_by == 'name':
        ranked.sort(key=lambda item: (item[0].get('name') or '').casefold())
    else:
        ranked.sort(key=lambda item: item[0].get('rating') or 0, reverse=True)

    items = [public_view(p, d) for p, d in paginate(ranked, page, limit)]
    filters = {
        'search': query.search or None,
        'city': query.city or None,
        'waste_type': query.waste_type or None,
        'location': ({'latitude': query.location[0], 'longitude': query.location[1],
                      'radius': query.radius} if query.location else None),
        'sort_by': query.sort_by,
    }
    return SearchResult(items=items, total=len(ranked), page=page, limit=limit, filters=filters)


def nearby_points(points, latitude, longitude, radius=5.0, limit=5):
    """Closest active points within ``radius`` km, nearest first."""
    ranked = [(p, distance_to_point(latitude, longitude, p)) for p in points if p.get('is_active')]
    ranked = [(p, d) for p, d in ranked if d <= radius]
    ranked.sort(key=lambda item: item[1])
    return [public_view(p, d) for p, d in ranked[:limit]]


def points_by_waste_type(points, waste_type, location=None, radius=DEFAULT_RADIUS_KM):
    matching = [p for p in points if p.get('is_active') and waste_type in p.get('accepted_waste_types', [])]
    if location:
        lat, lon = location
        ranked = [(p, distance_to_point(lat, lon, p)) for p in matching]
        ranked = [(p, d) for p, d in ranked if d <= radius]
        ranked.sort(key=lambda item: item[1])
        return [public_view(p, d) for p, d in ranked]
    matching.sort(key=lambda p: p.get('rating') or 0, reverse=True)
    return [public_view(p) for p in matching]


def find_point(points, point_id, active_only=True):
    for point in points:
        if point['id'] == point_id and (point.get('is_active') or not active_only):
            return point
    raise NotFoundError('Bank sampah tidak ditemukan')


def city_counts(points):
    active = [p for p in points if p.get('is_active')]
    cities = sorted({p['city'] for p in active})
    return [{'name': city, 'count': sum(1 for p in active if p['city'] == city)} for city in cities]


def waste_type_counts(points):
    active = [p for p in points if p.get('is_active')]
    types = sorted({t for p in active for t in p.get('accepted_waste_types', [])})
    return [
        {'name': t, 'supported_by': sum(1 for p in active if t in p.get('accepted_waste_types', []))}
        for t in types
    ]


def directory_summary(points):
    by_city = {}
    for point in points:
        by_city[point['city']] = by_city.get(point['city'], 0) + 1
    average = sum(p.get('rating') or 0 for p in points) / len(points) if points else 0
    return {
        'total': len(points),
        'active': sum(1 for p in points if p.get('is_active')),
        'partners': sum(1 for p in points if p.get('is_partner')),
        'by_city': by_city,
        'average_rating': round(average, 1),
        'total_reviews': sum(p.get('total_reviews', 0) for p in points),
        'waste_types_supported': sorted({t for p in points for t in p.get('accepted_waste_types', [])}),
    }
