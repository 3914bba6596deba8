import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from .directory import find_point, paginate, validate_page
from .errors import ValidationError
from .storage import BANK_SAMPAH, generate_id, utcnow_iso

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 500
REVIEW_SORTS = {
    'newest': (lambda r: r.get('created_at') or '', True),
    'oldest': (lambda r: r.get('created_at') or '', False),
    'rating_high': (lambda r: r['rating'], True),
    'rating_low': (lambda r: r['rating'], False),
}


@dataclass
class ReviewOutcome:
    review: dict
    rating: float
    created: bool


def average_rating(reviews):
    """Mean rating to one decimal, halves rounded up (3.25 -> 3.3)."""
    if not reviews:
        return 0
    mean = Decimal(sum(r['rating'] for r in reviews)) / Decimal(len(reviews))
    return float(mean.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


def refresh_rating(point):
    reviews = point.get('reviews', [])
    point['rating'] = average_rating(reviews)
    point['total_reviews'] = len(reviews)


def validate_review(rating, comment):
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError('Rating harus antara 1-5', details={'rating': rating})
    comment = (comment or '').strip()
    if len(comment) > MAX_COMMENT_LENGTH:
        raise ValidationError(f'Komentar maksimal {MAX_COMMENT_LENGTH} karakter')
    return comment


def submit_review(point, actor, rating, comment=''):
    """Add ``actor``'s review to ``point`` or replace their earlier one."""
    comment = validate_review(rating, comment)
    reviews = list(point.get('reviews') or [])
    now = utcnow_iso()

    existing = next((i for i, r in enumerate(reviews) if r['user_id'] == actor.id), None)
    if existing is not None:
        previous = reviews[existing]
        review = {
            **previous,
            'user_name': actor.name or previous.get('user_name'),
            'rating': rating,
            'comment': comment,
            'updated_at': now,
        }
        reviews[existing] = review
    else:
        review = {
            'id': generate_id(reviews),
            'user_id': actor.id,
            'user_name': actor.name,
            'rating': rating,
            'comment': comment,
            'created_at': now,
            'updated_at': now,
        }
        reviews.append(review)

    point['reviews'] = reviews
    refresh_rating(point)
    point['updated_at'] = now
    return ReviewOutcome(review=review, rating=point['rating'], created=existing is None)


def rating_distribution(reviews):
    distribution = {str(star): 0 for star in range(5, 0, -1)}
    for review in reviews:
        distribution[str(review['rating'])] += 1
    return distribution


def list_reviews(point, sort='newest', page=1, limit=10):
    if sort not in REVIEW_SORTS:
        raise ValidationError('Parameter sort tidak valid',
                              details={'sort': sort, 'allowed': list(REVIEW_SORTS)})
    page, limit = validate_page(page, limit)
    key, reverse = REVIEW_SORTS[sort]
    reviews = sorted(point.get('reviews') or [], key=key, reverse=reverse)
    total = len(reviews)
    return {
        'reviews': paginate(reviews, page, limit),
        'pagination': {
            'current_page': page,
            'per_page': limit,
            'total': total,
            'total_pages': -(-total // limit),
        },
        'summary': {
            'average_rating': point.get('rating', 0),
            'total_reviews': point.get('total_reviews', total),
            'rating_distribution': rating_distribution(reviews),
        },
    }


def save_review(store, point_id, actor, rating, comment=''):
    points = store.load(BANK_SAMPAH)
    point = find_point(points, point_id)
    outcome = submit_review(point, actor, rating, comment)
    store.save(BANK_SAMPAH, points)
    logger.info('Review %s on bank sampah %s by user %s (rating %s)',
                'added' if outcome.created else 'updated', point_id, actor.id, rating)
    return outcome
