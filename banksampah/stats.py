"""Read-only aggregates over users and submissions.

Nothing here mutates its inputs. Money and weights are summed unrounded and
rounded to two decimals only when placed in a response.
"""
from datetime import date, datetime, timezone
from math import floor

from .errors import ValidationError

CO2_PER_KG = 2.5
KG_PER_TREE = 20
ENERGY_KWH_PER_KG = 1.2
WATER_LITERS_PER_KG = 10
BOTTLES_PER_KG = 50

LEADERBOARD_METRICS = ('weight', 'earnings', 'submissions', 'environmental')
REPORT_TYPES = ('financial', 'waste', 'users')
STATUSES = ('pending', 'confirmed', 'picked_up', 'verified', 'processed', 'completed', 'cancelled')


def parse_timestamp(value):
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def month_key(value):
    parsed = parse_timestamp(value)
    return f'{parsed.year:04d}-{parsed.month:02d}' if parsed else None


def shift_month(year, month, delta):
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def recent_months(now, months):
    """``YYYY-MM`` keys for the last ``months`` calendar months, oldest first."""
    return [
        '%04d-%02d' % shift_month(now.year, now.month, -offset)
        for offset in range(months - 1, -1, -1)
    ]


def _now(now):
    return now or datetime.now(timezone.utc)


def parse_date_bound(value, name):
    if value in (None, ''):
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError('Format tanggal tidak valid (YYYY-MM-DD)', details={name: value})


def filter_by_date_range(records, date_from=None, date_to=None, field='created_at'):
    start = parse_date_bound(date_from, 'date_from')
    end = parse_date_bound(date_to, 'date_to')
    if not start and not end:
        return list(records)
    result = []
    for record in records:
        stamp = parse_timestamp(record.get(field))
        if stamp is None:
            continue
        day = stamp.date()
        if start and day < start:
            continue
        if end and day > end:
            continue
        result.append(record)
    return result


def environmental_impact(weight):
    return {
        'co2_kg': round(weight * CO2_PER_KG, 2),
        'trees': floor(weight / KG_PER_TREE),
        'landfill_diverted_kg': round(weight, 2),
        'energy_saved_kwh': round(weight * ENERGY_KWH_PER_KG, 2),
        'water_saved_liters': round(weight * WATER_LITERS_PER_KG, 2),
        'plastic_bottles_equivalent': floor(weight * BOTTLES_PER_KG),
    }


def percentage_change(current, previous):
    # previous == 0 has no ratio; report 100 for growth from nothing, 0 otherwise
    if previous == 0:
        return 100 if current > 0 else 0
    return round((current - previous) / previous * 100, 1)


def _completed(submissions):
    return [s for s in submissions if s.get('status') == 'completed']


def total_weight(submissions):
    return sum(s['actual_weight'] for s in submissions if s.get('actual_weight'))


def total_earnings(submissions):
    return sum(s['actual_transfer'] for s in _completed(submissions) if s.get('actual_transfer'))


def total_revenue(submissions):
    return sum(s['platform_fee'] for s in _completed(submissions) if s.get('platform_fee'))


def summarize(submissions):
    return {
        'total_submissions': len(submissions),
        'completed_submissions': len(_completed(submissions)),
        'total_weight': round(total_weight(submissions), 2),
        'total_earnings': round(total_earnings(submissions), 2),
    }


def status_counts(submissions):
    counts = {status: 0 for status in STATUSES}
    for submission in submissions:
        counts[submission.get('status')] = counts.get(submission.get('status'), 0) + 1
    return counts


def user_stats(user_id, submissions):
    mine = [s for s in submissions if s['user_id'] == user_id]
    values = [s['actual_value'] for s in mine if s.get('actual_value')]
    weight = total_weight(mine)
    counts = status_counts(mine)
    return {
        'total_submissions': len(mine),
        'pending_submissions': counts['pending'],
        'completed_submissions': counts['completed'],
        'cancelled_submissions': counts['cancelled'],
        'by_status': counts,
        'total_weight': round(weight, 2),
        'total_earnings': round(total_earnings(mine), 2),
        'average_submission_value': round(sum(values) / len(values), 2) if values else 0,
        'environmental_impact': environmental_impact(weight),
    }


def user_summary(user_id, submissions, now=None):
    """Per-user counters plus the current calendar month."""
    now = _now(now)
    mine = [s for s in submissions if s['user_id'] == user_id]
    this_month = f'{now.year:04d}-{now.month:02d}'
    month_subs = [s for s in mine if month_key(s.get('created_at')) == this_month]
    stats = user_stats(user_id, submissions)
    stats['this_month'] = {
        'submissions': len(month_subs),
        'earnings': round(total_earnings(month_subs), 2),
    }
    return stats


def waste_type_breakdown(submissions):
    breakdown = {}
    for submission in submissions:
        entry = breakdown.setdefault(submission['waste_type'], {'count': 0, 'weight': 0, 'value': 0, 'earnings': 0})
        entry['count'] += 1
        entry['weight'] += submission.get('actual_weight') or 0
        entry['value'] += submission.get('actual_value') or 0
        if submission.get('status') == 'completed':
            entry['earnings'] += submission.get('actual_transfer') or 0
    for entry in breakdown.values():
        for key in ('weight', 'value', 'earnings'):
            entry[key] = round(entry[key], 2)
    return breakdown


def monthly_trends(submissions, months=6, now=None, users=None):
    """Fixed calendar-month buckets, oldest first."""
    if months < 1:
        raise ValidationError('Jumlah bulan minimal 1', details={'months': months})
    keys = recent_months(_now(now), months)
    buckets = {key: [] for key in keys}
    for submission in submissions:
        key = month_key(submission.get('created_at'))
        if key in buckets:
            buckets[key].append(submission)

    trends = []
    for key in keys:
        bucket = buckets[key]
        entry = {
            'month': key,
            'submissions': len(bucket),
            'completed': len(_completed(bucket)),
            'revenue': round(total_revenue(bucket), 2),
            'weight': round(total_weight(bucket), 2),
        }
        if users is not None:
            entry['new_users'] = sum(1 for u in users if month_key(u.get('join_date')) == key)
        trends.append(entry)
    return trends


def user_dashboard(user_id, submissions, months=6, now=None):
    mine = [s for s in submissions if s['user_id'] == user_id]
    completed = _completed(mine)

    earnings = []
    for key in recent_months(_now(now), months):
        bucket = [s for s in completed if month_key(s.get('created_at')) == key]
        earnings.append({
            'month': key,
            'earnings': round(total_earnings(bucket), 2),
            'submissions': len(bucket),
            'weight': round(total_weight(bucket), 2),
        })

    recent = sorted(mine, key=lambda s: s.get('created_at') or '', reverse=True)[:10]
    stats = user_summary(user_id, submissions, now=now)
    return {
        'basic_stats': stats,
        'monthly_earnings': earnings,
        'waste_type_breakdown': waste_type_breakdown(completed),
        'recent_activity': [
            {
                'id': s['id'],
                'waste_type': s['waste_type'],
                'weight': s.get('actual_weight') or s.get('estimated_weight'),
                'status': s['status'],
                'created_at': s.get('created_at'),
                'earnings': s.get('actual_transfer') or 0,
            }
            for s in recent
        ],
        'environmental_impact': stats['environmental_impact'],
    }


def platform_stats(users, submissions, points, months=12, now=None, date_from=None, date_to=None):
    members = [u for u in users if u.get('role') == 'user']
    scoped = filter_by_date_range(submissions, date_from, date_to)
    completed = len(_completed(scoped))
    weight = total_weight(scoped)
    return {
        'basic_stats': {
            'total_users': len(members),
            'active_users': sum(1 for u in members if u.get('is_active')),
            'total_submissions': len(scoped),
            'completed_submissions': completed,
            'total_bank_sampah': sum(1 for p in points if p.get('is_active')),
            'completion_rate': round(completed / len(scoped) * 100, 1) if scoped else 0,
            'by_status': status_counts(scoped),
        },
        'totals': {
            'weight': round(weight, 2),
            'earnings': round(total_earnings(scoped), 2),
            'revenue': round(total_revenue(scoped), 2),
        },
        'environmental_impact': environmental_impact(weight),
        'waste_type_stats': waste_type_breakdown([s for s in scoped if s.get('actual_weight')]),
        'monthly_growth': monthly_trends(submissions, months=months, now=now, users=members),
        'period': {'date_from': date_from or None, 'date_to': date_to or None},
    }


def _leaderboard_entry(user, submissions):
    completed = [s for s in _completed(submissions) if s['user_id'] == user['id']]
    weight = sum(s.get('actual_weight') or 0 for s in completed)
    return {
        'id': user['id'],
        'name': user.get('name'),
        'total_weight': weight,
        'total_earnings': sum(s.get('actual_transfer') or 0 for s in completed),
        'total_submissions': len(completed),
        'join_date': user.get('join_date'),
        'environmental_impact': {
            'co2_reduced': weight * CO2_PER_KG,
            'trees_saved': floor(weight / KG_PER_TREE),
        },
    }


def _display_entry(entry, rank):
    impact = entry['environmental_impact']
    return {
        **entry,
        'total_weight': round(entry['total_weight'], 2),
        'total_earnings': round(entry['total_earnings'], 2),
        'environmental_impact': {**impact, 'co2_reduced': round(impact['co2_reduced'], 2)},
        'rank': rank,
    }


_METRIC_KEYS = {
    'weight': lambda e: e['total_weight'],
    'earnings': lambda e: e['total_earnings'],
    'submissions': lambda e: e['total_submissions'],
    'environmental': lambda e: e['environmental_impact']['co2_reduced'],
}


def leaderboard(users, submissions, metric='weight', limit=10, actor_id=None):
    """Rank active users by ``metric``; equal values keep collection order."""
    if metric not in LEADERBOARD_METRICS:
        raise ValidationError('Jenis leaderboard tidak valid',
                              details={'type': metric, 'allowed': list(LEADERBOARD_METRICS)})
    if limit < 1:
        raise ValidationError('limit minimal 1', details={'limit': limit})

    participants = [u for u in users if u.get('role') == 'user' and u.get('is_active')]
    entries = [_leaderboard_entry(u, submissions) for u in participants]
    entries.sort(key=_METRIC_KEYS[metric], reverse=True)
    ranked = [_display_entry(entry, index + 1) for index, entry in enumerate(entries)]

    current = None
    if actor_id is not None:
        current = next((entry for entry in ranked if entry['id'] == actor_id), None)
    return {
        'leaderboard': ranked[:limit],
        'current_user_rank': current,
        'leaderboard_type': metric,
        'total_participants': len(ranked),
    }


def waste_type_trends(submissions, months=6, now=None):
    if months < 1:
        raise ValidationError('Jumlah bulan minimal 1', details={'months': months})
    completed = _completed(submissions)
    trends = []
    for key in recent_months(_now(now), months):
        bucket = [s for s in completed if month_key(s.get('created_at')) == key]
        by_type = {}
        for s in bucket:
            entry = by_type.setdefault(s['waste_type'], {'count': 0, 'weight': 0})
            entry['count'] += 1
            entry['weight'] = round(entry['weight'] + (s.get('actual_weight') or 0), 2)
        trends.append({
            'month': key,
            'waste_types': by_type,
            'total_submissions': len(bucket),
            'total_weight': round(total_weight(bucket), 2),
        })
    return trends


def month_over_month(users, submissions, now=None):
    now = _now(now)
    current_key = f'{now.year:04d}-{now.month:02d}'
    previous_key = '%04d-%02d' % shift_month(now.year, now.month, -1)

    current = summarize([s for s in submissions if month_key(s.get('created_at')) == current_key])
    previous = summarize([s for s in submissions if month_key(s.get('created_at')) == previous_key])

    members = [u for u in users if u.get('role') == 'user']
    new_current = sum(1 for u in members if month_key(u.get('join_date')) == current_key)
    new_previous = sum(1 for u in members if month_key(u.get('join_date')) == previous_key)

    return {
        'current_month': {'month': current_key, **current},
        'previous_month': {'month': previous_key, **previous},
        'changes': {
            'submissions': percentage_change(current['total_submissions'], previous['total_submissions']),
            'completed': percentage_change(current['completed_submissions'], previous['completed_submissions']),
            'weight': percentage_change(current['total_weight'], previous['total_weight']),
            'earnings': percentage_change(current['total_earnings'], previous['total_earnings']),
        },
        'new_users': {
            'current_month': new_current,
            'previous_month': new_previous,
            'change': percentage_change(new_current, new_previous),
        },
    }


def _user_names(users):
    return {u['id']: u for u in users}


def admin_dashboard(users, submissions, points, now=None):
    now = _now(now)
    this_month = f'{now.year:04d}-{now.month:02d}'
    members = [u for u in users if u.get('role') == 'user']
    new_users = sum(1 for u in members if month_key(u.get('join_date')) == this_month)

    month_subs = [s for s in submissions if month_key(s.get('created_at')) == this_month]
    completed = len(_completed(submissions))
    revenue = total_revenue(submissions)
    payouts = total_earnings(submissions)
    processed = total_weight(submissions)

    by_type = {}
    for s in submissions:
        if s.get('actual_weight'):
            by_type[s['waste_type']] = round(by_type.get(s['waste_type'], 0) + s['actual_weight'], 2)

    lookup = _user_names(users)
    recent = sorted(submissions, key=lambda s: s.get('created_at') or '', reverse=True)[:10]
    return {
        'users': {
            'total': len(members),
            'active': sum(1 for u in members if u.get('is_active')),
            'new_this_month': new_users,
            'growth_rate': round(new_users / len(members) * 100, 1) if members else 0,
        },
        'submissions': {
            'total': len(submissions),
            'pending': sum(1 for s in submissions if s.get('status') == 'pending'),
            'completed': completed,
            'this_month': len(month_subs),
            'completion_rate': round(completed / len(submissions) * 100, 1) if submissions else 0,
        },
        'financial': {
            'total_revenue': round(revenue, 2),
            'total_payouts': round(payouts, 2),
            'revenue_this_month': round(total_revenue(month_subs), 2),
            'profit_margin': round(revenue / (revenue + payouts) * 100, 1) if payouts else 0,
        },
        'waste': {
            'total_processed': round(processed, 2),
            'types': by_type,
            'average_per_submission': round(processed / completed, 2) if completed else 0,
        },
        'bank_sampah': {
            'total': len(points),
            'active': sum(1 for p in points if p.get('is_active')),
        },
        'recent_activities': [
            {**s, 'user_name': lookup[s['user_id']]['name'] if s['user_id'] in lookup else 'Unknown'}
            for s in recent
        ],
        'monthly_trends': monthly_trends(submissions, months=6, now=now),
    }


def monthly_breakdown(submissions):
    monthly = {}
    for s in submissions:
        key = month_key(s.get('created_at'))
        if key is None:
            continue
        entry = monthly.setdefault(key, {'submissions': 0, 'revenue': 0, 'payouts': 0})
        entry['submissions'] += 1
        if s.get('status') == 'completed':
            entry['revenue'] = round(entry['revenue'] + (s.get('platform_fee') or 0), 2)
            entry['payouts'] = round(entry['payouts'] + (s.get('actual_transfer') or 0), 2)
    return dict(sorted(monthly.items()))


def top_users(submissions, users, limit=10):
    lookup = _user_names(users)
    stats = {}
    for s in submissions:
        user = lookup.get(s['user_id'])
        entry = stats.setdefault(s['user_id'], {
            'user_id': s['user_id'],
            'user_name': user['name'] if user else 'Unknown',
            'submissions': 0,
            'total_weight': 0,
            'total_earnings': 0,
        })
        entry['submissions'] += 1
        entry['total_weight'] += s.get('actual_weight') or 0
        if s.get('status') == 'completed':
            entry['total_earnings'] += s.get('actual_transfer') or 0
    ranked = sorted(stats.values(), key=lambda e: e['total_weight'], reverse=True)[:limit]
    for entry in ranked:
        entry['total_weight'] = round(entry['total_weight'], 2)
        entry['total_earnings'] = round(entry['total_earnings'], 2)
    return ranked


def generate_report(report_type, users, submissions, date_from=None, date_to=None):
    if report_type not in REPORT_TYPES:
        raise ValidationError('Jenis laporan tidak valid', details={'available_types': list(REPORT_TYPES)})

    scoped = filter_by_date_range(submissions, date_from, date_to)
    period = {'date_from': date_from or None, 'date_to': date_to or None}

    if report_type == 'financial':
        return {
            'period': period,
            'summary': {
                'total_submissions': len(scoped),
                'completed_submissions': len(_completed(scoped)),
                'total_revenue': round(total_revenue(scoped), 2),
                'total_payouts': round(total_earnings(scoped), 2),
            },
            'by_month': monthly_breakdown(scoped),
            'by_waste_type': waste_type_breakdown(scoped),
        }

    if report_type == 'waste':
        weighed = [s for s in scoped if s.get('actual_weight')]
        weight = total_weight(scoped)
        return {
            'period': period,
            'summary': {
                'total_weight': round(weight, 2),
                'average_per_submission': round(weight / len(weighed), 2) if weighed else 0,
            },
            'by_type': waste_type_breakdown(scoped),
            'environmental_impact': environmental_impact(weight),
        }

    members = [u for u in users if u.get('role') == 'user']
    joined = filter_by_date_range(members, date_from, date_to, field='join_date') if (date_from or date_to) else []
    return {
        'period': period,
        'summary': {
            'total_users': len(members),
            'active_users': sum(1 for u in members if u.get('is_active')),
            'new_users': len(joined),
        },
        'top_users': top_users(scoped, users),
    }
