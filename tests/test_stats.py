from datetime import datetime, timezone

import pytest

from banksampah import stats
from banksampah.errors import ValidationError

NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


def completed(sub_id, user_id, weight, transfer, created_at, waste_type='Kardus', fee=None):
    return {
        'id': sub_id,
        'user_id': user_id,
        'waste_type': waste_type,
        'status': 'completed',
        'actual_weight': weight,
        'actual_value': transfer / 0.9,
        'actual_transfer': transfer,
        'platform_fee': fee if fee is not None else round(transfer / 9, 2),
        'created_at': created_at,
    }


def pending(sub_id, user_id, created_at):
    return {'id': sub_id, 'user_id': user_id, 'waste_type': 'Kertas', 'status': 'pending',
            'estimated_weight': 3, 'actual_weight': None, 'actual_transfer': None,
            'platform_fee': 450, 'created_at': created_at}


def user(user_id, name, join_date='2025-01-05T00:00:00+00:00', role='user', active=True):
    return {'id': user_id, 'name': name, 'email': f'u{user_id}@example.com', 'role': role,
            'is_active': active, 'join_date': join_date}


@pytest.fixture
def users():
    return [
        user(1, 'Admin', role='admin'),
        user(2, 'Budi'),
        user(3, 'Sari', join_date='2025-03-01T00:00:00+00:00'),
        user(4, 'Joko'),
        user(5, 'Nonaktif', active=False),
    ]


@pytest.fixture
def submissions():
    return [
        completed(1, 2, 10, 18000, '2025-01-20T08:00:00+00:00'),
        completed(2, 3, 10, 27000, '2025-03-02T08:00:00+00:00', waste_type='Besi'),
        completed(3, 4, 4, 7200, '2025-02-11T08:00:00+00:00'),
        pending(4, 2, '2025-03-10T08:00:00+00:00'),
        completed(5, 5, 50, 90000, '2025-03-03T08:00:00+00:00'),
    ]


def test_environmental_impact():
    impact = stats.environmental_impact(45)
    assert impact['co2_kg'] == 112.5
    assert impact['trees'] == 2
    assert impact['plastic_bottles_equivalent'] == 2250


@pytest.mark.parametrize('current, previous, expected', [
    (5, 0, 100),
    (0, 0, 0),
    (15, 10, 50.0),
    (5, 10, -50.0),
    (1, 3, -66.7),
])
def test_percentage_change(current, previous, expected):
    assert stats.percentage_change(current, previous) == expected


def test_recent_months_are_oldest_first_across_year_boundary():
    assert stats.recent_months(NOW, 4) == ['2024-12', '2025-01', '2025-02', '2025-03']


def test_monthly_trends_bucket_by_calendar_month(submissions, users):
    trends = stats.monthly_trends(submissions, months=3, now=NOW, users=users)

    assert [t['month'] for t in trends] == ['2025-01', '2025-02', '2025-03']
    assert [t['submissions'] for t in trends] == [1, 1, 3]
    assert [t['completed'] for t in trends] == [1, 1, 2]
    assert trends[0]['new_users'] == 4
    assert trends[2]['new_users'] == 1


def test_monthly_trends_require_a_month(submissions):
    with pytest.raises(ValidationError):
        stats.monthly_trends(submissions, months=0, now=NOW)


def test_user_stats(submissions):
    result = stats.user_stats(2, submissions)
    assert result['total_submissions'] == 2
    assert result['completed_submissions'] == 1
    assert result['pending_submissions'] == 1
    assert result['total_weight'] == 10
    assert result['total_earnings'] == 18000
    assert result['average_submission_value'] == 20000
    assert result['environmental_impact']['co2_kg'] == 25


def test_average_submission_value_uses_gross_value():
    submission = completed(1, 2, 2, 5400, '2025-03-01T00:00:00+00:00')
    submission['actual_value'] = 6000
    result = stats.user_stats(2, [submission])
    assert result['average_submission_value'] == 6000
    assert result['total_earnings'] == 5400


def test_user_without_submissions_has_zero_average():
    assert stats.user_stats(9, [])['average_submission_value'] == 0


def test_user_summary_this_month(submissions):
    summary = stats.user_summary(3, submissions, now=NOW)
    assert summary['this_month'] == {'submissions': 1, 'earnings': 27000}


def test_user_dashboard_recent_activity_newest_first(submissions):
    dashboard = stats.user_dashboard(2, submissions, months=3, now=NOW)
    assert [a['id'] for a in dashboard['recent_activity']] == [4, 1]
    assert [m['earnings'] for m in dashboard['monthly_earnings']] == [18000, 0, 0]
    assert dashboard['waste_type_breakdown']['Kardus']['count'] == 1


def test_leaderboard_by_weight_is_stable(users, submissions):
    result = stats.leaderboard(users, submissions, metric='weight')

    # Budi and Sari tie on weight; collection order decides
    assert [e['id'] for e in result['leaderboard']] == [2, 3, 4]
    assert [e['rank'] for e in result['leaderboard']] == [1, 2, 3]
    assert result['total_participants'] == 3


def test_leaderboard_excludes_admins_and_inactive(users, submissions):
    ids = [e['id'] for e in stats.leaderboard(users, submissions)['leaderboard']]
    assert 1 not in ids
    assert 5 not in ids


def test_leaderboard_by_earnings_and_current_rank(users, submissions):
    result = stats.leaderboard(users, submissions, metric='earnings', limit=1, actor_id=4)
    assert [e['id'] for e in result['leaderboard']] == [3]
    assert result['current_user_rank']['rank'] == 3
    assert result['leaderboard_type'] == 'earnings'


def test_leaderboard_rejects_unknown_metric(users, submissions):
    with pytest.raises(ValidationError):
        stats.leaderboard(users, submissions, metric='popularity')


def test_month_over_month(users, submissions):
    comparison = stats.month_over_month(users, submissions, now=NOW)
    assert comparison['current_month']['month'] == '2025-03'
    assert comparison['previous_month']['month'] == '2025-02'
    assert comparison['current_month']['total_submissions'] == 3
    assert comparison['changes']['submissions'] == 200.0
    assert comparison['new_users'] == {'current_month': 1, 'previous_month': 0, 'change': 100}


def test_platform_stats(users, submissions):
    result = stats.platform_stats(users, submissions, points=[{'is_active': True}], months=3, now=NOW)
    assert result['basic_stats']['total_users'] == 4
    assert result['basic_stats']['active_users'] == 3
    assert result['basic_stats']['total_submissions'] == 5
    assert result['basic_stats']['completion_rate'] == 80.0
    assert result['totals']['weight'] == 74
    assert len(result['monthly_growth']) == 3


def test_platform_stats_date_range_is_inclusive(users, submissions):
    result = stats.platform_stats(users, submissions, points=[], now=NOW,
                                  date_from='2025-03-02', date_to='2025-03-03')
    assert result['basic_stats']['total_submissions'] == 2


def test_bad_date_bound(submissions):
    with pytest.raises(ValidationError):
        stats.filter_by_date_range(submissions, date_from='03/02/2025')


def test_waste_type_trends(submissions):
    trends = stats.waste_type_trends(submissions, months=2, now=NOW)
    assert trends[1]['month'] == '2025-03'
    assert trends[1]['waste_types']['Besi'] == {'count': 1, 'weight': 10}
    assert trends[1]['total_submissions'] == 2


def test_admin_dashboard(users, submissions):
    dashboard = stats.admin_dashboard(users, submissions, points=[], now=NOW)
    assert dashboard['users']['total'] == 4
    assert dashboard['submissions']['pending'] == 1
    assert dashboard['submissions']['this_month'] == 3
    assert dashboard['recent_activities'][0]['user_name'] == 'Budi'


@pytest.mark.parametrize('report_type', ['financial', 'waste', 'users'])
def test_generate_report(users, submissions, report_type):
    report = stats.generate_report(report_type, users, submissions)
    assert report['period'] == {'date_from': None, 'date_to': None}
    assert report['summary']


def test_financial_report_totals(users, submissions):
    report = stats.generate_report('financial', users, submissions, date_from='2025-03-01')
    assert report['summary']['total_submissions'] == 3
    assert report['summary']['total_payouts'] == 117000
    assert list(report['by_month']) == ['2025-03']


def test_generate_report_rejects_unknown_type(users, submissions):
    with pytest.raises(ValidationError):
        stats.generate_report('marketing', users, submissions)
