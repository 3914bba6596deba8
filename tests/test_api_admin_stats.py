import pytest

from banksampah.storage import USERS

from .conftest import USER_LOGIN, make_overrides

PAYLOAD = {
    'waste_type': 'Kardus',
    'estimated_weight': 5,
    'ewallet_type': 'dana',
    'pickup_address': 'Jl. Melati No. 123, Semarang Barat',
    'pickup_schedule': '2025-01-10T09:00:00',
}


@pytest.fixture
def completed_submission(client, user_headers, admin_headers):
    sid = client.post('/api/submissions', headers=user_headers, json=PAYLOAD).get_json()['submission']['id']
    for body in ({'status': 'confirmed'}, {'status': 'picked_up'}, {'status': 'verified', 'actual_weight': 4},
                 {'status': 'completed'}):
        response = client.patch(f'/api/admin/submissions/{sid}', headers=admin_headers, json=body)
        assert response.status_code == 200, response.get_json()
    return sid


@pytest.mark.parametrize('url', [
    '/api/admin/dashboard',
    '/api/admin/users',
    '/api/admin/submissions',
    '/api/admin/reports/financial',
])
def test_admin_routes_reject_users(client, user_headers, url):
    assert client.get(url, headers=user_headers).status_code == 403
    assert client.get(url).status_code == 401


def test_dashboard(client, admin_headers, completed_submission):
    dashboard = client.get('/api/admin/dashboard', headers=admin_headers).get_json()['dashboard']
    assert dashboard['users']['total'] == 1
    assert dashboard['submissions']['completed'] == 1
    assert dashboard['financial']['total_revenue'] == 800
    assert dashboard['financial']['total_payouts'] == 7200


def test_user_listing_and_detail(client, admin_headers):
    body = client.get('/api/admin/users?role=user', headers=admin_headers).get_json()
    assert [u['email'] for u in body['users']] == ['budi@example.com']
    assert all('password' not in u for u in body['users'])

    detail = client.get('/api/admin/users/2', headers=admin_headers).get_json()
    assert detail['user']['name'] == 'Budi Santoso'
    assert detail['stats']['total_submissions'] == 0
    assert client.get('/api/admin/users/99', headers=admin_headers).status_code == 404


def test_deactivate_user_blocks_access(client, admin_headers, user_headers, store):
    response = client.patch('/api/admin/users/2/status', headers=admin_headers,
                            json={'is_active': False, 'reason': 'Laporan penipuan'})
    assert response.status_code == 200

    budi = next(u for u in store.load(USERS) if u['id'] == 2)
    assert budi['admin_notes'][-1]['action'] == 'deactivated'
    assert budi['admin_notes'][-1]['reason'] == 'Laporan penipuan'
    assert budi['admin_notes'][-1]['admin_id'] == 1
    assert client.get('/api/users/profile', headers=user_headers).status_code == 401
    assert client.post('/api/auth/login', json=USER_LOGIN).status_code == 401

    client.patch('/api/admin/users/2/status', headers=admin_headers, json={'is_active': True})
    assert client.post('/api/auth/login', json=USER_LOGIN).status_code == 200
    assert len(next(u for u in store.load(USERS) if u['id'] == 2)['admin_notes']) == 2


def test_admin_cannot_deactivate_self(client, admin_headers):
    response = client.patch('/api/admin/users/1/status', headers=admin_headers, json={'is_active': False})
    assert response.status_code == 400


def test_submission_listing_is_enriched(client, admin_headers, completed_submission):
    body = client.get('/api/admin/submissions?status=completed&waste_type=Kardus', headers=admin_headers).get_json()
    assert body['pagination']['total'] == 1
    assert body['submissions'][0]['user_name'] == 'Budi Santoso'
    assert body['submissions'][0]['user_email'] == 'budi@example.com'

    assert client.get('/api/admin/submissions?user_id=1', headers=admin_headers).get_json()['submissions'] == []


def test_submission_update_rules(client, admin_headers, user_headers):
    sid = client.post('/api/submissions', headers=user_headers, json=PAYLOAD).get_json()['submission']['id']
    url = f'/api/admin/submissions/{sid}'

    annotated = client.patch(url, headers=admin_headers, json={'admin_notes': 'Telepon dulu'})
    assert annotated.get_json()['submission']['admin_notes'] == 'Telepon dulu'

    # weight changes only come with a weighing status
    assert client.patch(url, headers=admin_headers, json={'actual_weight': 3}).status_code == 400
    assert client.patch(url, headers=admin_headers, json={}).status_code == 400

    client.patch(url, headers=admin_headers, json={'status': 'cancelled'})
    assert client.patch(url, headers=admin_headers, json={'admin_notes': 'lagi'}).status_code == 409


def test_completed_submission_is_frozen(client, admin_headers, completed_submission):
    url = f'/api/admin/submissions/{completed_submission}'
    response = client.patch(url, headers=admin_headers, json={'status': 'verified', 'actual_weight': 10})
    assert response.status_code == 409


def test_reports(client, admin_headers, completed_submission):
    body = client.get('/api/admin/reports/financial', headers=admin_headers).get_json()
    assert body['report']['summary']['total_payouts'] == 7200

    pdf = client.get('/api/admin/reports/waste?format=pdf', headers=admin_headers)
    assert pdf.status_code == 200
    assert pdf.mimetype == 'application/pdf'
    assert pdf.data.startswith(b'%PDF')

    assert client.get('/api/admin/reports/marketing', headers=admin_headers).status_code == 400
    assert client.get('/api/admin/reports/waste?format=xls', headers=admin_headers).status_code == 400
    assert client.get('/api/admin/reports/users?date_from=kemarin', headers=admin_headers).status_code == 400


def test_user_stats(client, user_headers, completed_submission):
    stats = client.get('/api/stats/user', headers=user_headers).get_json()['stats']
    assert stats['basic_stats']['total_earnings'] == 7200
    assert stats['environmental_impact']['co2_kg'] == 10
    assert len(stats['monthly_earnings']) == 6


def test_platform_stats_with_chart(client, user_headers, completed_submission):
    body = client.get('/api/stats/platform?months=3&chart=1', headers=user_headers).get_json()
    assert body['stats']['totals']['weight'] == 4
    assert len(body['stats']['monthly_growth']) == 3
    assert body['chart']


def test_leaderboard(client, user_headers, completed_submission):
    body = client.get('/api/stats/leaderboard?type=earnings', headers=user_headers).get_json()
    assert body['leaderboard'][0]['id'] == 2
    assert body['current_user_rank']['rank'] == 1
    assert body['total_participants'] == 1
    assert client.get('/api/stats/leaderboard?type=likes', headers=user_headers).status_code == 400


def test_trends_and_comparison(client, user_headers, completed_submission):
    trends = client.get('/api/stats/trends/waste-types?months=2', headers=user_headers).get_json()
    assert len(trends['trends']) == 2
    assert trends['trends'][-1]['waste_types']['Kardus']['weight'] == 4

    comparison = client.get('/api/stats/comparison', headers=user_headers).get_json()['comparison']
    assert comparison['current_month']['total_submissions'] == 1
    assert comparison['changes']['submissions'] == 100


def test_sqlite_backend_end_to_end(tmp_path):
    from banksampah import create_app

    app = create_app('testing', overrides=make_overrides(tmp_path, STORAGE_BACKEND='sqlite'))
    client = app.test_client()
    token = client.post('/api/auth/login', json=USER_LOGIN).get_json()['accessToken']
    headers = {'Authorization': f'Bearer {token}'}

    assert client.post('/api/submissions', headers=headers, json=PAYLOAD).status_code == 201
    assert client.get('/api/submissions', headers=headers).get_json()['pagination']['total'] == 1
    assert (tmp_path / 'banksampah_test.db').exists()
