import pytest

from banksampah import create_app
from banksampah.auth import Actor
from banksampah.pricing import PricingTable

ADMIN_LOGIN = {'email': 'admin@ecomarga.com', 'password': 'admin123'}
USER_LOGIN = {'email': 'budi@example.com', 'password': 'user123'}


def make_overrides(tmp_path, **extra):
    overrides = {
        'DATA_DIR': str(tmp_path / 'data'),
        'DATABASE_PATH': str(tmp_path / 'banksampah_test.db'),
        'LOG_DIR': str(tmp_path / 'logs'),
        'UPLOAD_FOLDER': str(tmp_path / 'uploads'),
    }
    overrides.update(extra)
    return overrides


@pytest.fixture
def app(tmp_path):
    return create_app('testing', overrides=make_overrides(tmp_path))


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return app.extensions['banksampah.store']


def login(client, credentials):
    response = client.post('/api/auth/login', json=credentials)
    assert response.status_code == 200, response.get_json()
    return {'Authorization': 'Bearer %s' % response.get_json()['accessToken']}


@pytest.fixture
def admin_headers(client):
    return login(client, ADMIN_LOGIN)


@pytest.fixture
def user_headers(client):
    return login(client, USER_LOGIN)


@pytest.fixture
def pricing():
    return PricingTable()


@pytest.fixture
def admin():
    return Actor(id=1, role='admin', email='admin@ecomarga.com', name='Administrator')


@pytest.fixture
def budi():
    return Actor(id=2, role='user', email='budi@example.com', name='Budi Santoso')


@pytest.fixture
def budi_user():
    return {
        'id': 2,
        'name': 'Budi Santoso',
        'email': 'budi@example.com',
        'role': 'user',
        'is_active': True,
        'ewallet_accounts': {'dana': '081298765432'},
    }
