"""Storage collaborators.

Every collection (users, submissions, bank_sampah) is loaded and saved as a
whole list of records. Two backends share that contract:

* ``SqliteStore`` keeps one table per collection, each row holding the record
  as a JSON document so unknown fields survive a round trip. ``position``
  keeps collection order.
* ``JsonFileStore`` keeps one ``<collection>.json`` file per collection.

Neither backend locks across requests; concurrent writers on the JSON store
can lose updates.
"""
import json
import logging
import os
import shutil
import sqlite3
import tempfile
from datetime import datetime, timezone

from flask import current_app
from werkzeug.security import generate_password_hash

from .errors import StorageError

logger = logging.getLogger(__name__)

USERS = 'users'
SUBMISSIONS = 'submissions'
BANK_SAMPAH = 'bank_sampah'
COLLECTIONS = (USERS, SUBMISSIONS, BANK_SAMPAH)


def utcnow_iso():
    return datetime.now(timezone.utc).isoformat()


def generate_id(records):
    """Next sequential id for a collection (max id + 1, starting at 1)."""
    return max((record.get('id') or 0 for record in records), default=0) + 1


def _check_collection(name):
    if name not in COLLECTIONS:
        raise StorageError(f'Koleksi tidak dikenal: {name}')


class Store:
    def load(self, collection):
        raise NotImplementedError

    def save(self, collection, records):
        raise NotImplementedError

    def init(self):
        """Create whatever the backend needs before the first load."""


class SqliteStore(Store):
    def __init__(self, path):
        self.path = path

    def get_db(self):
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        return conn

    def init(self):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        try:
            conn = self.get_db()
            try:
                c = conn.cursor()
                for collection in COLLECTIONS:
                    c.execute(f'''CREATE TABLE IF NOT EXISTS {collection} (
                        id INTEGER PRIMARY KEY,
                        position INTEGER NOT NULL,
                        data TEXT NOT NULL
                    )''')
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError(f'Gagal menyiapkan database: {e}') from e

    def load(self, collection):
        _check_collection(collection)
        try:
            conn = self.get_db()
            try:
                c = conn.cursor()
                c.execute(f'SELECT data FROM {collection} ORDER BY position')
                return [json.loads(row['data']) for row in c.fetchall()]
            finally:
                conn.close()
        except (sqlite3.Error, ValueError) as e:
            raise StorageError(f'Gagal memuat {collection}: {e}') from e

    def save(self, collection, records):
        _check_collection(collection)
        try:
            conn = self.get_db()
            try:
                with conn:
                    conn.execute(f'DELETE FROM {collection}')
                    conn.executemany(
                        f'INSERT INTO {collection} (id, position, data) VALUES (?, ?, ?)',
                        [(record['id'], position, json.dumps(record))
                         for position, record in enumerate(records)])
            finally:
                conn.close()
        except (sqlite3.Error, TypeError, KeyError) as e:
            raise StorageError(f'Gagal menyimpan {collection}: {e}') from e
        return True


class JsonFileStore(Store):
    def __init__(self, data_dir):
        self.data_dir = data_dir

    def path_for(self, collection):
        return os.path.join(self.data_dir, f'{collection}.json')

    def init(self):
        os.makedirs(self.data_dir, exist_ok=True)

    def load(self, collection):
        _check_collection(collection)
        path = self.path_for(collection)
        if not os.path.exists(path):
            return []
        try:
            with open(path, encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f'Gagal memuat {path}: {e}') from e

    def save(self, collection, records):
        _check_collection(collection)
        path = self.path_for(collection)
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, suffix='.tmp')
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(records, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StorageError(f'Gagal menyimpan {path}: {e}') from e
        return True

    def backup(self):
        timestamp = datetime.now().strftime('%Y-%m-%dT%H-%M-%S-%f')
        backup_dir = os.path.join(self.data_dir, 'backups', timestamp)
        try:
            os.makedirs(backup_dir, exist_ok=True)
            for collection in COLLECTIONS:
                path = self.path_for(collection)
                if os.path.exists(path):
                    shutil.copy2(path, backup_dir)
        except OSError as e:
            raise StorageError(f'Backup gagal: {e}') from e
        logger.info('Data backup created: %s', backup_dir)
        return backup_dir

    def restore(self, backup_dir):
        if not os.path.isdir(backup_dir):
            raise StorageError(f'Direktori backup tidak ditemukan: {backup_dir}')
        try:
            for collection in COLLECTIONS:
                source = os.path.join(backup_dir, f'{collection}.json')
                if os.path.exists(source):
                    shutil.copy2(source, self.path_for(collection))
        except OSError as e:
            raise StorageError(f'Restore gagal: {e}') from e
        logger.info('Data restored from: %s', backup_dir)
        return True


def create_store(config):
    backend = config.get('STORAGE_BACKEND', 'sqlite')
    if backend == 'sqlite':
        return SqliteStore(config['DATABASE_PATH'])
    if backend == 'json':
        return JsonFileStore(config['DATA_DIR'])
    raise StorageError(f'Backend penyimpanan tidak dikenal: {backend}')


def get_store():
    return current_app.extensions['banksampah.store']


def init_db(store, seed=True):
    store.init()
    if seed:
        insert_initial_data(store)


def insert_initial_data(store):
    # Check if data already exists
    if store.load(USERS):
        return

    now = utcnow_iso()
    users = [
        {
            'id': 1,
            'name': 'Administrator',
            'email': 'admin@ecomarga.com',
            'password': generate_password_hash('admin123'),
            'phone': '+62 812-3456-7890',
            'address': 'Kantor Pusat EcoMarga, Semarang',
            'role': 'admin',
            'is_active': True,
            'ewallet_accounts': {
                'dana': '081234567890',
                'ovo': '081234567890',
                'gopay': '081234567890',
            },
            'admin_notes': [],
            'join_date': '2024-01-01T00:00:00+00:00',
            'created_at': '2024-01-01T00:00:00+00:00',
            'updated_at': now,
        },
        {
            'id': 2,
            'name': 'Budi Santoso',
            'email': 'budi@example.com',
            'password': generate_password_hash('user123'),
            'phone': '081298765432',
            'address': 'Jl. Melati No. 123, Semarang Barat',
            'role': 'user',
            'is_active': True,
            'ewallet_accounts': {'dana': '081298765432'},
            'admin_notes': [],
            'join_date': now,
            'created_at': now,
            'updated_at': now,
        },
    ]

    def review(review_id, user_id, user_name, rating, comment):
        return {
            'id': review_id,
            'user_id': user_id,
            'user_name': user_name,
            'rating': rating,
            'comment': comment,
            'created_at': now,
            'updated_at': now,
        }

    bank_sampah = [
        {
            'id': 1,
            'name': 'Bank Sampah Bersih Sejahtera',
            'address': 'Jl. Pahlawan No. 123, Semarang Tengah',
            'city': 'Semarang',
            'province': 'Jawa Tengah',
            'phone': '+62 24-1234567',
            'email': 'info@bersihsejahtera.com',
            'coordinates': {'latitude': -6.9930, 'longitude': 110.4203},
            'operating_hours': {
                'senin_jumat': '08:00 - 16:00',
                'sabtu': '08:00 - 12:00',
                'minggu': 'Tutup',
            },
            'accepted_waste_types': ['Botol Plastik', 'Kardus', 'Kaleng Aluminium', 'Kertas', 'Kaca'],
            'reviews': [
                review(1, 1, 'Administrator', 5, 'Pelayanan cepat dan ramah'),
                review(2, 2, 'Budi Santoso', 4, 'Jemput tepat waktu'),
            ],
            'rating': 4.5,
            'total_reviews': 2,
            'is_active': True,
            'is_partner': True,
            'photo': '/images/bank-sampah/bs1.jpg',
            'description': 'Bank sampah terpercaya dengan layanan jemput door-to-door',
            'joined_at': '2023-06-15T00:00:00+00:00',
            'created_at': '2023-06-15T00:00:00+00:00',
            'updated_at': now,
        },
        {
            'id': 2,
            'name': 'Bank Sampah Hijau Lestari',
            'address': 'Jl. Pemuda No. 456, Semarang Utara',
            'city': 'Semarang',
            'province': 'Jawa Tengah',
            'phone': '+62 24-7654321',
            'email': 'kontak@hijaulestari.com',
            'coordinates': {'latitude': -6.9660, 'longitude': 110.4103},
            'operating_hours': {
                'senin_jumat': '07:30 - 17:00',
                'sabtu': '07:30 - 13:00',
                'minggu': 'Tutup',
            },
            'accepted_waste_types': [
                'Botol Plastik', 'Kardus', 'Kaleng Aluminium', 'Kertas', 'Besi', 'Plastik Campuran',
            ],
            'reviews': [review(1, 2, 'Budi Santoso', 4, 'Spesialis plastik, harga bagus')],
            'rating': 4.0,
            'total_reviews': 1,
            'is_active': True,
            'is_partner': True,
            'photo': '/images/bank-sampah/bs2.jpg',
            'description': 'Spesialis pengolahan sampah plastik dengan teknologi modern',
            'joined_at': '2023-08-20T00:00:00+00:00',
            'created_at': '2023-08-20T00:00:00+00:00',
            'updated_at': now,
        },
        {
            'id': 3,
            'name': 'Bank Sampah Mandiri Sejahtera',
            'address': 'Jl. Diponegoro No. 789, Semarang Selatan',
            'city': 'Semarang',
            'province': 'Jawa Tengah',
            'phone': '+62 24-9876543',
            'email': 'admin@mandirisejahtera.com',
            'coordinates': {'latitude': -7.0051, 'longitude': 110.4381},
            'operating_hours': {
                'senin_jumat': '08:00 - 15:30',
                'sabtu': '08:00 - 12:00',
                'minggu': 'Tutup',
            },
            'accepted_waste_types': ['Kardus', 'Kertas', 'Kaca', 'Besi'],
            'reviews': [],
            'rating': 0,
            'total_reviews': 0,
            'is_active': True,
            'is_partner': False,
            'photo': '/images/bank-sampah/bs3.jpg',
            'description': 'Bank sampah dengan fokus pada kertas dan logam berkualitas tinggi',
            'joined_at': '2023-04-10T00:00:00+00:00',
            'created_at': '2023-04-10T00:00:00+00:00',
            'updated_at': now,
        },
    ]

    store.save(USERS, users)
    store.save(BANK_SAMPAH, bank_sampah)
    if not store.load(SUBMISSIONS):
        store.save(SUBMISSIONS, [])
    logger.info('Database initialized with seed data')
