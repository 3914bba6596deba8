import os

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Waste type pricing (Rp per kg)
WASTE_PRICING = {
    'Botol Plastik': 3000,
    'Kardus': 2000,
    'Kaleng Aluminium': 8000,
    'Kertas': 1500,
    'Besi': 5000,
    'Kaca': 1000,
    'Plastik Campuran': 2500,
}

PLATFORM_FEE_RATE = 0.10

EWALLET_PROVIDERS = ('dana', 'ovo', 'gopay')


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'banksampah-secret-key-2025-v2')

    JWT_SECRET = os.getenv('JWT_SECRET', SECRET_KEY)
    JWT_REFRESH_SECRET = os.getenv('JWT_REFRESH_SECRET', JWT_SECRET)
    JWT_ALGORITHM = 'HS256'
    JWT_EXPIRES_MINUTES = int(os.getenv('JWT_EXPIRES_MINUTES', 60 * 24 * 7))
    JWT_REFRESH_EXPIRES_MINUTES = int(os.getenv('JWT_REFRESH_EXPIRES_MINUTES', 60 * 24 * 30))

    # sqlite or json
    STORAGE_BACKEND = os.getenv('STORAGE_BACKEND', 'sqlite')
    DATABASE_PATH = os.getenv('DATABASE_PATH', os.path.join(BASE_DIR, 'banksampah_complete.db'))
    DATA_DIR = os.getenv('DATA_DIR', os.path.join(BASE_DIR, 'data'))
    SEED_DATA = os.getenv('SEED_DATA', 'true').lower() == 'true'

    UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER', os.path.join(BASE_DIR, 'uploads', 'submissions'))
    ALLOWED_IMAGE_EXTENSIONS = {'jpg', 'jpeg', 'png'}
    MAX_IMAGES_PER_SUBMISSION = 5
    MAX_FILE_SIZE = int(os.getenv('MAX_FILE_SIZE', 5 * 1024 * 1024))
    MAX_CONTENT_LENGTH = MAX_FILE_SIZE * MAX_IMAGES_PER_SUBMISSION + 1024 * 1024

    LOG_DIR = os.getenv('LOG_DIR', os.path.join(BASE_DIR, 'logs'))
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    WASTE_PRICING = dict(WASTE_PRICING)
    PLATFORM_FEE_RATE = float(os.getenv('PLATFORM_FEE_RATE', PLATFORM_FEE_RATE))
    MIN_SUBMISSION_WEIGHT = 0.1
    MAX_SUBMISSION_WEIGHT = 100

    DEBUG = False
    TESTING = False


class DevelopmentConfig(Config):
    DEBUG = True


class ProductionConfig(Config):
    pass


class TestingConfig(Config):
    TESTING = True
    STORAGE_BACKEND = 'json'
    JWT_SECRET = 'test-secret'
    JWT_REFRESH_SECRET = 'test-refresh-secret'
    LOG_LEVEL = 'WARNING'


config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
}


def get_config(name=None):
    name = name or os.getenv('FLASK_ENV', 'development')
    return config_by_name.get(name, DevelopmentConfig)
