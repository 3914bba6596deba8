import logging
import os
from datetime import datetime

from flask import Flask, current_app, jsonify, send_from_directory

from . import __version__
from .config import get_config
from .errors import register_error_handlers
from .logger import setup_logging
from .pricing import get_pricing
from .routes import register_blueprints
from .storage import create_store, init_db

logger = logging.getLogger(__name__)


def create_app(config_name=None, overrides=None):
    app = Flask(__name__)
    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)

    setup_logging(app)
    register_error_handlers(app)

    # Setup database
    store = create_store(app.config)
    app.extensions['banksampah.store'] = store
    init_db(store, seed=app.config['SEED_DATA'])

    register_blueprints(app)
    register_meta_routes(app)

    logger.info('Bank Sampah API %s started (storage=%s)', __version__, app.config['STORAGE_BACKEND'])
    return app


def register_meta_routes(app):
    @app.route('/')
    def index():
        return jsonify({
            'success': True,
            'message': 'Bank Sampah API',
            'version': __version__,
        })

    @app.route('/health')
    def health():
        return jsonify({
            'status': 'OK',
            'timestamp': datetime.now().isoformat(),
            'version': __version__,
            'storage': current_app.config['STORAGE_BACKEND'],
        })

    @app.route('/api/test')
    def test_api():
        return jsonify({
            'status': 'success',
            'message': 'API Bank Sampah berjalan dengan baik!',
            'timestamp': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
            'endpoints': {
                'auth': '/api/auth',
                'users': '/api/users',
                'submissions': '/api/submissions',
                'bank_sampah': '/api/bank-sampah',
                'stats': '/api/stats',
                'admin': '/api/admin',
                'waste_types': '/api/waste-types',
            }
        })

    @app.route('/api/waste-types')
    def get_waste_types():
        pricing = get_pricing()
        return jsonify({
            'success': True,
            'waste_types': pricing.as_list(),
            'platform_fee_rate': pricing.fee_rate,
        })

    @app.route('/uploads/submissions/<path:filename>')
    def uploaded_image(filename):
        return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename)


def main():
    host = os.getenv('HOST', '0.0.0.0')
    port = int(os.getenv('PORT', 5000))
    try:
        app = create_app()
        print("=" * 70)
        print("🎉 BANK SAMPAH - MARKETPLACE API")
        print("=" * 70)
        print("✅ Penyimpanan berhasil diinisialisasi! (%s)" % app.config['STORAGE_BACKEND'])
        print(f"🌐 Aplikasi berjalan di: http://localhost:{port}")
        print("")
        print("🔑 Login Demo:")
        print("   Admin: admin@ecomarga.com / admin123")
        print("   User:  budi@example.com / user123")
        print("")
        print("🚀 API Endpoints utama:")
        print("   /api/auth         - Registrasi, login, token")
        print("   /api/users        - Profil, e-wallet, riwayat")
        print("   /api/submissions  - Penjemputan sampah")
        print("   /api/bank-sampah  - Direktori & review bank sampah")
        print("   /api/stats        - Statistik & leaderboard")
        print("   /api/admin        - Dashboard & laporan admin")
        print("=" * 70)
        print("🛑 Tekan Ctrl+C untuk menghentikan")
        print("=" * 70)

        # Start the server
        app.run(debug=app.config['DEBUG'], host=host, port=port)

    except Exception as e:
        print(f"❌ Error: {e}")
        raise


if __name__ == '__main__':
    main()
