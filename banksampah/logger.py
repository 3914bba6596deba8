import logging
import os
import time
from logging.handlers import TimedRotatingFileHandler

from flask import g, request

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'


def _attached_log_dir(root):
    for handler in root.handlers:
        if isinstance(handler, TimedRotatingFileHandler):
            return os.path.dirname(handler.baseFilename)
    return None


def setup_logging(app):
    """Attach rotating file handlers (app.log, error.log) to the package logger.

    Handlers left by an app with a different LOG_DIR are closed and replaced.
    """
    root = logging.getLogger('banksampah')
    root.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    log_dir = os.path.abspath(app.config['LOG_DIR'])
    if _attached_log_dir(root) != log_dir:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()

        formatter = logging.Formatter(LOG_FORMAT)
        os.makedirs(log_dir, exist_ok=True)

        app_handler = TimedRotatingFileHandler(
            os.path.join(log_dir, 'app.log'), when='midnight', backupCount=14, encoding='utf-8')
        app_handler.setFormatter(formatter)
        root.addHandler(app_handler)

        error_handler = TimedRotatingFileHandler(
            os.path.join(log_dir, 'error.log'), when='midnight', backupCount=30, encoding='utf-8')
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        root.addHandler(error_handler)

        if app.debug:
            console = logging.StreamHandler()
            console.setFormatter(formatter)
            root.addHandler(console)

    request_logger = logging.getLogger('banksampah.http')

    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def log_request(response):
        started = g.pop('request_started', None)
        elapsed = (time.perf_counter() - started) * 1000 if started else 0.0
        actor = g.get('actor')
        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        request_logger.log(
            level, 'HTTP %s %s %s %.1fms user=%s',
            request.method, request.path, response.status_code, elapsed,
            actor.id if actor else None)
        return response
