import logging
import sys

from flask import Flask, request, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_socketio import SocketIO
from flask_cors import CORS
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from birdie.config import config

db = SQLAlchemy()
socketio = SocketIO()


def _parse_allowed_origins(raw_origins):
    if not raw_origins:
        return '*'

    if isinstance(raw_origins, (list, tuple, set)):
        cleaned = [origin for origin in raw_origins if origin]
        return cleaned or '*'

    raw_text = str(raw_origins).strip()
    if not raw_text or raw_text == '*':
        return '*'

    origins = [origin.strip() for origin in raw_text.split(',') if origin.strip()]
    return origins or '*'


_LOG_HANDLER_NAME = 'birdie-console'


def _configure_logging(app):
    """Send every ``birdie.*`` module logger to one console handler."""
    level = str(app.config.get('LOG_LEVEL') or 'INFO').upper()
    logger = logging.getLogger('birdie')
    logger.setLevel(level)

    handler = next((h for h in logger.handlers if h.get_name() == _LOG_HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(_LOG_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        ))
        logger.addHandler(handler)
    handler.setLevel(level)
    # app.logger (birdie.app) propagates here; Flask skips its default handler.
    app.logger.setLevel(level)


def create_app(config_name='development'):
    app = Flask(__name__)
    app.config.from_object(config[config_name])
    _configure_logging(app)

    allowed_origins = _parse_allowed_origins(app.config.get('CORS_ALLOWED_ORIGINS', '*'))
    if str(config_name).strip().lower() == 'production':
        secret_key = str(app.config.get('SECRET_KEY') or '').strip()
        if not secret_key or secret_key == 'dev-secret-key-change-in-prod':
            raise RuntimeError('SECRET_KEY must be set to a non-default value in production')
        if allowed_origins == '*':
            raise RuntimeError('CORS_ALLOWED_ORIGINS must be explicitly set in production')

    db.init_app(app)
    socketio.init_app(
        app,
        cors_allowed_origins=allowed_origins,
        async_mode=app.config.get('SOCKETIO_ASYNC_MODE', 'threading'),
    )
    CORS(app, resources={r'/api/*': {'origins': allowed_origins}})

    @app.before_request
    def _enforce_origin_for_mutating_api_requests():
        if request.method in {'GET', 'HEAD', 'OPTIONS'}:
            return None
        if not request.path.startswith('/api/'):
            return None

        origin = str(request.headers.get('Origin') or '').strip()
        if not origin:
            return None

        configured_origins = _parse_allowed_origins(
            app.config.get('CORS_ALLOWED_ORIGINS', '*')
        )
        if configured_origins != '*' and origin not in configured_origins:
            return jsonify({'error': 'Invalid request origin'}), 403
        return None

    from birdie.routes.groups import groups_bp
    from birdie.routes.sessions import sessions_bp

    app.register_blueprint(groups_bp, url_prefix='/api/groups')
    app.register_blueprint(sessions_bp, url_prefix='/api/sessions')

    @app.route('/api/health', methods=['GET'])
    def health():
        try:
            db.session.execute(text('SELECT 1'))
        except SQLAlchemyError:
            app.logger.exception('Database health check failed')
            return jsonify({'status': 'error', 'database': 'unreachable'}), 503
        return jsonify({'status': 'ok', 'database': 'ok'})

    with app.app_context():
        from birdie import models  # noqa: F401
        db.create_all()

    return app
