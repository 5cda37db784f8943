"""
Shopper Rewards
Flask application factory
"""
import os
import logging
from flask import Flask
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .extensions import db, migrate
from .config import get_config, validate_config
from .utils.cache import init_cache
from .utils.errors import (
    ErrorCode,
    domain_error_response,
    error_response,
    internal_error,
)
from .utils.exceptions import ShopperRewardsError
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(config_name: str = None) -> Flask:
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration environment (development, production, testing)

    Returns:
        Configured Flask application
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    # Setup logging before anything else
    setup_logging()

    validate_config(config_name)

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Initialize caching (Redis with graceful fallback)
    init_cache(app)

    # The feedback form and admin UI are served from other origins
    CORS(
        app,
        resources={r'/api/*': {'origins': app.config['CORS_ORIGINS']}},
        allow_headers=['Content-Type', 'X-Admin-Key'],
    )

    # Register blueprints
    register_blueprints(app)

    # Register CLI commands
    from .commands import init_app as init_commands
    init_commands(app)

    # Register error handlers
    register_error_handlers(app)

    # Health check endpoint
    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'service': 'shopper-rewards'}

    logger.info('Shopper rewards app created (%s)', config_name)
    return app


def register_blueprints(app: Flask) -> None:
    """Register all API and webhook blueprints."""
    from .api.feedback import feedback_bp
    from .api.qr_codes import qr_codes_bp
    from .api.rewards import rewards_bp
    from .webhooks import safaricom_webhook_bp

    # Public feedback submission + admin listing
    app.register_blueprint(feedback_bp, url_prefix='/api/feedback')

    # QR issuance, verification and ledger reporting
    app.register_blueprint(qr_codes_bp, url_prefix='/api/qr-codes')

    # Reward listing and payout dispatch
    app.register_blueprint(rewards_bp, url_prefix='/api/rewards')

    # Safaricom B2C callbacks
    app.register_blueprint(safaricom_webhook_bp, url_prefix='/webhook/safaricom')


def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""

    @app.errorhandler(ShopperRewardsError)
    def handle_domain_error(error):
        return domain_error_response(error)

    @app.errorhandler(400)
    def bad_request(error):
        return error_response('Bad request', ErrorCode.INVALID_REQUEST, 400, log_error=False)

    @app.errorhandler(404)
    def not_found(error):
        return error_response('Not found', ErrorCode.NOT_FOUND, 404, log_error=False)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return error_response('Method not allowed', ErrorCode.INVALID_REQUEST, 405, log_error=False)

    @app.errorhandler(500)
    def server_error(error):
        return internal_error()

    @app.errorhandler(Exception)
    def unhandled_exception(error):
        if isinstance(error, HTTPException):
            return error
        db.session.rollback()
        app.logger.exception('Unhandled error: %s', error)
        return internal_error()
