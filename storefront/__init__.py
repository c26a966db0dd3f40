"""Flask application factory."""
import os

from flask import Flask, jsonify

from storefront.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Sentry error tracking in production
    if os.getenv('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Email
    from storefront.services.email_service import init_mail
    init_mail(app)

    # Redis cache
    from storefront.services.cache_service import init_cache
    init_cache(app)

    # Domain events and their email receivers
    from storefront.services.events import init_events
    from storefront.services.notification_service import init_notifications
    init_events(app)
    init_notifications(app)

    # Prometheus metrics
    from storefront.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: trust the reverse proxy headers
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Database
    init_db(app)

    # Exchange rate holder (needs cache and database)
    from storefront.services.currency_service import init_currency
    init_currency(app)

    # Caller identity before each request
    from storefront.middleware import load_identity

    @app.before_request
    def before_request_handler():
        load_identity()

    # Error Handlers
    from storefront.exceptions import StoreError
    from werkzeug.exceptions import HTTPException

    @app.errorhandler(StoreError)
    def handle_store_error(error):
        """Domain errors carry their own status and user-readable message."""
        if error.status_code >= 500:
            app.logger.error(f"StoreError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"StoreError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'error', 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from storefront.blueprints.auth import auth_bp
    from storefront.blueprints.cart import cart_bp
    from storefront.blueprints.catalog import catalog_bp
    from storefront.blueprints.checkout import checkout_bp
    from storefront.blueprints.admin import admin_bp
    from storefront.blueprints.metrics import metrics_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(checkout_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(metrics_bp)

    # CLI commands
    from storefront.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
