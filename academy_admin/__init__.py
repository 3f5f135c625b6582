"""Flask application factory."""
from flask import Flask, request, jsonify
from flask_wtf.csrf import CSRFProtect, CSRFError
from werkzeug.exceptions import HTTPException
import logging
import os

from academy_admin.database import init_db
from academy_admin.exceptions import AcademyError, ConfigurationError


def _configure_logging(app):
    level = logging.DEBUG if app.debug else logging.INFO
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=level,
            format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
        )
    logging.getLogger('academy_admin').setLevel(level)


def create_app(config_object='config.Config', overrides=None):
    """
    Create and configure the Flask application.

    Raises:
        ConfigurationError: DATABASE_URL or BACKEND_API_KEY is missing
    """
    app = Flask(__name__)
    app.config.from_object(config_object)
    if overrides:
        app.config.update(overrides)

    _configure_logging(app)

    from config import missing_settings
    missing = missing_settings(app.config)
    if missing:
        app.logger.critical(f"Missing required configuration: {', '.join(missing)}")
        raise ConfigurationError(missing)
    app.config['SQLALCHEMY_DATABASE_URI'] = app.config['DATABASE_URL']

    # Initialize CSRF protection
    CSRFProtect(app)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        return jsonify({'status': 'error', 'message': 'Session expired. Reload the page.'}), 400

    # Initialize Sentry for error tracking in production
    sentry_dsn = app.config.get('SENTRY_DSN')
    if sentry_dsn and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache and the session tenant config store
    from academy_admin.services.cache_service import init_cache
    init_cache(app)

    # Prometheus metrics instrumentation
    from academy_admin.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: Enable ProxyFix for HTTPS behind a reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Database, tenant backend and audit emitter
    init_db(app)

    from academy_admin.services.backend import init_backend
    from academy_admin.services.audit_service import init_audit
    backend = init_backend(app)
    init_audit(app, backend)

    # Actor, tenant and access decision for each request
    from academy_admin.middleware import load_access_context, enforce_access_gate, close_access_context

    @app.before_request
    def before_request_handler():
        load_access_context()
        enforce_access_gate()

    @app.teardown_request
    def teardown_request_handler(exception=None):
        close_access_context(exception)

    # Error Handlers
    @app.errorhandler(AcademyError)
    def handle_academy_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"AcademyError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"AcademyError [{error.status_code}] {request.path}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'error', 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from academy_admin.blueprints.auth import auth_bp
    from academy_admin.blueprints.main import main_bp
    from academy_admin.blueprints.admin import admin_bp
    from academy_admin.blueprints.metrics import metrics_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(main_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from academy_admin.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
