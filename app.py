import stripe # Stripe Python library for payment processing.
from flask import Flask, jsonify, request # The main Flask class and request helpers.
from werkzeug.exceptions import HTTPException # Base class of abort()-style errors.
from config import Config # Import the application's configuration class.
from extensions import db, migrate # Import initialized extensions.


# Application Factory Function
def create_app(config_class=Config):
    """
    Application factory for creating and configuring the Flask app.

    Args:
        config_class (type): Configuration class to load (tests pass a TestConfig subclass).
    """
    app = Flask(__name__, instance_relative_config=True)

    # Load configuration from the Config object (defined in config.py).
    app.config.from_object(config_class)
    app.logger.setLevel(app.config['LOG_LEVEL'])

    # --- Initialize Stripe ---
    # Set the Stripe API secret key used by every server-side Stripe call.
    stripe.api_key = app.config['STRIPE_SECRET_KEY']

    # --- Initialize Flask Extensions ---
    # SQLAlchemy points at the Supabase Postgres database.
    db.init_app(app)
    # Flask-Migrate manages the billing tables' schema.
    migrate.init_app(app, db)

    # Models must be imported so SQLAlchemy (and Alembic autogenerate) know the tables.
    import models # noqa: F401

    # --- Import and Register Blueprints ---
    from routes.main import main_bp
    from routes.billing import billing_bp
    from routes.webhooks import webhooks_bp
    from routes.accessibility import accessibility_bp

    app.register_blueprint(main_bp)          # /health and the landing page.
    app.register_blueprint(billing_bp)       # /api/stripe/...
    app.register_blueprint(webhooks_bp)      # /api/webhooks/stripe
    app.register_blueprint(accessibility_bp) # /accessibility/...

    register_request_hooks(app)
    register_error_handlers(app)
    log_startup_checks(app)

    return app # Return the configured Flask app instance.


def register_request_hooks(app):
    """Request logging and CORS headers for the frontend origin(s)."""

    @app.before_request
    def log_request():
        app.logger.info(f"{request.method} {request.path}")

    @app.after_request
    def add_cors_headers(response):
        # The SPA runs on its own origin and calls /api/* with credentials.
        origin = request.headers.get('Origin')
        if request.path.startswith('/api/') and origin and origin in app.config['CORS_ORIGINS']:
            response.headers['Access-Control-Allow-Origin'] = origin
            response.headers['Access-Control-Allow-Credentials'] = 'true'
            response.headers['Access-Control-Allow-Headers'] = 'Content-Type, Authorization'
            response.headers['Access-Control-Allow-Methods'] = 'GET, POST, PUT, OPTIONS'
            response.vary.add('Origin')
        return response


def register_error_handlers(app):
    """JSON responses for unknown endpoints and unhandled exceptions."""

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Endpoint not found'}), 404

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        # abort(400) and friends keep their own status and body.
        if isinstance(error, HTTPException):
            return error
        app.logger.error(f"Unhandled error on {request.method} {request.path}: {error}", exc_info=True)
        message = str(error) if app.config['APP_ENV'] == 'development' else 'Something went wrong'
        return jsonify({'error': 'Internal server error', 'message': message}), 500


def log_startup_checks(app):
    """Warns about missing service configuration at startup."""
    app.logger.info(f"Supabase connection: {'Configured' if app.config.get('SUPABASE_URL') else 'Missing URL'}")
    app.logger.info(f"Environment: {app.config['APP_ENV']}")
    if not app.config.get('STRIPE_SECRET_KEY'):
        app.logger.warning("STRIPE_SECRET_KEY not found in environment")
    if not app.config.get('STRIPE_WEBHOOK_SECRET'):
        app.logger.warning("STRIPE_WEBHOOK_SECRET not found in environment")


# This block allows running the Flask development server directly using `python app.py`.
if __name__ == '__main__':
    app = create_app() # Create an app instance using the factory.
    app.run(port=app.config['PORT'], debug=app.config['APP_ENV'] == 'development')
