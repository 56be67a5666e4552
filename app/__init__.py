"""Flask application factory."""
import logging
import traceback

from flask import Flask, jsonify
from app.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )

    # Initialize database
    init_db(app)

    # Error Handlers
    from app.exceptions import PropertyError

    @app.errorhandler(PropertyError)
    def handle_property_error(error):
        """Handle typed application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"PropertyError [{error.status_code}] {error.error_id}: {error.message} (cause: {error.__cause__!r})")
        else:
            app.logger.warning(f"PropertyError [{error.status_code}] {error.error_id}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'id': 'api.not_found', 'message': 'Not Found'}), 404

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        return jsonify({'status': 'error', 'id': 'api.method_not_allowed', 'message': 'Method Not Allowed'}), 405

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'id': 'app.internal_error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from app.blueprints.custom_profile_attributes import cpa_bp
    app.register_blueprint(cpa_bp)

    # Register CLI commands
    from app.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
