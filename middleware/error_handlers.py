"""
Error Handlers

Centralized error handling for the application.
"""
import logging

from flask import jsonify

logger = logging.getLogger(__name__)


def register_error_handlers(app):
    """Register all error handlers with the Flask app."""

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 errors."""
        return jsonify({'error': 'Endpoint not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        """Handle wrong HTTP method."""
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(413)
    def request_entity_too_large(error):
        """Handle file too large errors."""
        limit_mb = app.config['MAX_CONTENT_LENGTH'] // (1024 * 1024)
        return jsonify({
            'success': False,
            'error': f'File too large. Maximum size is {limit_mb} MB.'
        }), 413

    @app.errorhandler(500)
    def internal_error(error):
        """Handle internal server errors."""
        logger.error('Internal server error: %s', getattr(error, 'original_exception', error))
        return jsonify({'error': 'Internal server error'}), 500

    @app.errorhandler(408)
    def request_timeout(error):
        """Handle request timeout errors."""
        return jsonify({
            'success': False,
            'error': 'Request timeout. The operation took too long to complete.'
        }), 408
