"""
Flask REST API for Skin Lesion Risk Screening
"""
import logging

from flask import Flask
from flask_cors import CORS

import config
from services import DiagnosisService
from middleware import register_error_handlers
from routes import health_bp, diagnosis_bp


def create_app(diagnosis_service=None, settings=config):
    """
    Create the Flask application.

    Args:
        diagnosis_service (DiagnosisService): Service to serve, built from
            ``settings`` when omitted
        settings (module): Configuration constants

    Returns:
        Flask: Configured application
    """
    app = Flask(__name__)

    app.config['MAX_CONTENT_LENGTH'] = settings.MAX_CONTENT_LENGTH

    # CORS - Allow requests from the front-end
    CORS(app, resources={r'/api/*': {'origins': list(settings.CORS_ORIGINS)}})

    if diagnosis_service is None:
        diagnosis_service = DiagnosisService.from_settings(settings)
        if settings.PRELOAD_MODEL:
            diagnosis_service.initialize_model()

    # Store service in app config for access in routes
    app.config['DIAGNOSIS_SERVICE'] = diagnosis_service

    # Register blueprints
    app.register_blueprint(health_bp, url_prefix='/api')
    app.register_blueprint(diagnosis_bp, url_prefix='/api')

    # Register error handlers
    register_error_handlers(app)

    return app


if __name__ == '__main__':
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    app = create_app()

    print("\n" + "="*60)
    print("Skin Lesion Risk Screening API - Local Development Server")
    print("="*60)
    print(f"Server: http://localhost:5000")
    print(f"Health: http://localhost:5000/api/health")
    print(f"Diagnose: POST http://localhost:5000/api/diagnose")
    print("="*60 + "\n")

    try:
        app.run(debug=True, host='127.0.0.1', port=5000)
    except KeyboardInterrupt:
        print("\n✓ Server stopped by user")
    finally:
        app.config['DIAGNOSIS_SERVICE'].shutdown()
