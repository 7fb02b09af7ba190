"""
Health Check Routes

Endpoints for checking API health and model status.
"""
import logging

from flask import Blueprint, jsonify, current_app

logger = logging.getLogger(__name__)

health_bp = Blueprint('health', __name__)


@health_bp.route('/health', methods=['GET'])
def health_check():
    """
    Health check endpoint.

    Returns:
        JSON response with status and model loading state
    """
    logger.debug('Health check endpoint called')
    diagnosis_service = current_app.config['DIAGNOSIS_SERVICE']

    response_data = {
        'status': 'healthy',
        'model_loaded': diagnosis_service.is_model_loaded(),
        'device': diagnosis_service.get_device_info(),
        'backend': diagnosis_service.get_backend(),
    }

    return jsonify(response_data)
