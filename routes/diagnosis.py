"""
Diagnosis Routes

Endpoint for image upload and skin lesion risk screening.
"""
import logging

from flask import Blueprint, request, jsonify, current_app

from core import ErrorKind, PipelineFailed
from utils import base64_to_bytes

logger = logging.getLogger(__name__)

diagnosis_bp = Blueprint('diagnosis', __name__)

# HTTP status per pipeline error kind
ERROR_STATUS = {
    ErrorKind.DECODE: 400,
    ErrorKind.ASSET_UNREACHABLE: 503,
    ErrorKind.ASSET_TOO_SMALL: 503,
    ErrorKind.MODEL_LOAD: 503,
    ErrorKind.SHAPE_MISMATCH: 500,
    ErrorKind.INFERENCE_RUNTIME: 500,
}


@diagnosis_bp.route('/diagnose', methods=['POST'])
def diagnose_image():
    """
    Upload an image and screen it for skin lesion risk.

    Expects:
        - Form data with 'image' file field, or
        - JSON body {"image": "<base64 or data URL>"}

    Returns:
        JSON with:
        - success: bool
        - verdict: risk_level, confidence, predicted_class, findings,
          recommendations, next_steps, probabilities
        - processing_time: Pipeline time in milliseconds
        - error / error_kind / stage: (if failed)
    """
    diagnosis_service = current_app.config['DIAGNOSIS_SERVICE']

    try:
        if 'image' in request.files:
            file = request.files['image']

            if file.filename == '':
                return jsonify({
                    'success': False,
                    'error': 'No file selected'
                }), 400

            result = diagnosis_service.process_uploaded_image(file)
        else:
            payload = request.get_json(silent=True)
            if not isinstance(payload, dict) or 'image' not in payload:
                return jsonify({
                    'success': False,
                    'error': 'No image file provided'
                }), 400

            result = diagnosis_service.diagnose(base64_to_bytes(payload['image']))

        return jsonify(result)

    except ValueError as e:
        # Malformed base64 (400)
        return jsonify({
            'success': False,
            'error': str(e)
        }), 400

    except PipelineFailed as e:
        status = ERROR_STATUS.get(e.kind, 500)
        if status >= 500:
            logger.error('Diagnosis failed at %s: %s', e.stage.value, e.error)
        return jsonify({
            'success': False,
            'error': str(e.error),
            'error_kind': e.kind.value,
            'stage': e.stage.value
        }), status
