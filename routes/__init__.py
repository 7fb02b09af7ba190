"""
Routes Package

Blueprint modules for organizing API endpoints.
"""
from .health import health_bp
from .diagnosis import diagnosis_bp

__all__ = ['health_bp', 'diagnosis_bp']
