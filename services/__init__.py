"""
Services Package

Business logic layer between the HTTP routes and the inference pipeline.
"""
from .diagnosis_service import DiagnosisService

__all__ = ['DiagnosisService']
