"""
Middleware Package

JSON error handlers for HTTP-level failures (404, 405, 408, 413, 500).
"""
from .error_handlers import register_error_handlers

__all__ = ['register_error_handlers']
