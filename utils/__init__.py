"""
Utility Modules

Helper functions for request payloads.
"""
from .image_utils import base64_to_bytes

__all__ = [
    'base64_to_bytes',
]
