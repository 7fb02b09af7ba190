"""
Utility Functions for Image Payloads

Provides helper functions for:
- Base64 decoding of JSON image uploads
"""
import base64
import binascii


def base64_to_bytes(base64_string):
    """
    Convert a base64 string (optionally a ``data:`` URL) to raw bytes.

    Args:
        base64_string (str): Base64 encoded image string

    Returns:
        bytes: Decoded image data

    Raises:
        ValueError: If the string is not valid base64
    """
    if not isinstance(base64_string, str) or not base64_string.strip():
        raise ValueError('Image payload must be a non-empty base64 string')

    # Strip "data:image/png;base64," prefix sent by browsers
    if base64_string.startswith('data:'):
        _, _, base64_string = base64_string.partition(',')

    try:
        return base64.b64decode(base64_string, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f'Invalid base64 image payload: {str(e)}') from e
