"""
Image Preprocessing

Turns arbitrary user image bytes into the classifier's input tensor:
center crop the shorter-side square, resize it to 224x224 (the same
pixels a fill-scale then crop would keep), per-channel ImageNet normalization,
planar (CHW) layout with a batch axis.
"""
import io
import math

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import DecodeError
from .runtime import INPUT_SIZE

CHANNEL_MEAN = np.array([0.485, 0.456, 0.406], dtype=np.float32)
CHANNEL_STD = np.array([0.229, 0.224, 0.225], dtype=np.float32)
MAX_IMAGE_PIXELS = 40 * 1000 * 1000


def decode_image(image_bytes, max_pixels=MAX_IMAGE_PIXELS):
    """
    Decode image bytes into an RGB PIL image.

    Alpha and palette information is discarded, not composited.

    Raises:
        DecodeError: Empty, corrupt, unsupported or oversized input
    """
    if not image_bytes:
        raise DecodeError('Empty image payload')

    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.verify()
        # Re-open after verify (verify() leaves the image unusable)
        image = Image.open(io.BytesIO(image_bytes))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, SyntaxError) as e:
        raise DecodeError(f'Corrupted or invalid image file: {str(e)}') from e

    width, height = image.size
    if width == 0 or height == 0:
        raise DecodeError('Image has no pixels')
    # Header size only; pixel data is not decoded yet
    if width * height > max_pixels:
        raise DecodeError(
            f'Image is too large: {width}x{height} exceeds {max_pixels} pixels'
        )

    try:
        image.load()
        if image.mode != 'RGB':
            image = image.convert('RGB')
    except (Image.DecompressionBombError, OSError, ValueError, SyntaxError, MemoryError) as e:
        raise DecodeError(f'Corrupted or invalid image file: {str(e)}') from e

    return image


def crop_window(width, height):
    """
    Source-pixel square that fill-scaling and center cropping would keep.

    Scaling the shorter side to the target and cropping the centered
    target square keeps exactly the centered ``min(width, height)``
    square of the source, so only that square needs resizing.

    Returns:
        tuple: (x, y, side) in source pixels
    """
    side = min(width, height)
    return (
        math.floor((width - side) / 2),
        math.floor((height - side) / 2),
        side,
    )


class ImagePreprocessor:
    """
    Deterministic image -> tensor conversion.

    The planar channel order is a hard contract with the model.
    """

    def __init__(self, target_size=INPUT_SIZE, mean=CHANNEL_MEAN, std=CHANNEL_STD,
                 max_pixels=MAX_IMAGE_PIXELS):
        self.target_size = target_size
        self.mean = np.asarray(mean, dtype=np.float32)
        self.std = np.asarray(std, dtype=np.float32)
        self.max_pixels = max_pixels

    def process(self, image_bytes):
        """
        Preprocess raw image bytes for model input.

        Args:
            image_bytes (bytes): Encoded image (JPEG, PNG, ...)

        Returns:
            np.ndarray: float32 tensor (1, 3, target_size, target_size)

        Raises:
            DecodeError: Input cannot be decoded into finite pixel data
        """
        image = decode_image(image_bytes, self.max_pixels)
        try:
            pixels = np.array(image)
        except MemoryError as e:
            raise DecodeError('Image is too large to decode') from e
        return self.to_tensor(pixels)

    def to_tensor(self, image):
        """
        Crop, resize and normalize an RGB array.

        Args:
            image (np.ndarray): uint8 RGB image (H, W, 3)

        Returns:
            np.ndarray: float32 tensor (1, 3, target_size, target_size)
        """
        height, width = image.shape[:2]
        x, y, side = crop_window(width, height)
        cropped = np.ascontiguousarray(image[y:y + side, x:x + side, :3])

        try:
            resized = cv2.resize(
                cropped, (self.target_size, self.target_size), interpolation=cv2.INTER_LINEAR
            )
        except (cv2.error, MemoryError) as e:
            raise DecodeError(f'Failed to resize image: {str(e)}') from e

        normalized = (resized.astype(np.float32) / 255.0 - self.mean) / self.std

        # (H, W, C) -> (1, C, H, W)
        tensor = np.ascontiguousarray(normalized.transpose(2, 0, 1)[np.newaxis], dtype=np.float32)

        if not np.isfinite(tensor).all():
            raise DecodeError('Image produced non-finite pixel values')
        return tensor
