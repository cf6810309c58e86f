"""In-memory volumetric images."""

from .image import Image, IDENTITY_DIRECTION

__all__ = ['Image', 'IDENTITY_DIRECTION']
