"""File format support for oxels."""

from .meta_image import load_meta_image, parse_header, save_meta_image

__all__ = ['load_meta_image', 'parse_header', 'save_meta_image']
