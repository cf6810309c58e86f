"""
oxels - volumetric image I/O.

Loads and saves 3D scientific images in the MetaImage format (``.mha`` and
``.mhd`` + ``.raw``/``.zraw``), for all ten MetaImage numeric element types.

Main Components:
    image: ``Image``, an owned voxel buffer plus geometry
    io: MetaImage header and payload codecs
    element_types: MetaImage element type table
    exceptions: Exception hierarchy for error handling
    config: Configuration management with environment support
"""

__version__ = "0.1.0"

from .element_types import ElementType
from .image import Image, IDENTITY_DIRECTION
from .types import ImageView, FilePath, Vector3, Direction, Dimensions
from .io import load_meta_image, parse_header, save_meta_image

from .exceptions import (
    OxelsError,
    ConfigurationError,
    MetaImageError,
    MissingFieldError,
    HeaderParseError,
    UnsupportedElementTypeError,
    BufferSizeMismatchError,
    DecompressionError,
    DataIOError,
)

from .config import get_config, reset_config, configure_logging, ConfigManager, OxelsConfig

__all__ = [
    # Loading and saving
    'load_meta_image',
    'save_meta_image',
    'parse_header',

    # Images
    'Image',
    'ImageView',
    'ElementType',
    'IDENTITY_DIRECTION',

    # Type definitions
    'FilePath',
    'Vector3',
    'Direction',
    'Dimensions',

    # Exceptions
    'OxelsError',
    'ConfigurationError',
    'MetaImageError',
    'MissingFieldError',
    'HeaderParseError',
    'UnsupportedElementTypeError',
    'BufferSizeMismatchError',
    'DecompressionError',
    'DataIOError',

    # Configuration
    'get_config',
    'reset_config',
    'configure_logging',
    'ConfigManager',
    'OxelsConfig',

    # Package metadata
    '__version__',
]
