"""
MetaImage element types.

Maps the ``ElementType`` header tokens to numpy dtypes and byte widths.
Voxels are always interpreted in native byte order.
"""

from enum import Enum

import numpy as np

from .exceptions import UnsupportedElementTypeError

# Tokens older MetaIO writers emit; both are 32-bit in MetaIO.
_TOKEN_ALIASES = {
    "MET_LONG": "MET_INT",
    "MET_ULONG": "MET_UINT",
}


class ElementType(Enum):
    """Enumeration of supported MetaImage element types."""

    INT8 = "MET_CHAR"
    UINT8 = "MET_UCHAR"
    INT16 = "MET_SHORT"
    UINT16 = "MET_USHORT"
    INT32 = "MET_INT"
    UINT32 = "MET_UINT"
    INT64 = "MET_LONG_LONG"
    UINT64 = "MET_ULONG_LONG"
    FLOAT32 = "MET_FLOAT"
    FLOAT64 = "MET_DOUBLE"

    @property
    def token(self) -> str:
        """Header token for this element type."""
        return self.value

    def size(self) -> int:
        """Return the size in bytes for this element type."""
        return self.to_numpy_dtype().itemsize

    def to_numpy_type(self):
        """Convert to NumPy scalar type."""
        type_map = {
            ElementType.INT8: np.int8,
            ElementType.UINT8: np.uint8,
            ElementType.INT16: np.int16,
            ElementType.UINT16: np.uint16,
            ElementType.INT32: np.int32,
            ElementType.UINT32: np.uint32,
            ElementType.INT64: np.int64,
            ElementType.UINT64: np.uint64,
            ElementType.FLOAT32: np.float32,
            ElementType.FLOAT64: np.float64,
        }
        return type_map[self]

    def to_numpy_dtype(self) -> np.dtype:
        """Native byte order dtype used to reinterpret payload bytes."""
        return np.dtype(self.to_numpy_type())

    def is_unsigned(self) -> bool:
        """Check if this is an unsigned integer type."""
        return self in (ElementType.UINT8, ElementType.UINT16, ElementType.UINT32, ElementType.UINT64)

    def is_floating_point(self) -> bool:
        """Check if this is a floating-point type."""
        return self in (ElementType.FLOAT32, ElementType.FLOAT64)

    @classmethod
    def from_token(cls, token: str) -> 'ElementType':
        """
        Look up the element type for a header token.

        Raises:
            UnsupportedElementTypeError: If the token is not recognized
        """
        token = token.strip()
        try:
            return cls(_TOKEN_ALIASES.get(token, token))
        except ValueError:
            raise UnsupportedElementTypeError(token)

    @classmethod
    def from_dtype(cls, dtype) -> 'ElementType':
        """
        Look up the element type for a numpy dtype.

        Byte order is ignored. ``bool`` and every dtype outside the ten
        supported numeric types are rejected.

        Raises:
            UnsupportedElementTypeError: If the dtype has no element type
        """
        dtype = np.dtype(dtype)
        for element_type in cls:
            if element_type.to_numpy_dtype() == dtype.newbyteorder('='):
                return element_type
        raise UnsupportedElementTypeError(str(dtype))

    def __str__(self) -> str:
        return self.value
