"""
Volumetric image container.

``Image`` owns a flat voxel buffer of one numeric dtype together with the
geometry a MetaImage header describes. It implements the ``ImageView``
protocol, so code that only reads geometry and values never needs to know
which of the ten element types backs a loaded volume.
"""

from typing import Iterator, Sequence

import numpy as np

from ..element_types import ElementType
from ..types import Dimensions, Direction, Vector3

IDENTITY_DIRECTION: Direction = (1, 0, 0, 0, 1, 0, 0, 0, 1)

_MAX_EXTENT = 2 ** 32 - 1

# Voxels widened per step by values(); bounds the temporary float64 copy.
_WIDEN_CHUNK = 65536


def _as_vector3(values: Sequence[float], name: str) -> Vector3:
    items = tuple(float(v) for v in values)
    if len(items) != 3:
        raise ValueError(f"{name} needs 3 values, got {len(items)}")
    return items


def _as_direction(values: Sequence[int]) -> Direction:
    items = tuple(values)
    if len(items) != 9:
        raise ValueError(f"direction needs 9 values, got {len(items)}")
    direction = []
    for value in items:
        if int(value) != value:
            raise ValueError(f"direction values must be integers, got {value!r}")
        direction.append(int(value))
    return tuple(direction)


class Image:
    """
    A 3D image with a single voxel type.

    Voxels are stored flat, x fastest then y then z, exactly as they appear
    in a MetaImage payload. The image always holds its own copy of the
    buffer, in native byte order.

    Args:
        voxels: Voxel values; any array-like with ``width*height*depth`` items
        width: Extent along x
        height: Extent along y
        depth: Extent along z
        spacing: Physical voxel size along each axis
        origin: World-space position of the first voxel
        direction: Row-major 3x3 orientation matrix as 9 integers
        dtype: Voxel type; defaults to the dtype of ``voxels``

    Raises:
        ValueError: If the buffer length or geometry is inconsistent
        UnsupportedElementTypeError: If the dtype is not one of the ten
            MetaImage element types
    """

    def __init__(
        self,
        voxels,
        width: int,
        height: int,
        depth: int,
        spacing: Sequence[float] = (1.0, 1.0, 1.0),
        origin: Sequence[float] = (0.0, 0.0, 0.0),
        direction: Sequence[int] = IDENTITY_DIRECTION,
        dtype=None,
    ):
        for name, extent in (("width", width), ("height", height), ("depth", depth)):
            if int(extent) != extent or not 0 <= extent <= _MAX_EXTENT:
                raise ValueError(f"{name} must be an integer in [0, 2**32), got {extent!r}")

        array = np.array(voxels, dtype=dtype, copy=True).ravel()
        self._element_type = ElementType.from_dtype(array.dtype)
        native = self._element_type.to_numpy_dtype()
        if array.dtype != native:
            array = array.astype(native)

        expected = int(width) * int(height) * int(depth)
        if array.size != expected:
            raise ValueError(
                f"Voxel count {array.size} does not match {width}x{height}x{depth} = {expected}")

        self._voxels = array
        self._width = int(width)
        self._height = int(height)
        self._depth = int(depth)
        self._spacing = _as_vector3(spacing, "spacing")
        self._origin = _as_vector3(origin, "origin")
        self._direction = _as_direction(direction)

    @classmethod
    def from_array(
        cls,
        array: np.ndarray,
        spacing: Sequence[float] = (1.0, 1.0, 1.0),
        origin: Sequence[float] = (0.0, 0.0, 0.0),
        direction: Sequence[int] = IDENTITY_DIRECTION,
    ) -> 'Image':
        """Build an image from a ``(depth, height, width)`` shaped array."""
        array = np.asarray(array)
        if array.ndim != 3:
            raise ValueError(f"Expected a 3D (depth, height, width) array, got shape {array.shape}")
        depth, height, width = array.shape
        return cls(array, width, height, depth, spacing, origin, direction)

    # Geometry

    def width(self) -> int:
        return self._width

    def height(self) -> int:
        return self._height

    def depth(self) -> int:
        return self._depth

    def dimensions(self) -> Dimensions:
        """Extents in header order (x, y, z)."""
        return (self._width, self._height, self._depth)

    def spacing(self) -> Vector3:
        return self._spacing

    def origin(self) -> Vector3:
        return self._origin

    def direction(self) -> Direction:
        return self._direction

    def num_voxels(self) -> int:
        return self._voxels.size

    # Voxel access

    @property
    def element_type(self) -> ElementType:
        return self._element_type

    @property
    def dtype(self) -> np.dtype:
        return self._voxels.dtype

    @property
    def voxels(self) -> np.ndarray:
        """The owned flat voxel buffer."""
        return self._voxels

    def values(self) -> Iterator[float]:
        """
        Lazily widen every voxel to a Python float.

        Widening follows numpy's casting rules: int64 and uint64 values with
        magnitude above 2**53 are rounded to the nearest representable double.
        """
        for start in range(0, self._voxels.size, _WIDEN_CHUNK):
            chunk = self._voxels[start:start + _WIDEN_CHUNK]
            yield from chunk.astype(np.float64).tolist()

    def as_type(self, dtype) -> np.ndarray:
        """
        Downcast to the concrete voxel type.

        Returns:
            A read-only view of the flat buffer

        Raises:
            TypeError: If the image is not stored as ``dtype``
        """
        requested = np.dtype(dtype)
        if requested.newbyteorder('=') != self._voxels.dtype:
            raise TypeError(f"Image holds {self._voxels.dtype}, not {requested}")
        view = self._voxels.view()
        view.flags.writeable = False
        return view

    def as_array(self) -> np.ndarray:
        """Read-only ``(depth, height, width)`` view of the voxels."""
        view = self._voxels.reshape(self._depth, self._height, self._width)
        view.flags.writeable = False
        return view

    def same_geometry(self, other) -> bool:
        """Check dimensions, spacing, origin and direction for exact equality."""
        return (
            self.dimensions() == (other.width(), other.height(), other.depth())
            and self._spacing == tuple(other.spacing())
            and self._origin == tuple(other.origin())
            and self._direction == tuple(other.direction())
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Image):
            return NotImplemented
        return (
            self.same_geometry(other)
            and self.dtype == other.dtype
            and np.array_equal(self._voxels, other._voxels)
        )

    __hash__ = None

    def __len__(self) -> int:
        return self._voxels.size

    def __repr__(self) -> str:
        return (f"Image(type={self._element_type.token}, "
                f"size={self._width}x{self._height}x{self._depth}, "
                f"spacing={self._spacing}, origin={self._origin})")
