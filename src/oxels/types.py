"""
Type definitions for oxels.

This module provides type aliases and protocols for better type safety.
"""

from typing import Protocol, Iterator, Tuple, Union, runtime_checkable
from pathlib import Path
import numpy as np

# Type aliases for common data structures
FilePath = Union[str, Path]
Vector3 = Tuple[float, float, float]
Dimensions = Tuple[int, int, int]
Direction = Tuple[int, int, int, int, int, int, int, int, int]


@runtime_checkable
class ImageView(Protocol):
    """
    Read-only view over a volume whose voxel type is not known statically.

    Every loaded image satisfies this protocol regardless of which of the
    ten element types backs it. ``values()`` widens each voxel to a Python
    float; 64-bit integers with magnitude above 2**53 lose precision.
    """

    def width(self) -> int: ...
    def height(self) -> int: ...
    def depth(self) -> int: ...
    def spacing(self) -> Vector3: ...
    def origin(self) -> Vector3: ...
    def direction(self) -> Direction: ...

    def values(self) -> Iterator[float]:
        """Lazily iterate over all voxels as float64 values."""
        ...

    def as_type(self, dtype) -> np.ndarray:
        """Return the typed voxel buffer if it is stored as ``dtype``."""
        ...
