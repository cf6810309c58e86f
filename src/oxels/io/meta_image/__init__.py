"""
MetaImage file support.

This package reads and writes MetaImage volumes:
- ``.mha``: text header followed by the binary payload in the same file
- ``.mhd``: text header referencing a ``.raw`` or ``.zraw`` data file
- Ten element types, from ``MET_CHAR`` to ``MET_DOUBLE``
- Optional whole-buffer zlib compression
"""

from .header import (
    DataLocation,
    Header,
    LOCAL,
    Placement,
    parse_header,
    parse_header_bytes,
    serialize_header,
)
from .voxels import bytes_to_voxels, read_voxel_bytes, voxels_to_bytes, write_voxel_bytes
from .image import build_image, load_meta_image, save_meta_image

__all__ = [
    "DataLocation",
    "Header",
    "LOCAL",
    "Placement",
    "parse_header",
    "parse_header_bytes",
    "serialize_header",
    "bytes_to_voxels",
    "read_voxel_bytes",
    "voxels_to_bytes",
    "write_voxel_bytes",
    "build_image",
    "load_meta_image",
    "save_meta_image",
]
