"""
MetaImage voxel payload reading and writing.

Payloads are raw voxel bytes in native byte order, optionally compressed as
a single zlib stream. No byte swapping is ever performed: files written on a
machine of the other endianness load with scrambled values. This is a known
limitation of the format handling here, reported with a warning.
"""

import logging
import os
import sys
import zlib
from pathlib import Path
from typing import List, Optional

import numpy as np

from ...config import get_config
from ...element_types import ElementType
from ...exceptions import (
    BufferSizeMismatchError,
    DataIOError,
    DecompressionError,
    FileOperation,
)
from ...types import FilePath
from .header import LOCAL, DataLocation, Header, Placement, serialize_header

logger = logging.getLogger(__name__)

_NATIVE_MSB = sys.byteorder == "big"

# Upper bound of the deflate expansion ratio.
_MAX_INFLATE_RATIO = 1032


def bytes_to_voxels(raw: bytes, kind: ElementType) -> np.ndarray:
    """
    Reinterpret raw payload bytes as a flat array of ``kind``.

    The returned array shares memory with ``raw`` and is read-only; copy it
    to own it.

    Raises:
        BufferSizeMismatchError: If ``len(raw)`` is not a multiple of the
            element width
    """
    width = kind.size()
    if len(raw) % width:
        raise BufferSizeMismatchError(
            f"{len(raw)} bytes is not a whole number of {kind.token} voxels ({width} bytes each)",
            actual=len(raw),
        )
    return np.frombuffer(raw, dtype=kind.to_numpy_dtype())


def voxels_to_bytes(voxels: np.ndarray) -> bytes:
    """Serialize a voxel array to native-order bytes, x fastest."""
    return np.ascontiguousarray(voxels).tobytes()


def _check_declared_size(header: Header, source: str) -> int:
    expected = header.expected_bytes()
    if expected >= sys.maxsize:
        raise BufferSizeMismatchError(
            f"Declared payload of {expected} bytes cannot be addressed on this platform",
            expected=expected,
            file_path=source,
        )
    limit = get_config().metaimage.max_payload_bytes
    if limit is not None and expected > limit:
        raise BufferSizeMismatchError(
            f"Declared payload of {expected} bytes exceeds the {limit} byte limit",
            expected=expected,
            file_path=source,
        )
    return expected


def _inflate(compressed: bytes, expected: int, source: str) -> bytes:
    """Inflate a zlib stream, producing at most ``expected + 1`` bytes."""
    decompressor = zlib.decompressobj()
    try:
        raw = decompressor.decompress(compressed, expected + 1)
    except zlib.error as e:
        raise DecompressionError(f"Malformed zlib stream: {e}", file_path=source) from e

    if len(raw) > expected:
        raise BufferSizeMismatchError(
            f"Decompressed payload is larger than the declared {expected} bytes",
            expected=expected,
            actual=len(raw),
            file_path=source,
        )
    if not decompressor.eof:
        raise DecompressionError(
            f"Truncated zlib stream: ended after {len(raw)} of {expected} bytes",
            file_path=source,
        )
    if len(raw) != expected:
        raise BufferSizeMismatchError(
            f"Decompressed payload is {len(raw)} bytes, header declares {expected}",
            expected=expected,
            actual=len(raw),
            file_path=source,
        )
    return raw


def read_voxel_bytes(header: Header, header_path: FilePath) -> bytes:
    """
    Read the raw (decompressed) voxel payload described by ``header``.

    Args:
        header: Parsed header of the file at ``header_path``
        header_path: Path of the ``.mha``/``.mhd`` file; external data files
            are resolved relative to its directory

    Returns:
        Exactly ``header.expected_bytes()`` bytes

    Raises:
        UnsupportedElementTypeError: If the element type is unknown
        BufferSizeMismatchError: If the decompressed size is wrong or the
            declared size exceeds the configured limit
        DecompressionError: If the zlib stream is malformed or truncated
        DataIOError: If the data file cannot be opened or is too short
    """
    location = header.data_location(header_path)
    source = str(location.path)
    expected = _check_declared_size(header, source)

    if header.binary_data_byte_order_msb is not None and header.binary_data_byte_order_msb != _NATIVE_MSB:
        logger.warning(
            f"{header_path} declares {'big' if header.binary_data_byte_order_msb else 'little'}-endian "
            f"data; reading it in native {sys.byteorder}-endian order without conversion")

    logger.debug(f"Reading {expected} bytes of {header.element_type} from {source} "
                 f"at offset {location.offset} (compressed={header.compressed_data})")

    try:
        with open(location.path, "rb") as f:
            available = os.fstat(f.fileno()).st_size - location.offset
            f.seek(location.offset)
            if header.compressed_data:
                if expected > max(available, 0) * _MAX_INFLATE_RATIO:
                    raise BufferSizeMismatchError(
                        f"{max(available, 0)} compressed bytes cannot inflate to the declared {expected}",
                        expected=expected,
                        file_path=source,
                    )
                compressed = f.read()
            else:
                if available < expected:
                    raise DataIOError(
                        f"Payload is {max(available, 0)} bytes, header declares {expected}",
                        file_path=source,
                        error_code="DATA_SHORT_READ",
                    )
                raw = f.read(expected)
    except OSError as e:
        raise DataIOError(f"Cannot read voxel data: {e}", file_path=source) from e

    if header.compressed_data:
        return _inflate(compressed, expected, source)

    if len(raw) != expected:
        raise DataIOError(
            f"Short read: got {len(raw)} of {expected} bytes",
            file_path=source,
            error_code="DATA_SHORT_READ",
        )
    return raw


def sidecar_name(header_path: FilePath, compressed: bool) -> str:
    """File name of the external data file that goes with ``header_path``."""
    extension = get_config().metaimage.sidecar_extension(compressed)
    return Path(header_path).stem + extension


def write_voxel_bytes(
    image,
    header_path: FilePath,
    placement: Placement,
    compress: bool,
    compression_level: Optional[int] = None,
) -> List[Path]:
    """
    Write ``image`` as a MetaImage header plus payload.

    Inline placement appends the payload to the header in one file. External
    placement writes the header alone and the payload to a sidecar
    (``<stem>.raw`` or ``<stem>.zraw``) next to it.

    Returns:
        Paths written, header first

    Raises:
        DataIOError: If a file cannot be written; partial files are removed
    """
    header_path = Path(header_path)
    if compression_level is None:
        compression_level = get_config().metaimage.compression_level

    payload = voxels_to_bytes(image.voxels)
    if compress:
        payload = zlib.compress(payload, compression_level)

    if placement is Placement.INLINE:
        location = DataLocation(placement, header_path, 0)
        element_data_file = LOCAL
    else:
        element_data_file = sidecar_name(header_path, compress)
        location = DataLocation(placement, header_path.parent / element_data_file, 0)

    header_text = serialize_header(
        image,
        element_data_file=element_data_file,
        compressed=compress,
        compressed_size=len(payload) if compress else None,
    ).encode("utf-8")

    written = [header_path]
    try:
        with FileOperation() as operation:
            operation.add_temp_file(str(header_path))
            with open(header_path, "wb") as f:
                f.write(header_text)
                if location.is_inline:
                    f.write(payload)
            if not location.is_inline:
                operation.add_temp_file(str(location.path))
                with open(location.path, "wb") as f:
                    f.write(payload)
                written.append(location.path)
    except OSError as e:
        raise DataIOError(f"Cannot write MetaImage: {e}", file_path=str(header_path)) from e

    logger.debug(f"Wrote {len(header_text)} header bytes and {len(payload)} payload bytes "
                 f"to {', '.join(str(p) for p in written)}")
    return written
