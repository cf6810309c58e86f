"""
MetaImage header parsing and serialization.

A MetaImage header is a sequence of ``Key = Value`` text lines. For inline
(``.mha``) files the binary payload starts on the byte right after the
``ElementDataFile = LOCAL`` line, so the parser counts the exact number of
bytes it consumes, line terminators included.
"""

import io
import logging
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Callable, Dict, Optional, Tuple

from ...element_types import ElementType
from ...exceptions import DataIOError, HeaderParseError, MissingFieldError
from ...types import Dimensions, Direction, FilePath, Vector3

logger = logging.getLogger(__name__)

LOCAL = "LOCAL"

# Keys that must be present, in the order they are checked.
REQUIRED_FIELDS = (
    ("CompressedData", "compressed_data"),
    ("TransformMatrix", "transform_matrix"),
    ("Offset", "offset"),
    ("ElementSpacing", "element_spacing"),
    ("DimSize", "dim_size"),
    ("ElementType", "element_type"),
    ("ElementDataFile", "element_data_file"),
)


class Placement(Enum):
    """Where the voxel payload lives relative to the header."""
    INLINE = "inline"
    EXTERNAL = "external"

    @classmethod
    def from_path(cls, path: FilePath) -> 'Placement':
        """
        Infer placement from a file extension.

        ``.mha`` files carry their payload inline, ``.mhd`` files point to a
        sidecar.

        Raises:
            DataIOError: For any other extension
        """
        suffix = Path(path).suffix.lower()
        if suffix == ".mha":
            return cls.INLINE
        if suffix == ".mhd":
            return cls.EXTERNAL
        raise DataIOError(
            f"Cannot infer MetaImage layout from extension {suffix!r} (use .mha or .mhd)",
            file_path=str(path),
            error_code="UNSUPPORTED_EXTENSION",
        )


@dataclass(frozen=True)
class DataLocation:
    """Resolved position of a voxel payload on disk."""
    placement: Placement
    path: Path
    offset: int = 0

    @property
    def is_inline(self) -> bool:
        return self.placement is Placement.INLINE


@dataclass
class Header:
    """Parsed MetaImage header."""
    compressed_data: bool
    transform_matrix: Direction
    offset: Vector3
    element_spacing: Vector3
    dim_size: Dimensions
    element_type: str
    element_data_file: str
    header_byte_length: int = 0

    # Informational keys, kept when present.
    object_type: Optional[str] = None
    n_dims: Optional[int] = None
    binary_data: Optional[bool] = None
    binary_data_byte_order_msb: Optional[bool] = None
    compressed_data_size: Optional[int] = None
    center_of_rotation: Optional[Vector3] = None
    anatomical_orientation: Optional[str] = None

    @property
    def is_local(self) -> bool:
        """True when the payload follows the header in the same file."""
        return self.element_data_file.upper() == LOCAL

    @property
    def kind(self) -> ElementType:
        """Element type for the ``ElementType`` token."""
        return ElementType.from_token(self.element_type)

    def voxel_count(self) -> int:
        width, height, depth = self.dim_size
        return width * height * depth

    def expected_bytes(self) -> int:
        """Uncompressed payload size implied by ``DimSize`` and ``ElementType``."""
        return self.voxel_count() * self.kind.size()

    def data_location(self, header_path: FilePath) -> DataLocation:
        """
        Resolve where the payload lives.

        Inline payloads start ``header_byte_length`` bytes into the header
        file; external payloads start at byte 0 of a file resolved relative
        to the header's directory.
        """
        header_path = Path(header_path)
        if self.is_local:
            return DataLocation(Placement.INLINE, header_path, self.header_byte_length)
        return DataLocation(Placement.EXTERNAL, header_path.parent / self.element_data_file, 0)

    def to_text(self) -> str:
        """Serialize back to header text, ``ElementDataFile`` last."""
        lines = [
            ("ObjectType", self.object_type or "Image"),
            ("NDims", str(self.n_dims if self.n_dims is not None else 3)),
            ("BinaryData", _format_bool(True if self.binary_data is None else self.binary_data)),
            ("BinaryDataByteOrderMSB", _format_bool(
                sys.byteorder == "big" if self.binary_data_byte_order_msb is None
                else self.binary_data_byte_order_msb)),
            ("CompressedData", _format_bool(self.compressed_data)),
        ]
        if self.compressed_data and self.compressed_data_size is not None:
            lines.append(("CompressedDataSize", str(self.compressed_data_size)))
        lines += [
            ("TransformMatrix", _format_values(self.transform_matrix)),
            ("Offset", _format_values(self.offset)),
            ("CenterOfRotation", _format_values(self.center_of_rotation or (0, 0, 0))),
            ("AnatomicalOrientation", self.anatomical_orientation or "RAI"),
            ("ElementSpacing", _format_values(self.element_spacing)),
            ("DimSize", _format_values(self.dim_size)),
            ("ElementType", self.element_type),
            ("ElementDataFile", self.element_data_file),
        ]
        return "".join(f"{key} = {value}\n" for key, value in lines)


def _format_bool(value: bool) -> str:
    return "True" if value else "False"


def _format_values(values) -> str:
    return " ".join(repr(v) if isinstance(v, float) else str(v) for v in values)


# Value parsers. Each raises ValueError with a readable message.

def _parse_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise ValueError(f"expected True or False, got {value!r}")


def _parse_count(value: str) -> int:
    number = int(value)
    if number < 0:
        raise ValueError(f"expected a non-negative integer, got {value!r}")
    return number


def _parse_integral(value: str) -> int:
    """Integer that may be written in float notation, e.g. ``1.0``."""
    try:
        return int(value)
    except ValueError:
        number = float(value)
        if not number.is_integer():
            raise ValueError(f"expected an integer, got {value!r}")
        return int(number)


def _tuple_of(count: int, parse_item: Callable[[str], object]) -> Callable[[str], Tuple]:
    def parse(value: str) -> Tuple:
        items = value.split()
        if len(items) != count:
            raise ValueError(f"expected {count} values, got {len(items)}")
        return tuple(parse_item(item) for item in items)
    return parse


_DIM_LIMIT = 2 ** 32


def _parse_dims(value: str) -> Dimensions:
    dims = _tuple_of(3, _parse_count)(value)
    if any(d >= _DIM_LIMIT for d in dims):
        raise ValueError(f"dimensions must be below 2**32, got {value!r}")
    return dims


# Header key -> (Header attribute, value parser)
_FIELD_PARSERS: Dict[str, Tuple[str, Callable[[str], object]]] = {
    "ObjectType": ("object_type", str),
    "NDims": ("n_dims", _parse_count),
    "BinaryData": ("binary_data", _parse_bool),
    "BinaryDataByteOrderMSB": ("binary_data_byte_order_msb", _parse_bool),
    "CompressedData": ("compressed_data", _parse_bool),
    "CompressedDataSize": ("compressed_data_size", _parse_count),
    "TransformMatrix": ("transform_matrix", _tuple_of(9, _parse_integral)),
    "Offset": ("offset", _tuple_of(3, float)),
    "CenterOfRotation": ("center_of_rotation", _tuple_of(3, float)),
    "AnatomicalOrientation": ("anatomical_orientation", str),
    "ElementSpacing": ("element_spacing", _tuple_of(3, float)),
    "DimSize": ("dim_size", _parse_dims),
    "ElementType": ("element_type", str),
    "ElementDataFile": ("element_data_file", str),
}


def read_header_stream(stream: BinaryIO, source: Optional[str] = None) -> Header:
    """
    Parse a header from a binary stream positioned at its first line.

    Parsing stops at the first line without ``=`` (not counted), right after
    the ``ElementDataFile`` line (counted), or at end of file.

    Args:
        stream: Binary file-like object
        source: Name used in error messages

    Returns:
        Header with ``header_byte_length`` set to the bytes consumed

    Raises:
        HeaderParseError: If a value is malformed or the stream cannot be read
        MissingFieldError: If a required key is absent
    """
    raw: Dict[str, object] = {}
    consumed = 0

    for line_number, line in enumerate(stream, start=1):
        try:
            text = line.decode("utf-8").strip()
        except UnicodeDecodeError:
            logger.debug(f"Line {line_number} is not text; treating it as payload start")
            break

        key, sep, value = text.partition("=")
        if not sep:
            break
        key = key.strip()
        value = value.strip()
        consumed += len(line)

        if key not in _FIELD_PARSERS:
            logger.debug(f"Ignoring unknown header key {key!r}")
            continue

        attribute, parse = _FIELD_PARSERS[key]
        try:
            raw[attribute] = parse(value)
        except ValueError as e:
            raise HeaderParseError(
                f"Invalid value for {key} on line {line_number}: {e}",
                line_number=line_number,
                file_path=source,
            ) from e

        if key == "ElementDataFile":
            break

    for key, attribute in REQUIRED_FIELDS:
        if attribute not in raw:
            raise MissingFieldError(key, file_path=source)

    header = Header(header_byte_length=consumed, **raw)
    logger.debug(f"Parsed header of {source or 'stream'}: {consumed} bytes, "
                 f"{header.element_type} {header.dim_size}, data file {header.element_data_file}")
    return header


def parse_header(path: FilePath) -> Header:
    """
    Parse the header of a ``.mha`` or ``.mhd`` file.

    Only the header is read, so geometry and element type can be checked
    before committing to loading the payload.

    Raises:
        HeaderParseError: If the file cannot be opened or read, or a value is malformed
        MissingFieldError: If a required key is absent
    """
    try:
        with open(path, "rb") as f:
            return read_header_stream(f, source=str(path))
    except OSError as e:
        raise HeaderParseError(
            f"Cannot read header: {e}",
            file_path=str(path),
            error_code="HEADER_IO",
        ) from e


def parse_header_bytes(data: bytes) -> Header:
    """Parse a header held in memory."""
    return read_header_stream(io.BytesIO(data), source="<bytes>")


def build_header(
    image,
    element_data_file: str,
    compressed: bool,
    compressed_size: Optional[int] = None,
) -> Header:
    """Describe ``image`` as a header for the given payload policy."""
    return Header(
        compressed_data=compressed,
        transform_matrix=tuple(image.direction()),
        offset=tuple(image.origin()),
        element_spacing=tuple(image.spacing()),
        dim_size=(image.width(), image.height(), image.depth()),
        element_type=ElementType.from_dtype(image.dtype).token,
        element_data_file=element_data_file,
        compressed_data_size=compressed_size,
    )


def serialize_header(
    image,
    element_data_file: str = LOCAL,
    compressed: bool = False,
    compressed_size: Optional[int] = None,
) -> str:
    """
    Produce header text for ``image``.

    Args:
        image: Image whose geometry and dtype are described
        element_data_file: ``LOCAL`` for inline payloads, else the sidecar
            file name relative to the header
        compressed: Whether the payload is zlib-compressed
        compressed_size: Compressed payload length, written when known

    Returns:
        Header text; every line ends with ``\\n``
    """
    return build_header(image, element_data_file, compressed, compressed_size).to_text()
