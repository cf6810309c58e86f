"""
Loading and saving MetaImage volumes.

``load_meta_image`` reads ``.mha`` (header and payload in one file) and
``.mhd`` (header with a sidecar data file) volumes of any of the ten
supported element types and returns them behind the ``ImageView``
interface. ``save_meta_image`` writes the same layouts; the extension picks
the layout.
"""

import logging
from pathlib import Path
from typing import List, Optional

from ...config import get_config
from ...element_types import ElementType
from ...image import Image
from ...types import FilePath, ImageView
from .header import Header, Placement, parse_header
from .voxels import bytes_to_voxels, read_voxel_bytes, write_voxel_bytes

logger = logging.getLogger(__name__)


def build_image(kind: ElementType, raw: bytes, header: Header) -> Image:
    """
    Build the typed image for ``kind`` from decoded payload bytes.

    Raises:
        BufferSizeMismatchError: If ``raw`` does not hold a whole number of voxels
        ValueError: If the voxel count disagrees with ``header.dim_size``
    """
    width, height, depth = header.dim_size
    return Image(
        bytes_to_voxels(raw, kind),
        width,
        height,
        depth,
        spacing=header.element_spacing,
        origin=header.offset,
        direction=header.transform_matrix,
    )


def load_meta_image(path: FilePath) -> ImageView:
    """
    Load a ``.mha`` or ``.mhd`` volume.

    Args:
        path: Path to the header file

    Returns:
        The volume; its concrete type is ``Image`` with the dtype named by
        the header's ``ElementType``

    Raises:
        MetaImageError: Subclass describing what went wrong (missing or
            malformed header fields, unknown element type, size mismatch,
            bad compression, or I/O failure)
    """
    header = parse_header(path)
    kind = header.kind
    raw = read_voxel_bytes(header, path)
    image = build_image(kind, raw, header)

    logger.info(f"Loaded {path}: {kind.token} {_describe_size(image)}, "
                f"{'compressed' if header.compressed_data else 'raw'} "
                f"{'inline' if header.is_local else header.element_data_file}")
    return image


def save_meta_image(
    image: Image,
    path: FilePath,
    compress: Optional[bool] = None,
) -> List[Path]:
    """
    Save a volume as MetaImage.

    ``.mha`` paths get the payload appended to the header. ``.mhd`` paths get
    a header-only file plus a ``<stem>.raw`` (uncompressed) or
    ``<stem>.zraw`` (compressed) sidecar in the same directory.

    Args:
        image: Volume to save
        path: Destination header path, ending in ``.mha`` or ``.mhd``
        compress: zlib-compress the payload; defaults to the
            ``compress_by_default`` configuration setting

    Returns:
        Paths written, header first

    Raises:
        DataIOError: If the extension is not ``.mha``/``.mhd`` or writing fails
    """
    placement = Placement.from_path(path)
    if compress is None:
        compress = get_config().metaimage.compress_by_default

    written = write_voxel_bytes(image, path, placement, compress)

    logger.info(f"Saved {image.element_type.token} {_describe_size(image)} to {path} "
                f"({placement.value}, {'compressed' if compress else 'raw'})")
    return written


def _describe_size(image: ImageView) -> str:
    return f"{image.width()}x{image.height()}x{image.depth()}"
