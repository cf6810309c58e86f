"""
Test utilities for oxels.

Provides common fixtures and utilities for testing.
"""

import os
from pathlib import Path
from typing import Callable, Dict, Sequence

import numpy as np
import pytest

from oxels import Image, reset_config

ALL_DTYPES = [
    np.int8, np.uint8,
    np.int16, np.uint16,
    np.int32, np.uint32,
    np.int64, np.uint64,
    np.float32, np.float64,
]

TOKENS = {
    np.int8: "MET_CHAR",
    np.uint8: "MET_UCHAR",
    np.int16: "MET_SHORT",
    np.uint16: "MET_USHORT",
    np.int32: "MET_INT",
    np.uint32: "MET_UINT",
    np.int64: "MET_LONG_LONG",
    np.uint64: "MET_ULONG_LONG",
    np.float32: "MET_FLOAT",
    np.float64: "MET_DOUBLE",
}

# 60 voxels that fit every element type and add up to 7203.
ORACLE_DIMS = (3, 4, 5)
ORACLE_SUM = 7203.0


def oracle_values() -> np.ndarray:
    values = np.full(60, 120, dtype=np.int64)
    values[:3] = 121
    return values


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point configuration at an empty per-test INI file with no env overrides."""
    for name in list(os.environ):
        if name.startswith("OXELS_"):
            monkeypatch.delenv(name)
    reset_config(str(tmp_path / "oxels.ini"))
    yield
    reset_config(str(tmp_path / "oxels.ini"))


@pytest.fixture
def sample_header_fields() -> Dict[str, str]:
    """Required header fields for a 2x2x2 MET_USHORT inline volume."""
    return {
        'CompressedData': 'False',
        'TransformMatrix': '1 0 0 0 1 0 0 0 1',
        'Offset': '0 0 0',
        'ElementSpacing': '1 1 1',
        'DimSize': '2 2 2',
        'ElementType': 'MET_USHORT',
        'ElementDataFile': 'LOCAL',
    }


@pytest.fixture
def make_image() -> Callable[..., Image]:
    """Factory for images of a given dtype with non-trivial geometry."""
    def factory(dtype, dims: Sequence[int] = ORACLE_DIMS, values=None) -> Image:
        width, height, depth = dims
        count = width * height * depth
        if values is None:
            values = np.arange(count) % 100
        return Image(
            np.asarray(values).astype(dtype),
            width, height, depth,
            spacing=(0.5, 0.75, 2.5),
            origin=(-10.25, 3.0, 100.125),
            direction=(0, 1, 0, 1, 0, 0, 0, 0, -1),
        )
    return factory


def header_bytes(fields: Dict[str, str], newline: bytes = b"\n") -> bytes:
    """Encode header fields as ``Key = Value`` lines."""
    return b"".join(f"{key} = {value}".encode("utf-8") + newline for key, value in fields.items())


def write_meta_file(path: Path, fields: Dict[str, str], payload: bytes = b"",
                    newline: bytes = b"\n") -> int:
    """
    Write a hand-built MetaImage file.

    Returns:
        Number of header bytes written, i.e. the payload offset
    """
    header = header_bytes(fields, newline)
    path.write_bytes(header + payload)
    return len(header)


def voxel_sum(image) -> float:
    """Sum of every voxel widened to float."""
    return float(sum(image.values()))


def assert_file_exists(file_path):
    """Assert that a file exists."""
    assert os.path.exists(file_path), f"File does not exist: {file_path}"


def assert_same_image(loaded, expected: Image):
    """Assert geometry, dtype and voxel values are identical."""
    assert loaded.width() == expected.width()
    assert loaded.height() == expected.height()
    assert loaded.depth() == expected.depth()
    assert loaded.spacing() == expected.spacing()
    assert loaded.origin() == expected.origin()
    assert loaded.direction() == expected.direction()
    typed = loaded.as_type(expected.dtype)
    np.testing.assert_array_equal(typed, expected.voxels)
