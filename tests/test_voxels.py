"""
Tests for MetaImage voxel payload reading and writing.
"""
import logging
import sys
import zlib

import numpy as np
import pytest

from oxels import (
    BufferSizeMismatchError,
    DataIOError,
    DecompressionError,
    ElementType,
    get_config,
)
from oxels.io.meta_image import (
    Placement,
    bytes_to_voxels,
    parse_header,
    read_voxel_bytes,
    voxels_to_bytes,
    write_voxel_bytes,
)

from conftest import assert_file_exists, write_meta_file

PAYLOAD = np.arange(1, 9, dtype=np.uint16).tobytes()


class TestByteReinterpretation:
    """Test bytes_to_voxels and voxels_to_bytes."""

    def test_native_order_reinterpretation(self):
        voxels = bytes_to_voxels(PAYLOAD, ElementType.UINT16)
        assert voxels.dtype == np.uint16
        assert voxels.tolist() == [1, 2, 3, 4, 5, 6, 7, 8]

    def test_length_must_be_a_multiple_of_width(self):
        with pytest.raises(BufferSizeMismatchError) as exc_info:
            bytes_to_voxels(b"\x00" * 7, ElementType.INT32)
        assert exc_info.value.actual == 7
        assert exc_info.value.error_code == "BUFFER_SIZE_MISMATCH"

    def test_empty_buffer(self):
        assert bytes_to_voxels(b"", ElementType.FLOAT64).size == 0

    def test_voxels_to_bytes_is_native_and_contiguous(self):
        array = np.arange(12, dtype=np.int32).reshape(3, 4)[:, ::2]
        assert voxels_to_bytes(array) == np.ascontiguousarray(array).tobytes()


class TestReadInline:
    """Test read_voxel_bytes for LOCAL payloads."""

    def test_reads_exactly_expected_bytes(self, tmp_path, sample_header_fields):
        path = tmp_path / "volume.mha"
        offset = write_meta_file(path, sample_header_fields, PAYLOAD)
        header = parse_header(path)

        raw = read_voxel_bytes(header, path)

        assert raw == PAYLOAD
        assert path.stat().st_size - offset == header.expected_bytes()

    def test_short_payload_is_an_error(self, tmp_path, sample_header_fields):
        path = tmp_path / "volume.mha"
        write_meta_file(path, sample_header_fields, PAYLOAD[:-3])

        with pytest.raises(DataIOError) as exc_info:
            read_voxel_bytes(parse_header(path), path)
        assert exc_info.value.error_code == "DATA_SHORT_READ"

    def test_huge_declaration_fails_before_reading(self, tmp_path, sample_header_fields):
        sample_header_fields['DimSize'] = '100000 100000 100000'
        path = tmp_path / "volume.mha"
        write_meta_file(path, sample_header_fields, PAYLOAD)

        with pytest.raises(DataIOError):
            read_voxel_bytes(parse_header(path), path)

    def test_unaddressable_declaration(self, tmp_path, sample_header_fields):
        sample_header_fields['DimSize'] = '4294967295 4294967295 4294967295'
        sample_header_fields['ElementType'] = 'MET_DOUBLE'
        path = tmp_path / "volume.mha"
        write_meta_file(path, sample_header_fields, PAYLOAD)

        with pytest.raises(BufferSizeMismatchError) as exc_info:
            read_voxel_bytes(parse_header(path), path)
        assert exc_info.value.expected == 8 * 4294967295 ** 3

    def test_configured_size_limit(self, tmp_path, sample_header_fields):
        get_config().metaimage.max_payload_bytes = 15
        path = tmp_path / "volume.mha"
        write_meta_file(path, sample_header_fields, PAYLOAD)

        with pytest.raises(BufferSizeMismatchError) as exc_info:
            read_voxel_bytes(parse_header(path), path)
        assert exc_info.value.expected == 16

    def test_foreign_byte_order_warns(self, tmp_path, sample_header_fields, caplog):
        foreign = "False" if sys.byteorder == "big" else "True"
        fields = {'BinaryDataByteOrderMSB': foreign}
        fields.update(sample_header_fields)
        path = tmp_path / "volume.mha"
        write_meta_file(path, fields, PAYLOAD)

        with caplog.at_level(logging.WARNING, logger="oxels"):
            raw = read_voxel_bytes(parse_header(path), path)

        assert raw == PAYLOAD
        assert "without conversion" in caplog.text


class TestReadCompressed:
    """Test read_voxel_bytes for zlib payloads."""

    def _write(self, tmp_path, fields, payload):
        fields['CompressedData'] = 'True'
        path = tmp_path / "volume.mha"
        write_meta_file(path, fields, payload)
        return path

    def test_inflates_payload(self, tmp_path, sample_header_fields):
        path = self._write(tmp_path, sample_header_fields, zlib.compress(PAYLOAD))
        assert read_voxel_bytes(parse_header(path), path) == PAYLOAD

    def test_truncated_stream(self, tmp_path, sample_header_fields):
        compressed = zlib.compress(PAYLOAD)
        path = self._write(tmp_path, sample_header_fields, compressed[:len(compressed) // 2])

        with pytest.raises(DecompressionError) as exc_info:
            read_voxel_bytes(parse_header(path), path)
        assert exc_info.value.error_code == "DECOMPRESSION_FAILED"

    def test_garbage_stream(self, tmp_path, sample_header_fields):
        path = self._write(tmp_path, sample_header_fields, b"definitely not zlib")
        with pytest.raises(DecompressionError):
            read_voxel_bytes(parse_header(path), path)

    def test_stream_shorter_than_declared(self, tmp_path, sample_header_fields):
        path = self._write(tmp_path, sample_header_fields, zlib.compress(PAYLOAD[:8]))

        with pytest.raises(BufferSizeMismatchError) as exc_info:
            read_voxel_bytes(parse_header(path), path)
        assert exc_info.value.expected == 16
        assert exc_info.value.actual == 8

    def test_stream_longer_than_declared(self, tmp_path, sample_header_fields):
        path = self._write(tmp_path, sample_header_fields, zlib.compress(PAYLOAD * 1000))

        with pytest.raises(BufferSizeMismatchError):
            read_voxel_bytes(parse_header(path), path)

    @pytest.mark.parametrize("dims", [
        '4294967295 4294967295 4294967295',
        '100000 100000 100000',
    ])
    def test_huge_declaration_fails_before_inflating(self, tmp_path, sample_header_fields, dims):
        sample_header_fields['DimSize'] = dims
        sample_header_fields['ElementType'] = 'MET_DOUBLE'
        path = self._write(tmp_path, sample_header_fields, zlib.compress(PAYLOAD))

        with pytest.raises(BufferSizeMismatchError) as exc_info:
            read_voxel_bytes(parse_header(path), path)
        assert exc_info.value.actual is None


class TestReadExternal:
    """Test read_voxel_bytes for sidecar payloads."""

    def test_reads_sidecar_from_offset_zero(self, tmp_path, sample_header_fields):
        sample_header_fields['ElementDataFile'] = 'volume.raw'
        path = tmp_path / "volume.mhd"
        write_meta_file(path, sample_header_fields)
        (tmp_path / "volume.raw").write_bytes(PAYLOAD)

        assert read_voxel_bytes(parse_header(path), path) == PAYLOAD

    def test_missing_sidecar(self, tmp_path, sample_header_fields):
        sample_header_fields['ElementDataFile'] = 'missing.raw'
        path = tmp_path / "volume.mhd"
        write_meta_file(path, sample_header_fields)

        with pytest.raises(DataIOError) as exc_info:
            read_voxel_bytes(parse_header(path), path)
        assert exc_info.value.file_path == str(tmp_path / "missing.raw")


class TestWrite:
    """Test write_voxel_bytes."""

    def test_inline_layout(self, tmp_path, make_image):
        image = make_image(np.int16)
        path = tmp_path / "volume.mha"

        written = write_voxel_bytes(image, path, Placement.INLINE, compress=False)

        assert written == [path]
        header = parse_header(path)
        assert header.is_local
        assert path.read_bytes()[header.header_byte_length:] == image.voxels.tobytes()

    def test_external_compressed_layout(self, tmp_path, make_image):
        image = make_image(np.float64)
        path = tmp_path / "volume.mhd"

        written = write_voxel_bytes(image, path, Placement.EXTERNAL, compress=True)

        sidecar = tmp_path / "volume.zraw"
        assert written == [path, sidecar]
        assert_file_exists(sidecar)
        header = parse_header(path)
        assert header.element_data_file == "volume.zraw"
        assert header.compressed_data_size == sidecar.stat().st_size
        assert zlib.decompress(sidecar.read_bytes()) == image.voxels.tobytes()
        assert path.stat().st_size == header.header_byte_length

    def test_external_raw_layout(self, tmp_path, make_image):
        image = make_image(np.uint8)
        path = tmp_path / "volume.mhd"

        write_voxel_bytes(image, path, Placement.EXTERNAL, compress=False)

        assert (tmp_path / "volume.raw").read_bytes() == image.voxels.tobytes()
        assert not (tmp_path / "volume.zraw").exists()

    def test_configured_sidecar_extension(self, tmp_path, make_image):
        get_config().metaimage.raw_extension = ".img"
        path = tmp_path / "volume.mhd"

        written = write_voxel_bytes(make_image(np.uint8), path, Placement.EXTERNAL, compress=False)

        assert written[1] == tmp_path / "volume.img"

    def test_unwritable_destination(self, tmp_path, make_image):
        path = tmp_path / "no_such_dir" / "volume.mha"
        with pytest.raises(DataIOError):
            write_voxel_bytes(make_image(np.uint8), path, Placement.INLINE, compress=False)

    def test_failed_sidecar_removes_header(self, tmp_path, make_image):
        path = tmp_path / "volume.mhd"
        (tmp_path / "volume.raw").mkdir()

        with pytest.raises(DataIOError):
            write_voxel_bytes(make_image(np.uint8), path, Placement.EXTERNAL, compress=False)

        assert not path.exists()
