from __future__ import annotations

import io

import pytest
from pbf_builder import BlockBuilder
from pbf_builder import encode_blob
from pbf_builder import header_blob
from pbf_builder import pbf_bytes

from osmrail.errors import SourceFormatError
from osmrail.osm.blob import BlobType
from osmrail.osm.blob import check_header
from osmrail.osm.blob import decode_header_blob
from osmrail.osm.blob import decode_primitive_blob
from osmrail.osm.blob import read_blobs


def test_read_blobs_yields_header_then_data():
    data = pbf_bytes(BlockBuilder().ways([(1, [1, 2], {"railway": "rail"})]))

    blobs = list(read_blobs(io.BytesIO(data)))

    assert [blob.type for blob in blobs] == [BlobType.OSM_HEADER.value, BlobType.OSM_DATA.value]
    header = decode_header_blob(blobs[0].blob_data)
    assert list(header.required_features) == ["OsmSchema-V0.6", "DenseNodes"]


def test_empty_stream_has_no_blobs():
    assert list(read_blobs(io.BytesIO(b""))) == []


@pytest.mark.parametrize("compression", ["raw", "zlib", "zstd"])
def test_decode_primitive_blob_for_each_compression(compression):
    block = BlockBuilder().ways([(7, [3, 4], {"railway": "rail"})])
    data = encode_blob(block.serialize(), compression=compression)

    (blob,) = read_blobs(io.BytesIO(data))
    decoded = decode_primitive_blob(blob.blob_data)

    assert decoded.primitivegroup[0].ways[0].id == 7


def test_unsupported_compression_is_a_source_error():
    data = encode_blob(BlockBuilder().serialize(), compression="lz4")
    (blob,) = read_blobs(io.BytesIO(data))

    with pytest.raises(SourceFormatError, match="lz4_data"):
        decode_primitive_blob(blob.blob_data)


@pytest.mark.parametrize("cut", [2, 10, -3])
def test_truncated_stream_is_a_source_error(cut):
    data = pbf_bytes(BlockBuilder().ways([(1, [1, 2], {"railway": "rail"})]))

    with pytest.raises(SourceFormatError, match="Truncated"):
        list(read_blobs(io.BytesIO(data[:cut])))


def test_oversized_header_is_rejected():
    data = (10 * 1024 * 1024).to_bytes(4, "big") + b"\x00" * 16

    with pytest.raises(SourceFormatError, match="exceeds"):
        list(read_blobs(io.BytesIO(data)))


def test_garbage_blob_payload_is_a_source_error():
    data = encode_blob(b"\xff\xff\xff", compression="raw")
    (blob,) = read_blobs(io.BytesIO(data))

    with pytest.raises(SourceFormatError):
        decode_primitive_blob(blob.blob_data)


def test_check_header_rejects_unknown_required_features():
    (blob,) = read_blobs(io.BytesIO(header_blob(("OsmSchema-V0.6", "HistoricalInformation"))))

    with pytest.raises(SourceFormatError, match="HistoricalInformation"):
        check_header(decode_header_blob(blob.blob_data))
