from __future__ import annotations

import lzma
import zlib
from collections.abc import Generator
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO

import zstd
from google.protobuf.message import DecodeError

from osmrail.errors import SourceFormatError
from osmrail.protos.fileformat_pb2 import Blob
from osmrail.protos.fileformat_pb2 import BlobHeader
from osmrail.protos.osmformat_pb2 import HeaderBlock
from osmrail.protos.osmformat_pb2 import PrimitiveBlock

# Limits from the PBF format description.
MAX_HEADER_SIZE = 64 * 1024
MAX_BLOB_SIZE = 32 * 1024 * 1024

SUPPORTED_FEATURES = frozenset({"OsmSchema-V0.6", "DenseNodes"})


class BlobType(Enum):
    OSM_HEADER = "OSMHeader"
    OSM_DATA = "OSMData"


@dataclass(frozen=True)
class BlobData:
    header: BlobHeader
    header_data: bytes
    blob_data: bytes

    @property
    def type(self) -> str:
        return self.header.type


def _read_exact(source: BinaryIO, size: int, what: str) -> bytes:
    data = source.read(size)
    if len(data) != size:
        raise SourceFormatError(f"Truncated {what}: expected {size} bytes, got {len(data)}")
    return data


def read_blob_data(source: BinaryIO) -> BlobData | None:
    data = source.read(4)
    if len(data) == 0:
        return None
    if len(data) != 4:
        raise SourceFormatError(f"Truncated blob header length: got {len(data)} bytes")

    header_size = int.from_bytes(data, "big")
    if header_size > MAX_HEADER_SIZE:
        raise SourceFormatError(f"Blob header of {header_size} bytes exceeds {MAX_HEADER_SIZE}")

    header_data = _read_exact(source, header_size, "blob header")
    try:
        blob_header = BlobHeader.FromString(header_data)
    except DecodeError as e:
        raise SourceFormatError(f"Invalid blob header: {e}") from e

    if not 0 <= blob_header.datasize <= MAX_BLOB_SIZE:
        raise SourceFormatError(f"Blob size {blob_header.datasize} outside of [0, {MAX_BLOB_SIZE}]")

    blob_data = _read_exact(source, blob_header.datasize, "blob")

    return BlobData(header=blob_header, header_data=header_data, blob_data=blob_data)


def read_blobs(source: BinaryIO) -> Generator[BlobData, None, None]:
    while True:
        data = read_blob_data(source)
        if data is None:
            return
        yield data


def decompress_blob(blob: Blob) -> bytes:
    try:
        match blob.WhichOneof("data"):
            case "raw":
                return blob.raw
            case "zlib_data":
                return zlib.decompress(blob.zlib_data)
            case "zstd_data":
                return zstd.decompress(blob.zstd_data)
            case "lzma_data":
                return lzma.decompress(blob.lzma_data)
            case None:
                raise SourceFormatError("Blob has no data")
            case other:
                raise SourceFormatError(f"Unsupported blob compression: {other}")
    except (zlib.error, lzma.LZMAError, zstd.Error) as e:
        raise SourceFormatError(f"Corrupt compressed blob: {e}") from e


def _parse_blob(blob_data: bytes) -> bytes:
    try:
        blob = Blob.FromString(blob_data)
    except DecodeError as e:
        raise SourceFormatError(f"Invalid blob: {e}") from e
    return decompress_blob(blob)


def decode_header_blob(blob_data: bytes) -> HeaderBlock:
    data = _parse_blob(blob_data)
    try:
        return HeaderBlock.FromString(data)
    except DecodeError as e:
        raise SourceFormatError(f"Invalid header block: {e}") from e


def decode_primitive_blob(blob_data: bytes) -> PrimitiveBlock:
    data = _parse_blob(blob_data)
    try:
        return PrimitiveBlock.FromString(data)
    except DecodeError as e:
        raise SourceFormatError(f"Invalid primitive block: {e}") from e


def check_header(header: HeaderBlock) -> None:
    unsupported = set(header.required_features) - SUPPORTED_FEATURES
    if unsupported:
        raise SourceFormatError(f"Extract requires unsupported features: {', '.join(sorted(unsupported))}")
