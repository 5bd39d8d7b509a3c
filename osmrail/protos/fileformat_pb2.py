"""Message classes for the OSM PBF ``fileformat.proto`` schema.

The descriptor is assembled from a ``FileDescriptorProto`` and registered in the
default pool, the same way ``protoc`` output registers its serialized file.
"""

from __future__ import annotations

from google.protobuf import descriptor_pb2
from google.protobuf import descriptor_pool
from google.protobuf import message_factory

FieldProto = descriptor_pb2.FieldDescriptorProto

OPTIONAL = FieldProto.LABEL_OPTIONAL
REQUIRED = FieldProto.LABEL_REQUIRED


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="osmrail/fileformat.proto",
        package="OSMPBF",
        syntax="proto2",
    )

    blob = file_proto.message_type.add(name="Blob")
    blob.oneof_decl.add(name="data")
    blob.field.add(name="raw_size", number=2, type=FieldProto.TYPE_INT32, label=OPTIONAL)
    for name, number in (
        ("raw", 1),
        ("zlib_data", 3),
        ("lzma_data", 4),
        ("OBSOLETE_bzip2_data", 5),
        ("lz4_data", 6),
        ("zstd_data", 7),
    ):
        blob.field.add(name=name, number=number, type=FieldProto.TYPE_BYTES, label=OPTIONAL, oneof_index=0)

    header = file_proto.message_type.add(name="BlobHeader")
    header.field.add(name="type", number=1, type=FieldProto.TYPE_STRING, label=REQUIRED)
    header.field.add(name="indexdata", number=2, type=FieldProto.TYPE_BYTES, label=OPTIONAL)
    header.field.add(name="datasize", number=3, type=FieldProto.TYPE_INT32, label=REQUIRED)

    return file_proto


_pool = descriptor_pool.Default()
_pool.AddSerializedFile(_build_file().SerializeToString())

Blob = message_factory.GetMessageClass(_pool.FindMessageTypeByName("OSMPBF.Blob"))
BlobHeader = message_factory.GetMessageClass(_pool.FindMessageTypeByName("OSMPBF.BlobHeader"))
