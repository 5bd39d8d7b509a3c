"""Message classes for the OSM PBF ``osmformat.proto`` schema."""

from __future__ import annotations

from google.protobuf import descriptor_pb2
from google.protobuf import descriptor_pool
from google.protobuf import message_factory

FieldProto = descriptor_pb2.FieldDescriptorProto

OPTIONAL = FieldProto.LABEL_OPTIONAL
REQUIRED = FieldProto.LABEL_REQUIRED
REPEATED = FieldProto.LABEL_REPEATED

PACKAGE = "OSMPBF"


def _add_field(
    message: descriptor_pb2.DescriptorProto,
    name: str,
    number: int,
    field_type: int,
    label: int = OPTIONAL,
    type_name: str | None = None,
    default: str | None = None,
    packed: bool = False,
) -> None:
    field = message.field.add(name=name, number=number, type=field_type, label=label)
    if type_name is not None:
        field.type_name = f".{PACKAGE}.{type_name}"
    if default is not None:
        field.default_value = default
    if packed:
        field.options.packed = True


def _add_packed(message: descriptor_pb2.DescriptorProto, name: str, number: int, field_type: int) -> None:
    _add_field(message, name, number, field_type, label=REPEATED, packed=True)


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="osmrail/osmformat.proto",
        package=PACKAGE,
        syntax="proto2",
    )

    bbox = file_proto.message_type.add(name="HeaderBBox")
    for name, number in (("left", 1), ("right", 2), ("top", 3), ("bottom", 4)):
        _add_field(bbox, name, number, FieldProto.TYPE_SINT64, label=REQUIRED)

    header = file_proto.message_type.add(name="HeaderBlock")
    _add_field(header, "bbox", 1, FieldProto.TYPE_MESSAGE, type_name="HeaderBBox")
    _add_field(header, "required_features", 4, FieldProto.TYPE_STRING, label=REPEATED)
    _add_field(header, "optional_features", 5, FieldProto.TYPE_STRING, label=REPEATED)
    _add_field(header, "writingprogram", 16, FieldProto.TYPE_STRING)
    _add_field(header, "source", 17, FieldProto.TYPE_STRING)
    _add_field(header, "osmosis_replication_timestamp", 32, FieldProto.TYPE_INT64)
    _add_field(header, "osmosis_replication_sequence_number", 33, FieldProto.TYPE_INT64)
    _add_field(header, "osmosis_replication_base_url", 34, FieldProto.TYPE_STRING)

    string_table = file_proto.message_type.add(name="StringTable")
    _add_field(string_table, "s", 1, FieldProto.TYPE_BYTES, label=REPEATED)

    block = file_proto.message_type.add(name="PrimitiveBlock")
    _add_field(block, "stringtable", 1, FieldProto.TYPE_MESSAGE, label=REQUIRED, type_name="StringTable")
    _add_field(block, "primitivegroup", 2, FieldProto.TYPE_MESSAGE, label=REPEATED, type_name="PrimitiveGroup")
    _add_field(block, "granularity", 17, FieldProto.TYPE_INT32, default="100")
    _add_field(block, "date_granularity", 18, FieldProto.TYPE_INT32, default="1000")
    _add_field(block, "lat_offset", 19, FieldProto.TYPE_INT64, default="0")
    _add_field(block, "lon_offset", 20, FieldProto.TYPE_INT64, default="0")

    group = file_proto.message_type.add(name="PrimitiveGroup")
    _add_field(group, "nodes", 1, FieldProto.TYPE_MESSAGE, label=REPEATED, type_name="Node")
    _add_field(group, "dense", 2, FieldProto.TYPE_MESSAGE, type_name="DenseNodes")
    _add_field(group, "ways", 3, FieldProto.TYPE_MESSAGE, label=REPEATED, type_name="Way")
    _add_field(group, "relations", 4, FieldProto.TYPE_MESSAGE, label=REPEATED, type_name="Relation")
    _add_field(group, "changesets", 5, FieldProto.TYPE_MESSAGE, label=REPEATED, type_name="ChangeSet")

    info = file_proto.message_type.add(name="Info")
    _add_field(info, "version", 1, FieldProto.TYPE_INT32, default="-1")
    _add_field(info, "timestamp", 2, FieldProto.TYPE_INT64)
    _add_field(info, "changeset", 3, FieldProto.TYPE_INT64)
    _add_field(info, "uid", 4, FieldProto.TYPE_INT32)
    _add_field(info, "user_sid", 5, FieldProto.TYPE_UINT32)
    _add_field(info, "visible", 6, FieldProto.TYPE_BOOL)

    dense_info = file_proto.message_type.add(name="DenseInfo")
    _add_packed(dense_info, "version", 1, FieldProto.TYPE_INT32)
    _add_packed(dense_info, "timestamp", 2, FieldProto.TYPE_SINT64)
    _add_packed(dense_info, "changeset", 3, FieldProto.TYPE_SINT64)
    _add_packed(dense_info, "uid", 4, FieldProto.TYPE_SINT32)
    _add_packed(dense_info, "user_sid", 5, FieldProto.TYPE_SINT32)
    _add_packed(dense_info, "visible", 6, FieldProto.TYPE_BOOL)

    changeset = file_proto.message_type.add(name="ChangeSet")
    _add_field(changeset, "id", 1, FieldProto.TYPE_INT64, label=REQUIRED)

    node = file_proto.message_type.add(name="Node")
    _add_field(node, "id", 1, FieldProto.TYPE_SINT64, label=REQUIRED)
    _add_packed(node, "keys", 2, FieldProto.TYPE_UINT32)
    _add_packed(node, "vals", 3, FieldProto.TYPE_UINT32)
    _add_field(node, "info", 4, FieldProto.TYPE_MESSAGE, type_name="Info")
    _add_field(node, "lat", 8, FieldProto.TYPE_SINT64, label=REQUIRED)
    _add_field(node, "lon", 9, FieldProto.TYPE_SINT64, label=REQUIRED)

    dense = file_proto.message_type.add(name="DenseNodes")
    _add_packed(dense, "id", 1, FieldProto.TYPE_SINT64)
    _add_field(dense, "denseinfo", 5, FieldProto.TYPE_MESSAGE, type_name="DenseInfo")
    _add_packed(dense, "lat", 8, FieldProto.TYPE_SINT64)
    _add_packed(dense, "lon", 9, FieldProto.TYPE_SINT64)
    _add_packed(dense, "keys_vals", 10, FieldProto.TYPE_INT32)

    way = file_proto.message_type.add(name="Way")
    _add_field(way, "id", 1, FieldProto.TYPE_INT64, label=REQUIRED)
    _add_packed(way, "keys", 2, FieldProto.TYPE_UINT32)
    _add_packed(way, "vals", 3, FieldProto.TYPE_UINT32)
    _add_field(way, "info", 4, FieldProto.TYPE_MESSAGE, type_name="Info")
    _add_packed(way, "refs", 8, FieldProto.TYPE_SINT64)
    _add_packed(way, "lat", 9, FieldProto.TYPE_SINT64)
    _add_packed(way, "lon", 10, FieldProto.TYPE_SINT64)

    relation = file_proto.message_type.add(name="Relation")
    member_type = relation.enum_type.add(name="MemberType")
    for name, number in (("NODE", 0), ("WAY", 1), ("RELATION", 2)):
        member_type.value.add(name=name, number=number)
    _add_field(relation, "id", 1, FieldProto.TYPE_INT64, label=REQUIRED)
    _add_packed(relation, "keys", 2, FieldProto.TYPE_UINT32)
    _add_packed(relation, "vals", 3, FieldProto.TYPE_UINT32)
    _add_field(relation, "info", 4, FieldProto.TYPE_MESSAGE, type_name="Info")
    _add_packed(relation, "roles_sid", 8, FieldProto.TYPE_INT32)
    _add_packed(relation, "memids", 9, FieldProto.TYPE_SINT64)
    relation.field.add(
        name="types",
        number=10,
        type=FieldProto.TYPE_ENUM,
        label=REPEATED,
        type_name=f".{PACKAGE}.Relation.MemberType",
    ).options.packed = True

    return file_proto


_pool = descriptor_pool.Default()
_pool.AddSerializedFile(_build_file().SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


HeaderBBox = _message_class("HeaderBBox")
HeaderBlock = _message_class("HeaderBlock")
StringTable = _message_class("StringTable")
PrimitiveBlock = _message_class("PrimitiveBlock")
PrimitiveGroup = _message_class("PrimitiveGroup")
Info = _message_class("Info")
DenseInfo = _message_class("DenseInfo")
ChangeSet = _message_class("ChangeSet")
Node = _message_class("Node")
DenseNodes = _message_class("DenseNodes")
Way = _message_class("Way")
Relation = _message_class("Relation")
