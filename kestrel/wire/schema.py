"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Protobuf schema of the key transparency wire protocol.

The descriptors are assembled at import time from the table below, which
preserves the field numbers and types of the protocol definition
(package signal.keytrans.wire, proto3). Message classes are generated by the
protobuf runtime from these descriptors.
"""

from typing import Dict, List, Optional, Tuple

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

_F = descriptor_pb2.FieldDescriptorProto

PROTO_PACKAGE = "signal.keytrans.wire"
PROTO_FILE = "signal/keytrans/wire.proto"

# (name, number, type, repeated, message type or None, proto3 optional)
FieldSpec = Tuple[str, int, int, bool, Optional[str], bool]

MESSAGES: Dict[str, List[FieldSpec]] = {
    "PrefixProof": [
        ("proof", 1, _F.TYPE_BYTES, True, None, False),
        ("counter", 2, _F.TYPE_UINT32, False, None, False),
    ],
    "TreeHead": [
        ("tree_size", 1, _F.TYPE_UINT64, False, None, False),
        ("timestamp", 2, _F.TYPE_INT64, False, None, False),
        ("signature", 3, _F.TYPE_BYTES, False, None, False),
    ],
    "AuditorTreeHead": [
        ("tree_head", 1, _F.TYPE_MESSAGE, False, "TreeHead", False),
        ("root_value", 2, _F.TYPE_BYTES, False, None, True),
        ("consistency", 3, _F.TYPE_BYTES, True, None, False),
    ],
    "FullTreeHead": [
        ("tree_head", 1, _F.TYPE_MESSAGE, False, "TreeHead", False),
        ("distinguished", 2, _F.TYPE_BYTES, True, None, False),
        ("consistency", 3, _F.TYPE_BYTES, True, None, False),
        ("auditor_tree_head", 4, _F.TYPE_MESSAGE, False, "AuditorTreeHead", False),
    ],
    "ProofStep": [
        ("prefix", 1, _F.TYPE_MESSAGE, False, "PrefixProof", False),
        ("commitment", 2, _F.TYPE_BYTES, False, None, False),
    ],
    "SearchProof": [
        ("pos", 1, _F.TYPE_UINT64, False, None, False),
        ("steps", 2, _F.TYPE_MESSAGE, True, "ProofStep", False),
        ("inclusion", 3, _F.TYPE_BYTES, True, None, False),
    ],
    "UpdateValue": [
        ("value", 2, _F.TYPE_BYTES, False, None, False),
    ],
    "Consistency": [
        ("last", 1, _F.TYPE_UINT64, False, None, False),
        ("distinguished", 2, _F.TYPE_UINT64, False, None, True),
    ],
    "SearchRequest": [
        ("search_key", 1, _F.TYPE_STRING, False, None, False),
        ("version", 2, _F.TYPE_UINT32, False, None, True),
        ("consistency", 3, _F.TYPE_MESSAGE, False, "Consistency", False),
    ],
    "SearchResponse": [
        ("tree_head", 1, _F.TYPE_MESSAGE, False, "FullTreeHead", False),
        ("vrf_proof", 2, _F.TYPE_BYTES, False, None, False),
        ("search", 3, _F.TYPE_MESSAGE, False, "SearchProof", False),
        ("opening", 4, _F.TYPE_BYTES, False, None, False),
        ("value", 5, _F.TYPE_MESSAGE, False, "UpdateValue", False),
    ],
    "UpdateRequest": [
        ("search_key", 1, _F.TYPE_STRING, False, None, False),
        ("value", 2, _F.TYPE_BYTES, False, None, False),
        ("consistency", 3, _F.TYPE_MESSAGE, False, "Consistency", False),
    ],
    "UpdateResponse": [
        ("tree_head", 1, _F.TYPE_MESSAGE, False, "FullTreeHead", False),
        ("vrf_proof", 2, _F.TYPE_BYTES, False, None, False),
        ("search", 3, _F.TYPE_MESSAGE, False, "SearchProof", False),
        ("opening", 4, _F.TYPE_BYTES, False, None, False),
    ],
    "MonitorKey": [
        ("search_key", 1, _F.TYPE_STRING, False, None, False),
        ("entries", 2, _F.TYPE_UINT64, True, None, False),
    ],
    "MonitorRequest": [
        ("owned_keys", 1, _F.TYPE_MESSAGE, True, "MonitorKey", False),
        ("contact_keys", 2, _F.TYPE_MESSAGE, True, "MonitorKey", False),
        ("consistency", 3, _F.TYPE_MESSAGE, False, "Consistency", False),
    ],
    "MonitorProof": [
        ("steps", 1, _F.TYPE_MESSAGE, True, "ProofStep", False),
    ],
    "MonitorResponse": [
        ("tree_head", 1, _F.TYPE_MESSAGE, False, "FullTreeHead", False),
        ("owned_proofs", 2, _F.TYPE_MESSAGE, True, "MonitorProof", False),
        ("contact_proofs", 3, _F.TYPE_MESSAGE, True, "MonitorProof", False),
        ("inclusion", 4, _F.TYPE_BYTES, True, None, False),
    ],
    "StoredTreeHead": [
        ("tree_head", 1, _F.TYPE_MESSAGE, False, "TreeHead", False),
        ("root", 2, _F.TYPE_BYTES, False, None, False),
    ],
    "StoredMonitoringData": [
        ("index", 1, _F.TYPE_BYTES, False, None, False),
        ("pos", 2, _F.TYPE_UINT64, False, None, False),
        ("ptrs", 3, _F.TYPE_MESSAGE, True, "StoredMonitoringData.PtrsEntry", False),
        ("owned", 4, _F.TYPE_BOOL, False, None, False),
    ],
}


def _add_field(message: descriptor_pb2.DescriptorProto, spec: FieldSpec) -> None:
    name, number, field_type, repeated, type_name, optional = spec
    field = message.field.add()
    field.name = name
    field.number = number
    field.type = field_type
    field.label = _F.LABEL_REPEATED if repeated else _F.LABEL_OPTIONAL
    if type_name is not None:
        field.type_name = f".{PROTO_PACKAGE}.{type_name}"
    if optional:
        # proto3 "optional" is encoded as a synthetic single-field oneof.
        oneof = message.oneof_decl.add()
        oneof.name = f"_{name}"
        field.oneof_index = len(message.oneof_decl) - 1
        field.proto3_optional = True


def build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    """Assemble the FileDescriptorProto of the wire protocol."""
    file_proto = descriptor_pb2.FileDescriptorProto()
    file_proto.name = PROTO_FILE
    file_proto.package = PROTO_PACKAGE
    file_proto.syntax = "proto3"
    
    for name, fields in MESSAGES.items():
        message = file_proto.message_type.add()
        message.name = name
        for spec in fields:
            _add_field(message, spec)
        if name == "StoredMonitoringData":
            entry = message.nested_type.add()
            entry.name = "PtrsEntry"
            entry.options.map_entry = True
            _add_field(entry, ("key", 1, _F.TYPE_UINT64, False, None, False))
            _add_field(entry, ("value", 2, _F.TYPE_UINT32, False, None, False))
    
    return file_proto


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(build_file_descriptor().SerializeToString())


def message_class(name: str):
    """Return the generated protobuf class for a wire message name."""
    descriptor = _pool.FindMessageTypeByName(f"{PROTO_PACKAGE}.{name}")
    return message_factory.GetMessageClass(descriptor)
