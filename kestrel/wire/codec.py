"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Kestrel, a product of Garudex Labs

Binary encoding of wire and storage messages.

Messages travel through the protobuf runtime: dataclass -> proto3 JSON
mapping -> generated protobuf message -> deterministic binary encoding, and
back. Any failure is reported as WireFormatError.
"""

from typing import Type, TypeVar

from google.protobuf import json_format
from google.protobuf.message import DecodeError, EncodeError

from kestrel.exceptions import WireFormatError
from kestrel.wire.schema import message_class

T = TypeVar("T")


def _proto_class(message_type: type):
    try:
        return message_class(message_type.__name__)
    except KeyError as e:
        raise WireFormatError(f"{message_type.__name__} is not a wire message") from e


def to_proto(message):
    """Convert a message dataclass into its generated protobuf message."""
    proto = _proto_class(type(message))()
    try:
        json_format.ParseDict(message.to_dict(), proto)
    except json_format.ParseError as e:
        raise WireFormatError(f"Cannot encode {type(message).__name__}: {e}") from e
    return proto


def from_proto(message_type: Type[T], proto) -> T:
    data = json_format.MessageToDict(proto, preserving_proto_field_name=True)
    try:
        return message_type.from_dict(data)
    except (TypeError, ValueError) as e:
        raise WireFormatError(f"Cannot decode {message_type.__name__}: {e}") from e


def encode(message) -> bytes:
    """
    Encode a message dataclass to protobuf binary.
    
    Args:
        message: Any dataclass from kestrel.wire.messages
    
    Returns:
        Deterministic protobuf encoding
    
    Raises:
        WireFormatError: If the message cannot be represented on the wire
    """
    proto = to_proto(message)
    try:
        return proto.SerializeToString(deterministic=True)
    except EncodeError as e:
        raise WireFormatError(f"Cannot encode {type(message).__name__}: {e}") from e


def decode(message_type: Type[T], data: bytes) -> T:
    """
    Decode protobuf binary into a message dataclass.
    
    Args:
        message_type: Dataclass from kestrel.wire.messages
        data: Protobuf encoded bytes
    
    Returns:
        Decoded message
    
    Raises:
        WireFormatError: If data is not a valid encoding of message_type
    """
    proto = _proto_class(message_type)()
    try:
        proto.ParseFromString(data)
    except DecodeError as e:
        raise WireFormatError(f"Cannot decode {message_type.__name__}: {e}") from e
    return from_proto(message_type, proto)
