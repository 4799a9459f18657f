"""Protobuf schema for the driver bridge payloads.

Mirrors the SlimeVR ``ProtobufMessages.proto`` subset the bridge speaks.  The
descriptors are built at import time so protoc is not needed on the driver
machine.  Every frame carries exactly one ``ProtobufMessage`` envelope with
one of the variants below set.
"""

from enum import IntEnum
from typing import Optional

from google.protobuf import descriptor_pb2
from google.protobuf import descriptor_pool as _descriptor_pool
from google.protobuf.message_factory import GetMessageClass

from .errors import EncodingError

_F = descriptor_pb2.FieldDescriptorProto

_file_proto = descriptor_pb2.FileDescriptorProto()
_file_proto.name = "slimevr_bridge/ProtobufMessages.proto"
_file_proto.package = "messages"
_file_proto.syntax = "proto3"


def _field(msg, name, number, ftype, type_name=None, repeated=False, oneof=None,
           optional=False):
    field = msg.field.add(
        name=name,
        number=number,
        label=_F.LABEL_REPEATED if repeated else _F.LABEL_OPTIONAL,
        type=ftype,
    )
    if type_name:
        field.type_name = type_name
    if oneof is not None:
        field.oneof_index = oneof
    if optional:
        # proto3 `optional`: a synthetic oneof per field, declared after real ones.
        field.proto3_optional = True
        field.oneof_index = len(msg.oneof_decl)
        msg.oneof_decl.add(name=f"_{name}")
    return field


def _enum(msg, name, values):
    enum = msg.enum_type.add(name=name)
    for value_name, number in values:
        enum.value.add(name=value_name, number=number)


def _string_map(msg, field_name, entry_name, number):
    entry = msg.nested_type.add(name=entry_name)
    entry.options.map_entry = True
    _field(entry, "key", 1, _F.TYPE_STRING)
    _field(entry, "value", 2, _F.TYPE_STRING)
    _field(msg, field_name, number, _F.TYPE_MESSAGE,
           f".messages.{msg.name}.{entry_name}", repeated=True)


_position = _file_proto.message_type.add(name="Position")
_enum(_position, "DataSource",
      [("NONE", 0), ("IMU", 1), ("PRECISION", 2), ("FULL", 3)])
_field(_position, "tracker_id", 1, _F.TYPE_INT32)
for _number, _name in enumerate(("x", "y", "z"), start=2):
    _field(_position, _name, _number, _F.TYPE_FLOAT, optional=True)
for _number, _name in enumerate(("qx", "qy", "qz", "qw"), start=5):
    _field(_position, _name, _number, _F.TYPE_FLOAT)
_field(_position, "data_source", 9, _F.TYPE_ENUM, ".messages.Position.DataSource",
       optional=True)

_user_action = _file_proto.message_type.add(name="UserAction")
_field(_user_action, "name", 1, _F.TYPE_STRING)
_string_map(_user_action, "action_arguments", "ActionArgumentsEntry", 2)

_tracker_added = _file_proto.message_type.add(name="TrackerAdded")
_field(_tracker_added, "tracker_id", 1, _F.TYPE_INT32)
_field(_tracker_added, "tracker_serial", 2, _F.TYPE_STRING)
_field(_tracker_added, "tracker_name", 3, _F.TYPE_STRING)
_field(_tracker_added, "tracker_role", 4, _F.TYPE_INT32)

_tracker_status = _file_proto.message_type.add(name="TrackerStatus")
_enum(_tracker_status, "Status",
      [("DISCONNECTED", 0), ("OK", 1), ("BUSY", 2), ("ERROR", 3), ("OCCLUDED", 4)])
_enum(_tracker_status, "Confidence",
      [("NO", 0), ("LOW", 1), ("MEDIUM", 5), ("HIGH", 10)])
_field(_tracker_status, "tracker_id", 1, _F.TYPE_INT32)
_field(_tracker_status, "status", 2, _F.TYPE_ENUM, ".messages.TrackerStatus.Status")
_string_map(_tracker_status, "extra", "ExtraEntry", 3)
_field(_tracker_status, "confidence", 4, _F.TYPE_ENUM,
       ".messages.TrackerStatus.Confidence", optional=True)

_envelope = _file_proto.message_type.add(name="ProtobufMessage")
_envelope.oneof_decl.add(name="message")
_field(_envelope, "position", 1, _F.TYPE_MESSAGE, ".messages.Position", oneof=0)
_field(_envelope, "user_action", 2, _F.TYPE_MESSAGE, ".messages.UserAction", oneof=0)
_field(_envelope, "tracker_added", 3, _F.TYPE_MESSAGE, ".messages.TrackerAdded", oneof=0)
_field(_envelope, "tracker_status", 4, _F.TYPE_MESSAGE, ".messages.TrackerStatus", oneof=0)

DESCRIPTOR = _descriptor_pool.Default().AddSerializedFile(
    _file_proto.SerializeToString()
)

Position = GetMessageClass(DESCRIPTOR.message_types_by_name["Position"])
UserAction = GetMessageClass(DESCRIPTOR.message_types_by_name["UserAction"])
TrackerAdded = GetMessageClass(DESCRIPTOR.message_types_by_name["TrackerAdded"])
TrackerStatus = GetMessageClass(DESCRIPTOR.message_types_by_name["TrackerStatus"])
ProtobufMessage = GetMessageClass(DESCRIPTOR.message_types_by_name["ProtobufMessage"])


class TrackerRole(IntEnum):
    NONE = 0
    WAIST = 1
    LEFT_FOOT = 2
    RIGHT_FOOT = 3
    CHEST = 4
    LEFT_KNEE = 5
    RIGHT_KNEE = 6
    LEFT_ELBOW = 7
    RIGHT_ELBOW = 8
    LEFT_SHOULDER = 9
    RIGHT_SHOULDER = 10
    LEFT_HAND = 11
    RIGHT_HAND = 12
    LEFT_CONTROLLER = 13
    RIGHT_CONTROLLER = 14
    HEAD = 15
    NECK = 16
    CAMERA = 17
    KEYBOARD = 18
    HMD = 19
    BEACON = 20
    GENERIC_CONTROLLER = 21


class Status(IntEnum):
    DISCONNECTED = 0
    OK = 1
    BUSY = 2
    ERROR = 3
    OCCLUDED = 4


class Confidence(IntEnum):
    NO = 0
    LOW = 1
    MEDIUM = 5
    HIGH = 10


class DataSource(IntEnum):
    NONE = 0
    IMU = 1
    PRECISION = 2
    FULL = 3


def _wrap(variant: str, cls, **fields):
    try:
        return ProtobufMessage(**{variant: cls(**fields)})
    except (TypeError, ValueError) as e:
        raise EncodingError(f"invalid {cls.__name__} field: {e}") from e


def tracker_added(tracker_id: int, serial: str, role: int,
                  display_name: str) -> ProtobufMessage:
    return _wrap("tracker_added", TrackerAdded,
                 tracker_id=tracker_id,
                 tracker_serial=serial,
                 tracker_name=display_name,
                 tracker_role=int(role))


def position(tracker_id: int, x: float, y: float, z: float,
             qx: float, qy: float, qz: float, qw: float,
             data_source: Optional[int] = None) -> ProtobufMessage:
    fields = dict(tracker_id=tracker_id,
                  x=x, y=y, z=z, qx=qx, qy=qy, qz=qz, qw=qw)
    if data_source is not None:
        fields["data_source"] = int(data_source)
    return _wrap("position", Position, **fields)


def tracker_status(tracker_id: int, status: int, confidence: int,
                   extra=None) -> ProtobufMessage:
    return _wrap("tracker_status", TrackerStatus,
                 tracker_id=tracker_id,
                 status=int(status),
                 confidence=int(confidence),
                 extra=dict(extra or {}))


def user_action(name: str, arguments=None) -> ProtobufMessage:
    return _wrap("user_action", UserAction,
                 name=name, action_arguments=dict(arguments or {}))


def message_kind(message) -> str:
    """Name of the variant set in *message*, or ``None`` for an empty envelope."""
    return message.WhichOneof("message")
