"""Parsing and writing of the send table / server class block of a demo."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional

from .bitio import BitReader, BitstreamOverflowError, BitWriter
from .version import DemoVersion, Game

__all__ = [
    "DataTableError",
    "SendPropType",
    "SendProp",
    "SendTable",
    "ServerClass",
    "DataTables",
    "parse_datatables",
    "write_datatables",
]

_MAX_STRING = 1024


class DataTableError(ValueError):
    """Raised when a datatables block is malformed or cannot be written."""


class SendPropType(enum.Enum):
    INT = "int"
    FLOAT = "float"
    VECTOR3 = "vector3"
    VECTOR2 = "vector2"
    STRING = "string"
    ARRAY = "array"
    DATATABLE = "datatable"
    INVALID = "invalid"


_OLD_PROPS = (
    SendPropType.INT,
    SendPropType.FLOAT,
    SendPropType.VECTOR3,
    SendPropType.STRING,
    SendPropType.ARRAY,
    SendPropType.DATATABLE,
)

_NEW_PROPS = (
    SendPropType.INT,
    SendPropType.FLOAT,
    SendPropType.VECTOR3,
    SendPropType.VECTOR2,
    SendPropType.STRING,
    SendPropType.ARRAY,
    SendPropType.DATATABLE,
)

_COMMON_FLAGS = (
    "flag_unsigned",
    "flag_coord",
    "flag_noscale",
    "flag_rounddown",
    "flag_roundup",
    "flag_normal",
    "flag_exclude",
    "flag_xyze",
    "flag_insidearray",
    "flag_proxyalwaysyes",
)

_NARROW_FLAGS = _COMMON_FLAGS + (
    "flag_changesoften",
    "flag_isvectorelem",
    "flag_collapsible",
    "flag_coordmp",
    "flag_coordmplp",
    "flag_coordmpint",
)

_WIDE_FLAGS = _COMMON_FLAGS + (
    "flag_isvectorelem",
    "flag_collapsible",
    "flag_coordmp",
    "flag_coordmplp",
    "flag_coordmpint",
    "flag_cellcoord",
    "flag_cellcoordlp",
    "flag_cellcoordint",
    "flag_changesoften",
)


@dataclass
class SendProp:
    """One property of a send table.

    ``baseclass`` is the owning table for value props and, once resolved, the
    referenced table for datatable props. ``array_prop`` is the element prop
    of an array.
    """

    proptype: SendPropType
    name: str = ""
    priority: int = 0
    dtname: Optional[str] = None
    exclude_name: Optional[str] = None
    array_num_elements: int = 0
    low_value: float = 0.0
    high_value: float = 0.0
    numbits: int = 0
    flag_unsigned: bool = False
    flag_coord: bool = False
    flag_noscale: bool = False
    flag_rounddown: bool = False
    flag_roundup: bool = False
    flag_normal: bool = False
    flag_exclude: bool = False
    flag_xyze: bool = False
    flag_insidearray: bool = False
    flag_proxyalwaysyes: bool = False
    flag_changesoften: bool = False
    flag_isvectorelem: bool = False
    flag_collapsible: bool = False
    flag_coordmp: bool = False
    flag_coordmplp: bool = False
    flag_coordmpint: bool = False
    flag_cellcoord: bool = False
    flag_cellcoordlp: bool = False
    flag_cellcoordint: bool = False
    array_prop: Optional["SendProp"] = field(default=None, repr=False, compare=False)
    baseclass: Optional["SendTable"] = field(default=None, repr=False, compare=False)


@dataclass
class SendTable:
    name: str
    props: list[SendProp] = field(default_factory=list)
    needs_decoder: bool = False


@dataclass
class ServerClass:
    serverclass_id: int
    name: str
    datatable_name: str


@dataclass
class DataTables:
    """Parsed datatables; ``raw`` keeps the original bytes for exact rewriting."""

    sendtables: list[SendTable] = field(default_factory=list)
    serverclasses: list[ServerClass] = field(default_factory=list)
    raw: bytes = field(default=b"", repr=False, compare=False)


def _prop_types(version: DemoVersion) -> tuple[SendPropType, ...]:
    return _OLD_PROPS if version.network_protocol <= 14 else _NEW_PROPS


def _flag_layout(version: DemoVersion) -> tuple[str, ...]:
    return _NARROW_FLAGS if version.sendprop_flag_bits <= 16 else _WIDE_FLAGS


def _has_priority(version: DemoVersion) -> bool:
    return version.demo_protocol >= 4 and version.game is not Game.L4D


def _read_sendprop(
    reader: BitReader, version: DemoVersion, table: SendTable
) -> SendProp:
    raw = reader.read_uint(5)
    types = _prop_types(version)
    if raw >= len(types):
        raise DataTableError("Invalid sendprop type in datatable")

    prop = SendProp(types[raw], reader.read_cstring(_MAX_STRING))
    flags = reader.read_uint(version.sendprop_flag_bits)
    for bit, name in enumerate(_flag_layout(version)):
        setattr(prop, name, bool((flags >> bit) & 1))

    if _has_priority(version):
        prop.priority = reader.read_uint(8)

    if prop.proptype is SendPropType.DATATABLE:
        prop.dtname = reader.read_cstring(_MAX_STRING)
    elif prop.flag_exclude:
        prop.exclude_name = reader.read_cstring(_MAX_STRING)
    elif prop.proptype is SendPropType.ARRAY:
        prop.baseclass = table
        prop.array_num_elements = reader.read_uint(10)
        previous = table.props[-1] if table.props else None
        if previous is None or not previous.flag_insidearray:
            raise DataTableError("Array prop not preceded by insidearray prop")
        prop.array_prop = previous
    else:
        prop.baseclass = table
        prop.low_value = reader.read_float()
        prop.high_value = reader.read_float()
        prop.numbits = reader.read_uint(version.sendprop_numbits_for_numbits)
    return prop


def _read_sendtable(reader: BitReader, version: DemoVersion) -> SendTable:
    needs_decoder = reader.read_bit()
    table = SendTable(name=reader.read_cstring(_MAX_STRING), needs_decoder=needs_decoder)
    prop_count = reader.read_uint(version.datatable_propcount_bits)
    for _ in range(prop_count):
        table.props.append(_read_sendprop(reader, version, table))
    return table


def _read_serverclass(reader: BitReader) -> ServerClass:
    serverclass_id = reader.read_uint(16)
    name = reader.read_cstring(_MAX_STRING)
    return ServerClass(serverclass_id, name, reader.read_cstring(_MAX_STRING))


def parse_datatables(version: DemoVersion, data: bytes) -> DataTables:
    """Parse a datatables message body."""
    reader = BitReader(data)
    try:
        sendtables = []
        while reader.read_bit():
            sendtables.append(_read_sendtable(reader, version))
        count = reader.read_uint(16)
        serverclasses = [_read_serverclass(reader) for _ in range(count)]
    except BitstreamOverflowError as exc:
        raise DataTableError("Bitstream overflowed while parsing datatables") from exc

    if reader.bits_left() >= 8:
        raise DataTableError("Did not read all bits out of datatables")
    return DataTables(sendtables, serverclasses, raw=bytes(data))


def _raw_prop_type(version: DemoVersion, proptype: SendPropType) -> int:
    types = _prop_types(version)
    if proptype in types:
        return types.index(proptype)
    if proptype is SendPropType.VECTOR2:
        raise DataTableError("Unable to convert sendprop vector2")
    raise DataTableError("Unable to convert sendprop type")


def _prop_flags(version: DemoVersion, prop: SendProp) -> int:
    flags = 0
    for bit, name in enumerate(_flag_layout(version)):
        if bit < version.sendprop_flag_bits and getattr(prop, name):
            flags |= 1 << bit
    return flags


def _write_sendprop(writer: BitWriter, version: DemoVersion, prop: SendProp) -> None:
    writer.write_uint(_raw_prop_type(version, prop.proptype), 5)
    writer.write_cstring(prop.name)
    writer.write_uint(_prop_flags(version, prop), version.sendprop_flag_bits)

    if _has_priority(version):
        writer.write_uint(prop.priority, 8)

    if prop.proptype is SendPropType.DATATABLE:
        writer.write_cstring(prop.dtname or "")
    elif prop.flag_exclude:
        writer.write_cstring(prop.exclude_name or "")
    elif prop.proptype is SendPropType.ARRAY:
        writer.write_uint(prop.array_num_elements, 10)
    else:
        writer.write_float(prop.low_value)
        writer.write_float(prop.high_value)
        writer.write_uint(prop.numbits, version.sendprop_numbits_for_numbits)


def _write_sendtable(writer: BitWriter, version: DemoVersion, table: SendTable) -> None:
    writer.write_bit(table.needs_decoder)
    writer.write_cstring(table.name)
    writer.write_uint(len(table.props), version.datatable_propcount_bits)
    for prop in table.props:
        _write_sendprop(writer, version, prop)


def write_datatables(version: DemoVersion, tables: DataTables) -> bytes:
    """Serialize datatables into a message body.

    When the result is as long as the original bytes, the trailing padding
    bits are taken from them so that an unchanged block is reproduced exactly.
    """
    writer = BitWriter()
    for table in tables.sendtables:
        writer.write_bit(True)
        _write_sendtable(writer, version, table)
    writer.write_bit(False)
    writer.write_uint(len(tables.serverclasses), 16)
    for cls in tables.serverclasses:
        writer.write_uint(cls.serverclass_id, 16)
        writer.write_cstring(cls.name)
        writer.write_cstring(cls.datatable_name)

    if writer.bitoffset & 7 and tables.raw:
        if (writer.bitoffset + 7) >> 3 == len(tables.raw):
            tail = BitReader(tables.raw)
            tail.advance(writer.bitoffset)
            writer.write_bitstream(tail)
    return writer.to_bytes()