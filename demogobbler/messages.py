"""Net messages carried inside demo packets, and reading them from a bit stream."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, ClassVar, Optional, TypeVar

from .bitio import (
    BitAngleVector,
    BitReader,
    BitstreamOverflowError,
    CoordVector,
)
from .version import DemoVersion, Game, NetMessageType, parse_l4d2_build

__all__ = [
    "NetMessageError",
    "NetNop",
    "NetDisconnect",
    "NetFile",
    "NetTick",
    "NetStringCmd",
    "ConVar",
    "NetSetConVar",
    "NetSignonState",
    "SvcPrint",
    "SvcServerInfo",
    "SvcSendTable",
    "ClassInfoEntry",
    "SvcClassInfo",
    "SvcSetPause",
    "SvcCreateStringTable",
    "SvcUpdateStringTable",
    "SvcVoiceInit",
    "SvcVoiceData",
    "SvcSounds",
    "SvcSetView",
    "SvcFixAngle",
    "SvcCrosshairAngle",
    "SvcBspDecal",
    "SvcUserMessage",
    "SvcEntityMessage",
    "SvcGameEvent",
    "SvcPacketEntities",
    "SvcTempEntities",
    "SvcPrefetch",
    "SvcMenu",
    "SvcGameEventList",
    "SvcGetCvarValue",
    "NetSplitscreenUser",
    "SvcSplitscreen",
    "SvcPaintmapData",
    "SvcCmdKeyValues",
    "ParsedPacket",
    "read_netmessage",
    "read_netmessages",
]


class NetMessageError(ValueError):
    """Raised when the net messages of a packet cannot be read."""


def _empty() -> BitReader:
    return BitReader(b"")


def _data_field():
    return field(default_factory=_empty, compare=False, repr=False)


def _index_bits(value: int) -> int:
    """Bits needed for an index below ``value``: highest set bit index plus one."""
    return max(value.bit_length(), 1)


def _is_l4d2_2147(version: DemoVersion) -> bool:
    return version.game is Game.L4D2 and version.l4d2_version >= 2147


_REGISTRY: dict[NetMessageType, Callable[[BitReader, DemoVersion], object]] = {}

_T = TypeVar("_T")


def _register(cls: _T) -> _T:
    _REGISTRY[cls.mtype] = cls._read  # type: ignore[attr-defined]
    return cls


@_register
@dataclass
class NetNop:
    mtype: ClassVar[NetMessageType] = NetMessageType.NET_NOP

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "NetNop":
        return cls()


@_register
@dataclass
class NetDisconnect:
    mtype: ClassVar[NetMessageType] = NetMessageType.NET_DISCONNECT
    text: str = ""

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "NetDisconnect":
        return cls(reader.read_cstring())


@_register
@dataclass
class NetFile:
    mtype: ClassVar[NetMessageType] = NetMessageType.NET_FILE
    transfer_id: int = 0
    filename: str = ""
    file_requested: int = 0

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "NetFile":
        transfer_id = reader.read_uint32()
        filename = reader.read_cstring()
        return cls(transfer_id, filename, reader.read_uint(version.net_file_bits))


@_register
@dataclass
class NetTick:
    mtype: ClassVar[NetMessageType] = NetMessageType.NET_TICK
    tick: int = 0
    host_frame_time: int = 0
    host_frame_time_std_dev: int = 0

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "NetTick":
        message = cls(reader.read_uint32())
        if version.has_nettick_times:
            message.host_frame_time = reader.read_uint(16)
            message.host_frame_time_std_dev = reader.read_uint(16)
        return message


@_register
@dataclass
class NetStringCmd:
    mtype: ClassVar[NetMessageType] = NetMessageType.NET_STRINGCMD
    command: str = ""

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "NetStringCmd":
        return cls(reader.read_cstring())


@dataclass
class ConVar:
    name: str
    value: str


@_register
@dataclass
class NetSetConVar:
    mtype: ClassVar[NetMessageType] = NetMessageType.NET_SETCONVAR
    convars: list[ConVar] = field(default_factory=list)

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "NetSetConVar":
        count = reader.read_uint(8)
        convars = []
        for _ in range(count):
            name = reader.read_cstring()
            convars.append(ConVar(name, reader.read_cstring()))
        return cls(convars)


@_register
@dataclass
class NetSignonState:
    mtype: ClassVar[NetMessageType] = NetMessageType.NET_SIGNONSTATE
    signon_state: int = 0
    spawn_count: int = 0
    num_server_players: int = 0
    player_network_ids: BitReader = _data_field()
    map_name_length: int = 0
    map_name: bytes = b""

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "NetSignonState":
        message = cls(reader.read_uint(8), reader.read_sint32())
        if version.demo_protocol >= 4:
            message.num_server_players = reader.read_uint32()
            length = reader.read_uint32() * 8
            message.player_network_ids = reader.fork_and_advance(length)
            message.map_name_length = reader.read_uint32()
            if message.map_name_length * 8 > reader.bits_left():
                raise NetMessageError("Map name in net_signonstate has bad length")
            message.map_name = reader.read_fixed_string(message.map_name_length)
        return message


@_register
@dataclass
class SvcPrint:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_PRINT
    message: str = ""

    @property
    def l4d2_build(self) -> Optional[int]:
        """Build number announced in the text, if it is a Left 4 Dead 2 status print."""
        return parse_l4d2_build(self.message)

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcPrint":
        return cls(reader.read_cstring())


@_register
@dataclass
class SvcServerInfo:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_SERVERINFO
    network_protocol: int = 0
    server_count: int = 0
    is_hltv: bool = False
    is_dedicated: bool = False
    unk_l4d_bit: bool = False
    client_crc: int = 0
    stringtable_crc: int = 0
    max_classes: int = 0
    map_md5: bytes = bytes(16)
    map_crc: int = 0
    player_count: int = 0
    max_clients: int = 0
    tick_interval: float = 0.0
    platform: int = 0
    game_dir: str = ""
    map_name: str = ""
    sky_name: str = ""
    host_name: str = ""
    mission_name: Optional[str] = None
    mutation_name: Optional[str] = None
    has_replay: bool = False

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcServerInfo":
        m = cls()
        m.network_protocol = reader.read_uint(16)
        m.server_count = reader.read_uint32()
        m.is_hltv = reader.read_bit()
        m.is_dedicated = reader.read_bit()
        if _is_l4d2_2147(version):
            m.unk_l4d_bit = reader.read_bit()
        m.client_crc = reader.read_sint32()
        if version.demo_protocol >= 4:
            m.stringtable_crc = reader.read_uint32()
        m.max_classes = reader.read_uint(16)
        if version.game is Game.STEAMPIPE:
            m.map_md5 = reader.read_fixed_string(16)
        else:
            m.map_crc = reader.read_uint32()
        m.player_count = reader.read_uint(8)
        m.max_clients = reader.read_uint(8)
        m.tick_interval = reader.read_float()
        m.platform = reader.read_uint(8)
        m.game_dir = reader.read_cstring()
        m.map_name = reader.read_cstring()
        m.sky_name = reader.read_cstring()
        m.host_name = reader.read_cstring()
        if _is_l4d2_2147(version):
            m.mission_name = reader.read_cstring()
            m.mutation_name = reader.read_cstring()
        if version.game is Game.STEAMPIPE:
            m.has_replay = reader.read_bit()
        return m


@_register
@dataclass
class SvcSendTable:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_SENDTABLE
    needs_decoder: bool = False
    length: int = 0
    data: BitReader = _data_field()

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcSendTable":
        needs_decoder = reader.read_bit()
        length = reader.read_uint(16)
        return cls(needs_decoder, length, reader.fork_and_advance(length))


@dataclass
class ClassInfoEntry:
    class_id: int
    class_name: str
    datatable_name: str


@_register
@dataclass
class SvcClassInfo:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_CLASSINFO
    length: int = 0
    create_on_client: bool = False
    server_classes: Optional[list[ClassInfoEntry]] = None

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcClassInfo":
        message = cls(reader.read_uint(16), reader.read_bit())
        if not message.create_on_client:
            bits = _index_bits(message.length)
            entries = []
            for _ in range(message.length):
                class_id = reader.read_uint(bits)
                class_name = reader.read_cstring()
                entries.append(ClassInfoEntry(class_id, class_name, reader.read_cstring()))
            message.server_classes = entries
        return message


@_register
@dataclass
class SvcSetPause:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_SETPAUSE
    paused: bool = False

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcSetPause":
        return cls(reader.read_bit())


@_register
@dataclass
class SvcCreateStringTable:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_CREATE_STRINGTABLE
    name: str = ""
    max_entries: int = 0
    num_entries: int = 0
    user_data_fixed_size: bool = False
    user_data_size: int = 0
    user_data_size_bits: int = 0
    flags: int = 0
    data: BitReader = _data_field()

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcCreateStringTable":
        m = cls(reader.read_cstring())
        m.max_entries = reader.read_uint(16)
        m.num_entries = reader.read_uint(_index_bits(m.max_entries))
        if version.game is Game.STEAMPIPE:
            data_length = reader.read_varuint32()
        else:
            data_length = reader.read_uint(version.stringtable_userdata_size_bits)
        m.user_data_fixed_size = reader.read_bit()
        if m.user_data_fixed_size:
            m.user_data_size = reader.read_uint(12)
            m.user_data_size_bits = reader.read_uint(4)
        if version.network_protocol >= 15:
            m.flags = reader.read_uint(version.stringtable_flags_bits)
        m.data = reader.fork_and_advance(data_length)
        return m


@_register
@dataclass
class SvcUpdateStringTable:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_UPDATE_STRINGTABLE
    table_id: int = 0
    exists: bool = False
    changed_entries: int = 1
    data: BitReader = _data_field()

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcUpdateStringTable":
        m = cls(reader.read_uint(version.svc_update_stringtable_table_id_bits))
        m.exists = reader.read_bit()
        m.changed_entries = reader.read_uint(16) if m.exists else 1
        length_bits = 16 if version.network_protocol <= 7 else 20
        m.data = reader.fork_and_advance(reader.read_uint(length_bits))
        return m


@_register
@dataclass
class SvcVoiceInit:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_VOICE_INIT
    codec: str = ""
    quality: int = 0
    unk: float = 0

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcVoiceInit":
        m = cls(reader.read_cstring(), reader.read_uint(8))
        if m.quality == 255:
            if version.game is Game.STEAMPIPE:
                m.unk = reader.read_uint(16)
            elif version.demo_protocol == 4:
                m.unk = reader.read_float()
        return m


@_register
@dataclass
class SvcVoiceData:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_VOICE_DATA
    client: int = 0
    proximity: int = 0
    length: int = 0
    data: BitReader = _data_field()

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcVoiceData":
        client = reader.read_uint(8)
        proximity = reader.read_uint(8)
        length = reader.read_uint(16)
        return cls(client, proximity, length, reader.fork_and_advance(length))


@_register
@dataclass
class SvcSounds:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_SOUNDS
    reliable_sound: bool = False
    sounds: int = 0
    length: int = 0
    data: BitReader = _data_field()

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcSounds":
        m = cls(reader.read_bit())
        if m.reliable_sound:
            m.sounds = 1
            m.length = reader.read_uint(8)
        else:
            m.sounds = reader.read_uint(8)
            m.length = reader.read_uint(16)
        m.data = reader.fork_and_advance(m.length)
        return m


@_register
@dataclass
class SvcSetView:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_SETVIEW
    entity_index: int = 0

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcSetView":
        return cls(reader.read_uint(11))


@_register
@dataclass
class SvcFixAngle:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_FIXANGLE
    relative: bool = False
    angle: BitAngleVector = field(default_factory=BitAngleVector)

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcFixAngle":
        relative = reader.read_bit()
        return cls(relative, reader.read_bitvector(16))


@_register
@dataclass
class SvcCrosshairAngle:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_CROSSHAIR_ANGLE
    angle: BitAngleVector = field(default_factory=BitAngleVector)

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcCrosshairAngle":
        return cls(reader.read_bitvector(16))


@_register
@dataclass
class SvcBspDecal:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_BSP_DECAL
    pos: CoordVector = field(default_factory=CoordVector)
    decal_texture_index: int = 0
    index_bool: bool = False
    entity_index: int = 0
    model_index: int = 0
    lowpriority: bool = False

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcBspDecal":
        m = cls(reader.read_coordvector(), reader.read_uint(9), reader.read_bit())
        if m.index_bool:
            m.entity_index = reader.read_uint(11)
            m.model_index = reader.read_uint(version.model_index_bits)
        m.lowpriority = reader.read_bit()
        return m


@_register
@dataclass
class SvcUserMessage:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_USER_MESSAGE
    msg_type: int = 0
    length: int = 0
    data: BitReader = _data_field()

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcUserMessage":
        msg_type = reader.read_uint(8)
        length = reader.read_uint(version.svc_user_message_bits)
        return cls(msg_type, length, reader.fork_and_advance(length))


@_register
@dataclass
class SvcEntityMessage:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_ENTITY_MESSAGE
    entity_index: int = 0
    class_id: int = 0
    length: int = 0
    data: BitReader = _data_field()

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcEntityMessage":
        entity_index = reader.read_uint(11)
        class_id = reader.read_uint(9)
        length = reader.read_uint(11)
        return cls(entity_index, class_id, length, reader.fork_and_advance(length))


@_register
@dataclass
class SvcGameEvent:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_GAME_EVENT
    length: int = 0
    data: BitReader = _data_field()

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcGameEvent":
        length = reader.read_uint(11)
        return cls(length, reader.fork_and_advance(length))


@_register
@dataclass
class SvcPacketEntities:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_PACKET_ENTITIES
    max_entries: int = 0
    is_delta: bool = False
    delta_from: int = -1
    base_line: bool = False
    updated_entries: int = 0
    update_baseline: bool = False
    data: BitReader = _data_field()

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcPacketEntities":
        m = cls(reader.read_uint(11), reader.read_bit())
        m.delta_from = reader.read_sint32() if m.is_delta else -1
        m.base_line = reader.read_bit()
        m.updated_entries = reader.read_uint(11)
        data_length = reader.read_uint(20)
        m.update_baseline = reader.read_bit()
        m.data = reader.fork_and_advance(data_length)
        return m


@_register
@dataclass
class SvcTempEntities:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_TEMP_ENTITIES
    num_entries: int = 0
    data: BitReader = _data_field()

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcTempEntities":
        num_entries = reader.read_uint(8)
        if version.game is Game.STEAMPIPE:
            data_length = reader.read_varuint32()
        elif version.game is Game.L4D2:
            data_length = reader.read_uint(18)
        else:
            data_length = reader.read_uint(17)
        return cls(num_entries, reader.fork_and_advance(data_length))


@_register
@dataclass
class SvcPrefetch:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_PREFETCH
    sound_index: int = 0

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcPrefetch":
        return cls(reader.read_uint(version.svc_prefetch_bits))


@_register
@dataclass
class SvcMenu:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_MENU
    menu_type: int = 0
    data: BitReader = _data_field()

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcMenu":
        menu_type = reader.read_uint(16)
        data_length = reader.read_uint32()
        return cls(menu_type, reader.fork_and_advance(data_length))


@_register
@dataclass
class SvcGameEventList:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_GAME_EVENT_LIST
    events: int = 0
    length: int = 0
    data: BitReader = _data_field()

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcGameEventList":
        events = reader.read_uint(9)
        length = reader.read_uint(20)
        return cls(events, length, reader.fork_and_advance(length))


@_register
@dataclass
class SvcGetCvarValue:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_GET_CVAR_VALUE
    cookie: int = 0
    cvar_name: str = ""

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcGetCvarValue":
        cookie = reader.read_sint32()
        return cls(cookie, reader.read_cstring())


@_register
@dataclass
class NetSplitscreenUser:
    mtype: ClassVar[NetMessageType] = NetMessageType.NET_SPLITSCREEN_USER
    unk: bool = False

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "NetSplitscreenUser":
        return cls(reader.read_bit())


@_register
@dataclass
class SvcSplitscreen:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_SPLITSCREEN
    remove_user: bool = False
    data: BitReader = _data_field()

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcSplitscreen":
        remove_user = reader.read_bit()
        data_length = reader.read_uint(11)
        return cls(remove_user, reader.fork_and_advance(data_length))


@_register
@dataclass
class SvcPaintmapData:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_PAINTMAP_DATA
    data: BitReader = _data_field()

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcPaintmapData":
        return cls(reader.fork_and_advance(reader.read_uint32()))


@_register
@dataclass
class SvcCmdKeyValues:
    mtype: ClassVar[NetMessageType] = NetMessageType.SVC_CMD_KEY_VALUES
    data: BitReader = _data_field()

    @classmethod
    def _read(cls, reader: BitReader, version: DemoVersion) -> "SvcCmdKeyValues":
        return cls(reader.fork_and_advance(reader.read_uint32() * 8))


@dataclass
class ParsedPacket:
    """Net messages of one packet and the trailing bits that held none."""

    messages: list = field(default_factory=list)
    leftover_bits: BitReader = _data_field()


def read_netmessage(reader: BitReader, version: DemoVersion):
    """Read one net message, type index included, from ``reader``."""
    try:
        type_index = reader.read_uint(version.netmessage_type_bits)
        try:
            mtype = version.message_type(type_index)
        except ValueError as exc:
            raise NetMessageError(str(exc)) from exc
        handler = _REGISTRY.get(mtype)
        if handler is None:
            raise NetMessageError("No handler for this type of message.")
        return handler(reader, version)
    except BitstreamOverflowError as exc:
        raise NetMessageError("Bitstream overflowed during packet parsing") from exc


def read_netmessages(version: DemoVersion, data: bytes) -> ParsedPacket:
    """Read every net message out of a packet body."""
    reader = BitReader(data)
    messages = []
    while reader.bits_left() > version.netmessage_type_bits:
        messages.append(read_netmessage(reader, version))
    return ParsedPacket(messages, reader)