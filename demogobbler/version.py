"""Demo version data, game identifiers and net message type tables."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Optional

__all__ = ["Game", "NetMessageType", "DemoVersion", "parse_l4d2_build"]


class Game(enum.Enum):
    """Engine branch a demo was recorded with, where it changes the format."""

    UNKNOWN = "unknown"
    L4D = "l4d"
    L4D2 = "l4d2"
    STEAMPIPE = "steampipe"


class NetMessageType(enum.Enum):
    """Every net message kind known to the parser, independent of protocol."""

    NET_NOP = enum.auto()
    NET_DISCONNECT = enum.auto()
    NET_FILE = enum.auto()
    NET_TICK = enum.auto()
    NET_STRINGCMD = enum.auto()
    NET_SETCONVAR = enum.auto()
    NET_SIGNONSTATE = enum.auto()
    SVC_PRINT = enum.auto()
    SVC_SERVERINFO = enum.auto()
    SVC_SENDTABLE = enum.auto()
    SVC_CLASSINFO = enum.auto()
    SVC_SETPAUSE = enum.auto()
    SVC_CREATE_STRINGTABLE = enum.auto()
    SVC_UPDATE_STRINGTABLE = enum.auto()
    SVC_VOICE_INIT = enum.auto()
    SVC_VOICE_DATA = enum.auto()
    SVC_SOUNDS = enum.auto()
    SVC_SETVIEW = enum.auto()
    SVC_FIXANGLE = enum.auto()
    SVC_CROSSHAIR_ANGLE = enum.auto()
    SVC_BSP_DECAL = enum.auto()
    SVC_USER_MESSAGE = enum.auto()
    SVC_ENTITY_MESSAGE = enum.auto()
    SVC_GAME_EVENT = enum.auto()
    SVC_PACKET_ENTITIES = enum.auto()
    SVC_TEMP_ENTITIES = enum.auto()
    SVC_PREFETCH = enum.auto()
    SVC_MENU = enum.auto()
    SVC_GAME_EVENT_LIST = enum.auto()
    SVC_GET_CVAR_VALUE = enum.auto()
    NET_SPLITSCREEN_USER = enum.auto()
    SVC_SPLITSCREEN = enum.auto()
    SVC_PAINTMAP_DATA = enum.auto()
    SVC_CMD_KEY_VALUES = enum.auto()
    SVC_INVALID = enum.auto()


@dataclass
class DemoVersion:
    """Protocol-dependent layout parameters of a demo.

    ``netmessages`` maps the on-wire message type index to the message kind;
    entries that do not exist on a protocol hold ``NetMessageType.SVC_INVALID``.
    """

    demo_protocol: int = 3
    network_protocol: int = 15
    game: Game = Game.UNKNOWN
    l4d2_version: int = 0
    l4d2_version_finalized: bool = True
    has_slot_in_preamble: bool = False
    cmdinfo_size: int = 1
    sendprop_flag_bits: int = 16
    sendprop_numbits_for_numbits: int = 7
    datatable_propcount_bits: int = 10
    net_file_bits: int = 1
    has_nettick_times: bool = True
    stringtable_userdata_size_bits: int = 20
    stringtable_flags_bits: int = 1
    svc_update_stringtable_table_id_bits: int = 5
    model_index_bits: int = 11
    svc_user_message_bits: int = 11
    svc_prefetch_bits: int = 13
    netmessage_type_bits: int = 6
    netmessages: tuple[NetMessageType, ...] = ()

    def message_type(self, index: int) -> NetMessageType:
        """Return the message kind for an on-wire type index.

        Raises ValueError when the index is out of range or unused on this protocol.
        """
        if 0 <= index < len(self.netmessages):
            mtype = self.netmessages[index]
            if mtype is not NetMessageType.SVC_INVALID:
                return mtype
        raise ValueError("Encountered bad net message type.")

    def message_index(self, mtype: NetMessageType) -> Optional[int]:
        """Return the on-wire type index of a message kind, or None if absent."""
        try:
            return self.netmessages.index(mtype)
        except ValueError:
            return None


_BUILD_RE = re.compile(r"Build: (\d+)")


def parse_l4d2_build(text: str) -> Optional[int]:
    """Extract the build number from a Left 4 Dead 2 server print, or None."""
    match = _BUILD_RE.search(text)
    if match is None:
        return None
    return int(match.group(1))