"""Serializing net messages back into the bit layout of a demo packet."""

from __future__ import annotations

from typing import Callable, Iterable, Union

from .bitio import BitReader, BitWriter
from .messages import (
    NetDisconnect,
    NetFile,
    NetMessageError,
    NetNop,
    NetSetConVar,
    NetSignonState,
    NetStringCmd,
    NetTick,
    ParsedPacket,
    SvcBspDecal,
    SvcClassInfo,
    SvcCmdKeyValues,
    SvcCreateStringTable,
    SvcCrosshairAngle,
    SvcEntityMessage,
    SvcFixAngle,
    SvcGameEvent,
    SvcGameEventList,
    SvcGetCvarValue,
    SvcPacketEntities,
    SvcPaintmapData,
    SvcPrefetch,
    SvcPrint,
    SvcServerInfo,
    SvcSetPause,
    SvcSetView,
    SvcSounds,
    SvcTempEntities,
    SvcUpdateStringTable,
    SvcUserMessage,
    SvcVoiceInit,
)
from .version import DemoVersion, Game, NetMessageType

__all__ = ["write_netmessage", "write_netmessages"]


def _index_bits(value: int) -> int:
    return max(value.bit_length(), 1)


def _is_l4d2_2147(version: DemoVersion) -> bool:
    return version.game is Game.L4D2 and version.l4d2_version >= 2147


def _write_nop(w: BitWriter, v: DemoVersion, m: NetNop) -> None:
    pass


def _write_disconnect(w: BitWriter, v: DemoVersion, m: NetDisconnect) -> None:
    w.write_cstring(m.text)


def _write_file(w: BitWriter, v: DemoVersion, m: NetFile) -> None:
    w.write_uint32(m.transfer_id)
    w.write_cstring(m.filename)
    w.write_uint(m.file_requested, v.net_file_bits)


def _write_tick(w: BitWriter, v: DemoVersion, m: NetTick) -> None:
    w.write_uint32(m.tick)
    if v.has_nettick_times:
        w.write_uint(m.host_frame_time, 16)
        w.write_uint(m.host_frame_time_std_dev, 16)


def _write_stringcmd(w: BitWriter, v: DemoVersion, m: NetStringCmd) -> None:
    w.write_cstring(m.command)


def _write_setconvar(w: BitWriter, v: DemoVersion, m: NetSetConVar) -> None:
    w.write_uint(len(m.convars), 8)
    for convar in m.convars:
        w.write_cstring(convar.name)
        w.write_cstring(convar.value)


def _write_signonstate(w: BitWriter, v: DemoVersion, m: NetSignonState) -> None:
    w.write_uint(m.signon_state, 8)
    w.write_uint32(m.spawn_count)
    if v.demo_protocol >= 4:
        w.write_uint32(m.num_server_players)
        w.write_uint32(m.player_network_ids.bits_left() // 8)
        w.write_bitstream(m.player_network_ids)
        w.write_uint32(m.map_name_length)
        w.write_bytes(m.map_name, m.map_name_length * 8)


def _write_print(w: BitWriter, v: DemoVersion, m: SvcPrint) -> None:
    w.write_cstring(m.message)


def _write_serverinfo(w: BitWriter, v: DemoVersion, m: SvcServerInfo) -> None:
    w.write_uint(m.network_protocol, 16)
    w.write_uint32(m.server_count)
    w.write_bit(m.is_hltv)
    w.write_bit(m.is_dedicated)
    if _is_l4d2_2147(v):
        w.write_bit(m.unk_l4d_bit)
    w.write_sint32(m.client_crc)
    if v.demo_protocol >= 4:
        w.write_uint32(m.stringtable_crc)
    w.write_uint(m.max_classes, 16)
    if v.game is Game.STEAMPIPE:
        w.write_bytes(m.map_md5, 16 * 8)
    else:
        w.write_uint32(m.map_crc)
    w.write_uint(m.player_count, 8)
    w.write_uint(m.max_clients, 8)
    w.write_float(m.tick_interval)
    w.write_uint(m.platform, 8)
    w.write_cstring(m.game_dir)
    w.write_cstring(m.map_name)
    w.write_cstring(m.sky_name)
    w.write_cstring(m.host_name)
    if _is_l4d2_2147(v):
        w.write_cstring(m.mission_name or "")
        w.write_cstring(m.mutation_name or "")
    if v.game is Game.STEAMPIPE:
        w.write_bit(m.has_replay)


def _write_classinfo(w: BitWriter, v: DemoVersion, m: SvcClassInfo) -> None:
    w.write_uint(m.length, 16)
    w.write_bit(m.create_on_client)
    if not m.create_on_client:
        bits = _index_bits(m.length)
        for entry in m.server_classes or []:
            w.write_uint(entry.class_id, bits)
            w.write_cstring(entry.class_name)
            w.write_cstring(entry.datatable_name)


def _write_setpause(w: BitWriter, v: DemoVersion, m: SvcSetPause) -> None:
    w.write_bit(m.paused)


def _write_create_stringtable(
    w: BitWriter, v: DemoVersion, m: SvcCreateStringTable
) -> None:
    w.write_cstring(m.name)
    w.write_uint(m.max_entries, 16)
    w.write_uint(m.num_entries, _index_bits(m.max_entries))
    bits_left = m.data.bits_left()
    if v.game is Game.STEAMPIPE:
        w.write_varuint32(bits_left)
    else:
        w.write_uint(bits_left, v.stringtable_userdata_size_bits)
    w.write_bit(m.user_data_fixed_size)
    if m.user_data_fixed_size:
        w.write_uint(m.user_data_size, 12)
        w.write_uint(m.user_data_size_bits, 4)
    if v.network_protocol >= 15:
        w.write_uint(m.flags, v.stringtable_flags_bits)
    w.write_bitstream(m.data)


def _write_update_stringtable(
    w: BitWriter, v: DemoVersion, m: SvcUpdateStringTable
) -> None:
    w.write_uint(m.table_id, v.svc_update_stringtable_table_id_bits)
    w.write_bit(m.exists)
    if m.exists:
        w.write_uint(m.changed_entries, 16)
    w.write_uint(m.data.bits_left(), 16 if v.network_protocol <= 7 else 20)
    w.write_bitstream(m.data)


def _write_voice_init(w: BitWriter, v: DemoVersion, m: SvcVoiceInit) -> None:
    w.write_cstring(m.codec)
    w.write_uint(m.quality, 8)
    if m.quality == 255:
        if v.game is Game.STEAMPIPE:
            w.write_uint(int(m.unk), 16)
        elif v.demo_protocol == 4:
            w.write_float(m.unk)


def _write_sounds(w: BitWriter, v: DemoVersion, m: SvcSounds) -> None:
    w.write_bit(m.reliable_sound)
    if m.reliable_sound:
        w.write_uint(m.length, 8)
    else:
        w.write_uint(m.sounds, 8)
        w.write_uint(m.length, 16)
    w.write_bitstream(m.data)


def _write_setview(w: BitWriter, v: DemoVersion, m: SvcSetView) -> None:
    w.write_uint(m.entity_index, 11)


def _write_fixangle(w: BitWriter, v: DemoVersion, m: SvcFixAngle) -> None:
    w.write_bit(m.relative)
    w.write_bitvector(m.angle)


def _write_crosshair_angle(w: BitWriter, v: DemoVersion, m: SvcCrosshairAngle) -> None:
    w.write_bitvector(m.angle)


def _write_bsp_decal(w: BitWriter, v: DemoVersion, m: SvcBspDecal) -> None:
    w.write_coordvector(m.pos)
    w.write_uint(m.decal_texture_index, 9)
    w.write_bit(m.index_bool)
    if m.index_bool:
        w.write_uint(m.entity_index, 11)
        w.write_uint(m.model_index, v.model_index_bits)
    w.write_bit(m.lowpriority)


def _write_user_message(w: BitWriter, v: DemoVersion, m: SvcUserMessage) -> None:
    w.write_uint(m.msg_type, 8)
    w.write_uint(m.length, v.svc_user_message_bits)
    w.write_bitstream(m.data)


def _write_entity_message(w: BitWriter, v: DemoVersion, m: SvcEntityMessage) -> None:
    w.write_uint(m.entity_index, 11)
    w.write_uint(m.class_id, 9)
    w.write_uint(m.length, 11)
    w.write_bitstream(m.data)


def _write_game_event(w: BitWriter, v: DemoVersion, m: SvcGameEvent) -> None:
    w.write_uint(m.length, 11)
    w.write_bitstream(m.data)


def _write_packet_entities(w: BitWriter, v: DemoVersion, m: SvcPacketEntities) -> None:
    w.write_uint(m.max_entries, 11)
    w.write_bit(m.is_delta)
    if m.is_delta:
        w.write_sint32(m.delta_from)
    w.write_bit(m.base_line)
    w.write_uint(m.updated_entries, 11)
    w.write_uint(m.data.bits_left(), 20)
    w.write_bit(m.update_baseline)
    w.write_bitstream(m.data)


def _write_temp_entities(w: BitWriter, v: DemoVersion, m: SvcTempEntities) -> None:
    w.write_uint(m.num_entries, 8)
    data_length = m.data.bits_left()
    if v.game is Game.STEAMPIPE:
        w.write_varuint32(data_length)
    elif v.game is Game.L4D2:
        w.write_uint(data_length, 18)
    else:
        w.write_uint(data_length, 17)
    w.write_bitstream(m.data)


def _write_prefetch(w: BitWriter, v: DemoVersion, m: SvcPrefetch) -> None:
    w.write_uint(m.sound_index, v.svc_prefetch_bits)


def _write_game_event_list(w: BitWriter, v: DemoVersion, m: SvcGameEventList) -> None:
    w.write_uint(m.events, 9)
    w.write_uint(m.length, 20)
    w.write_bitstream(m.data)


def _write_get_cvar_value(w: BitWriter, v: DemoVersion, m: SvcGetCvarValue) -> None:
    w.write_sint32(m.cookie)
    w.write_cstring(m.cvar_name)


def _write_paintmap_data(w: BitWriter, v: DemoVersion, m: SvcPaintmapData) -> None:
    w.write_uint32(m.data.bits_left())
    w.write_bitstream(m.data)


def _write_cmd_key_values(w: BitWriter, v: DemoVersion, m: SvcCmdKeyValues) -> None:
    w.write_uint32(m.data.bits_left() // 8)
    w.write_bitstream(m.data)


_WRITERS: dict[NetMessageType, Callable[[BitWriter, DemoVersion, object], None]] = {
    NetMessageType.NET_NOP: _write_nop,
    NetMessageType.NET_DISCONNECT: _write_disconnect,
    NetMessageType.NET_FILE: _write_file,
    NetMessageType.NET_TICK: _write_tick,
    NetMessageType.NET_STRINGCMD: _write_stringcmd,
    NetMessageType.NET_SETCONVAR: _write_setconvar,
    NetMessageType.NET_SIGNONSTATE: _write_signonstate,
    NetMessageType.SVC_PRINT: _write_print,
    NetMessageType.SVC_SERVERINFO: _write_serverinfo,
    NetMessageType.SVC_CLASSINFO: _write_classinfo,
    NetMessageType.SVC_SETPAUSE: _write_setpause,
    NetMessageType.SVC_CREATE_STRINGTABLE: _write_create_stringtable,
    NetMessageType.SVC_UPDATE_STRINGTABLE: _write_update_stringtable,
    NetMessageType.SVC_VOICE_INIT: _write_voice_init,
    NetMessageType.SVC_SOUNDS: _write_sounds,
    NetMessageType.SVC_SETVIEW: _write_setview,
    NetMessageType.SVC_FIXANGLE: _write_fixangle,
    NetMessageType.SVC_CROSSHAIR_ANGLE: _write_crosshair_angle,
    NetMessageType.SVC_BSP_DECAL: _write_bsp_decal,
    NetMessageType.SVC_USER_MESSAGE: _write_user_message,
    NetMessageType.SVC_ENTITY_MESSAGE: _write_entity_message,
    NetMessageType.SVC_GAME_EVENT: _write_game_event,
    NetMessageType.SVC_PACKET_ENTITIES: _write_packet_entities,
    NetMessageType.SVC_TEMP_ENTITIES: _write_temp_entities,
    NetMessageType.SVC_PREFETCH: _write_prefetch,
    NetMessageType.SVC_GAME_EVENT_LIST: _write_game_event_list,
    NetMessageType.SVC_GET_CVAR_VALUE: _write_get_cvar_value,
    NetMessageType.SVC_PAINTMAP_DATA: _write_paintmap_data,
    NetMessageType.SVC_CMD_KEY_VALUES: _write_cmd_key_values,
}

_UNSUPPORTED = {
    NetMessageType.SVC_SENDTABLE: "svc_sendtable",
    NetMessageType.SVC_VOICE_DATA: "svc_voice_data",
    NetMessageType.SVC_MENU: "svc_menu",
    NetMessageType.NET_SPLITSCREEN_USER: "net_splitscreen_user",
    NetMessageType.SVC_SPLITSCREEN: "svc_splitscreen",
}


def write_netmessage(writer: BitWriter, version: DemoVersion, message) -> None:
    """Write one net message, type index first, in the layout of ``version``.

    A message kind that does not exist on the target protocol is skipped.
    Raises NetMessageError for kinds that cannot be written.
    """
    type_index = version.message_index(message.mtype)
    if type_index is None:
        return
    if message.mtype in _UNSUPPORTED:
        raise NetMessageError(f"Writing not implemented for {_UNSUPPORTED[message.mtype]}")
    handler = _WRITERS.get(message.mtype)
    if handler is None:
        raise NetMessageError("No handler for this type of message.")
    writer.write_uint(type_index, version.netmessage_type_bits)
    handler(writer, version, message)


def write_netmessages(
    version: DemoVersion, messages: Union[ParsedPacket, Iterable[object]]
) -> bytes:
    """Serialize net messages into a packet body.

    For a ParsedPacket the leftover bits are appended too, so that an
    unchanged packet is reproduced exactly.
    """
    writer = BitWriter()
    leftover: BitReader | None = None
    if isinstance(messages, ParsedPacket):
        leftover = messages.leftover_bits
        messages = messages.messages
    for message in messages:
        write_netmessage(writer, version, message)
    if leftover is not None:
        writer.write_bitstream(leftover)
    return writer.to_bytes()