import pytest

from demogobbler.bitio import BitWriter
from demogobbler.datatables import (
    DataTableError,
    DataTables,
    SendProp,
    SendPropType,
    SendTable,
    ServerClass,
    parse_datatables,
    write_datatables,
)
from demogobbler.version import DemoVersion, Game


def _sample_tables():
    base = SendTable(
        name="DT_Base",
        needs_decoder=False,
        props=[
            SendProp(
                SendPropType.INT,
                "m_iHealth",
                numbits=10,
                low_value=0.0,
                high_value=1024.0,
                flag_unsigned=True,
            ),
            SendProp(SendPropType.STRING, "m_iName", flag_changesoften=True),
            SendProp(SendPropType.FLOAT, "m_elem", flag_insidearray=True, numbits=8,
                     low_value=-1.5, high_value=2.25),
            SendProp(SendPropType.ARRAY, "m_arr", array_num_elements=4),
        ],
    )
    derived = SendTable(
        name="DT_Derived",
        needs_decoder=True,
        props=[
            SendProp(SendPropType.DATATABLE, "baseclass", dtname="DT_Base",
                     flag_collapsible=True),
            SendProp(SendPropType.INT, "m_iName", flag_exclude=True,
                     exclude_name="DT_Base"),
        ],
    )
    classes = [
        ServerClass(serverclass_id=0, name="CBase", datatable_name="DT_Base"),
        ServerClass(serverclass_id=1, name="CDerived", datatable_name="DT_Derived"),
    ]
    return DataTables([base, derived], classes)


def test_empty_tables_wire_format():
    version = DemoVersion()
    data = write_datatables(version, DataTables())
    assert data == b"\x00\x00\x00"
    parsed = parse_datatables(version, data)
    assert parsed.sendtables == []
    assert parsed.serverclasses == []


def test_round_trip_equal():
    version = DemoVersion()
    tables = _sample_tables()
    parsed = parse_datatables(version, write_datatables(version, tables))
    assert parsed == tables


def test_rewrite_is_byte_identical():
    version = DemoVersion()
    data = write_datatables(version, _sample_tables())
    parsed = parse_datatables(version, data)
    assert write_datatables(version, parsed) == data
    assert parsed.raw == data


def test_array_and_baseclass_links():
    version = DemoVersion()
    parsed = parse_datatables(version, write_datatables(version, _sample_tables()))
    base = parsed.sendtables[0]
    assert base.props[3].array_prop is base.props[2]
    assert base.props[0].baseclass is base
    assert parsed.sendtables[1].props[0].baseclass is None
    assert parsed.sendtables[1].props[0].dtname == "DT_Base"


def test_invalid_prop_type():
    version = DemoVersion(network_protocol=15)
    writer = BitWriter()
    writer.write_bit(True)
    writer.write_bit(False)
    writer.write_cstring("DT_Bad")
    writer.write_uint(1, version.datatable_propcount_bits)
    writer.write_uint(7, 5)
    writer.write_uint(0, 64)
    with pytest.raises(DataTableError, match="Invalid sendprop type"):
        parse_datatables(version, writer.to_bytes())


def test_array_without_insidearray_prop():
    version = DemoVersion()
    tables = DataTables(
        [SendTable("DT_A", [SendProp(SendPropType.ARRAY, "m_arr", array_num_elements=2)])]
    )
    with pytest.raises(DataTableError, match="Array prop not preceded"):
        parse_datatables(version, write_datatables(version, tables))


def test_truncated_data_overflows():
    version = DemoVersion()
    data = write_datatables(version, _sample_tables())
    with pytest.raises(DataTableError, match="Bitstream overflowed"):
        parse_datatables(version, data[: len(data) // 2])


def test_trailing_bytes_rejected():
    version = DemoVersion()
    data = write_datatables(version, _sample_tables())
    with pytest.raises(DataTableError, match="Did not read all bits"):
        parse_datatables(version, data + b"\x00")


def test_vector2_not_writable_on_old_protocol():
    version = DemoVersion(network_protocol=14)
    tables = DataTables([SendTable("DT_V", [SendProp(SendPropType.VECTOR2, "m_v")])])
    with pytest.raises(DataTableError, match="vector2"):
        write_datatables(version, tables)


def test_type_table_depends_on_protocol():
    old = DemoVersion(network_protocol=14)
    new = DemoVersion(network_protocol=15)
    tables = DataTables([SendTable("DT_S", [SendProp(SendPropType.STRING, "m_s")])])
    data = write_datatables(old, tables)
    assert parse_datatables(old, data).sendtables[0].props[0].proptype is SendPropType.STRING
    assert parse_datatables(new, data).sendtables[0].props[0].proptype is SendPropType.VECTOR2


def test_priority_only_on_protocol_4_non_l4d():
    prop = SendProp(SendPropType.INT, "m_x", priority=64, numbits=4)
    tables = DataTables([SendTable("DT_P", [prop])])
    v4 = DemoVersion(demo_protocol=4, game=Game.L4D2)
    assert parse_datatables(v4, write_datatables(v4, tables)).sendtables[0].props[0].priority == 64
    l4d = DemoVersion(demo_protocol=4, game=Game.L4D)
    assert parse_datatables(l4d, write_datatables(l4d, tables)).sendtables[0].props[0].priority == 0


def test_wide_flag_layout_round_trip():
    version = DemoVersion(sendprop_flag_bits=19)
    prop = SendProp(SendPropType.FLOAT, "m_c", flag_cellcoord=True, flag_changesoften=True,
                    flag_cellcoordint=True, numbits=3)
    tables = DataTables([SendTable("DT_W", [prop])])
    parsed = parse_datatables(version, write_datatables(version, tables))
    assert parsed == tables


def test_narrow_layout_drops_wide_only_flags():
    version = DemoVersion(sendprop_flag_bits=16)
    prop = SendProp(SendPropType.INT, "m_c", flag_cellcoord=True, flag_coordmpint=True)
    tables = DataTables([SendTable("DT_N", [prop])])
    parsed_prop = parse_datatables(version, write_datatables(version, tables)).sendtables[0].props[0]
    assert parsed_prop.flag_coordmpint is True
    assert parsed_prop.flag_cellcoord is False


def test_padding_bits_preserved_from_raw():
    version = DemoVersion()
    writer = BitWriter()
    writer.write_bit(False)
    writer.write_uint(0, 16)
    writer.write_uint(0b1111111, 7)
    data = writer.to_bytes()
    parsed = parse_datatables(version, data)
    assert write_datatables(version, parsed) == data
    assert write_datatables(version, DataTables()) != data