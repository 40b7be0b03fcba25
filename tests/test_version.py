import pytest

from demogobbler.version import DemoVersion, Game, NetMessageType, parse_l4d2_build

L4D2_CASES = [
    (4027, "\nLeft 4 Dead 2\nMap: c2m1_highway\nPlayers: 1 (0 bots) / 4 humans\nBuild: 4027\nServer Number: 1\n\n"),
    (4183, "\nLeft 4 Dead 2\nMap: c6m1_riverbank\nPlayers: 1 (0 bots) / 4 humans\nBuild: 4183\nServer Number: 2\n\n"),
    (4261, "\nLeft 4 Dead 2\nMap: c3m3_shantytown\nPlayers: 1 (0 bots) / 4 humans\nBuild: 4261\nServer Number: 5\n\n"),
    (4346, "\nLeft 4 Dead 2\nMap: c2m2_fairgrounds\nPlayers: 4 (0 bots) / 4 humans\nBuild: 4346\nServer Number: 13\n\n"),
    (4490, "\nLeft 4 Dead 2\nMap: c13m2_southpinestream\nPlayers: 1 (0 bots) / 4 humans\nBuild: 4490\nServer Number: 3\n\n"),
    (4632, "\nLeft 4 Dead 2\nMap: c11m2_offices\nPlayers: 1 (0 bots) / 4 humans\nBuild: 4632\nServer Number: 3\n\n"),
    (4710, "\nLeft 4 Dead 2\nMap: c6m2_bedlam\nPlayers: 1 (0 bots) / 4 humans\nBuild: 4710\nServer Number: 3\n\n"),
    (6403, "\nLeft 4 Dead 2\nMap: c2m2_fairgrounds\nPlayers: 1 (0 bots) / 4 humans\nBuild: 6403\nServer Number: 1\n\n"),
    (7970, "\nLeft 4 Dead 2\nMap: c5m4_quarter\nPlayers: 1 (0 bots) / 4 humans\nBuild: 7970\nServer Number: 1\n\n"),
    (8267, "\nLeft 4 Dead 2\nMap: c2m2_fairgrounds\nPlayers: 1 (0 bots) / 4 humans\nBuild: 8267\nServer Number: 4\n\n"),
    (8491, "\nLeft 4 Dead 2\nMap: c10m1_caves\nPlayers: 1 (0 bots) / 4 humans\nBuild: 8491\nServer Number: 1\n\n"),
]


@pytest.mark.parametrize("expected, text", L4D2_CASES)
def test_l4d2_build_found(expected, text):
    assert parse_l4d2_build(text) == expected


def test_l4d2_build_random_other_string():
    assert parse_l4d2_build("user has paused the game.") is None


def _version():
    return DemoVersion(
        game=Game.L4D2,
        netmessages=(
            NetMessageType.NET_NOP,
            NetMessageType.SVC_INVALID,
            NetMessageType.NET_TICK,
            NetMessageType.SVC_PRINT,
        ),
    )


def test_message_type_lookup():
    version = _version()
    assert version.message_type(0) is NetMessageType.NET_NOP
    assert version.message_type(3) is NetMessageType.SVC_PRINT


def test_message_type_invalid_entry_raises():
    with pytest.raises(ValueError, match="bad net message type"):
        _version().message_type(1)


def test_message_type_out_of_range_raises():
    with pytest.raises(ValueError):
        _version().message_type(4)


def test_message_index_round_trip():
    version = _version()
    for index in (0, 2, 3):
        assert version.message_index(version.message_type(index)) == index


def test_message_index_missing_returns_none():
    assert _version().message_index(NetMessageType.SVC_MENU) is None


def test_version_is_mutable_for_l4d2_updates():
    version = _version()
    version.l4d2_version = 2091
    version.l4d2_version_finalized = True
    assert (version.l4d2_version, version.l4d2_version_finalized) == (2091, True)