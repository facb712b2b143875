from pytest import raises

from seek_streams.cursor import Connected, Disconnected

connection = object()  # stands in for a RangeResponse


def test_disconnected():
    state = Disconnected(position=5)
    assert state.position == 5
    assert not state.is_connected
    assert state.connection is None
    assert repr(state) == "Disconnected(position=5)"


def test_connect_keeps_position():
    state = Disconnected(position=5).connect(connection)
    assert isinstance(state, Connected)
    assert state.position == 5
    assert state.is_connected
    assert state.connection is connection


def test_advance():
    state = Connected(position=5, connection=connection)
    advanced = state.advance(10).advance(0)
    assert advanced.position == 15
    assert advanced.connection is connection
    assert state.position == 5  # transitions return new states


def test_disconnect_keeps_position():
    state = Connected(position=7, connection=connection).disconnect()
    assert state == Disconnected(position=7)


def test_moved_to():
    assert Disconnected(position=7).moved_to(100) == Disconnected(position=100)


def test_equality():
    assert Connected(1, connection) == Connected(1, connection)
    assert Connected(1, connection) != Connected(1, object())
    assert Connected(1, connection) != Disconnected(1)


def test_negative_position():
    with raises(ValueError):
        Disconnected(position=-1)


def test_connected_moved_to_releases_connection():
    state = Connected(position=7, connection=connection).moved_to(300)
    assert state == Disconnected(position=300)
    assert not state.is_connected
