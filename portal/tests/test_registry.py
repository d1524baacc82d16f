import threading

import pytest

from portal.realtime.registry import Connection, ConnectionRegistry


@pytest.fixture
def reg():
    return ConnectionRegistry()


def test_add_bind_join_remove(reg):
    conn = reg.add(Connection(channel_name='specific.abc'))
    assert reg.count() == 1
    assert not conn.bound

    reg.bind(conn.conn_id, 'user-1')
    assert reg.join(conn.conn_id, 'chat.user.user-1') is True
    assert reg.join(conn.conn_id, 'chat.user.user-1') is False

    stored = reg.get(conn.conn_id)
    assert stored.user_id == 'user-1'
    assert stored.rooms == {'chat.user.user-1'}

    assert reg.remove(conn.conn_id) == {'chat.user.user-1'}
    assert reg.count() == 0
    assert reg.get(conn.conn_id) is None
    # removing twice is harmless (close and error callbacks may both fire)
    assert reg.remove(conn.conn_id) == set()


def test_binding_is_permanent(reg):
    conn = reg.add(Connection(channel_name='specific.abc'))
    reg.bind(conn.conn_id, 'user-1', doctor_id='doc-1')
    reg.bind(conn.conn_id, 'user-1')
    assert reg.get(conn.conn_id).doctor_id == 'doc-1'
    with pytest.raises(PermissionError):
        reg.bind(conn.conn_id, 'user-2')


def test_duplicate_connection_id_is_rejected(reg):
    conn = reg.add(Connection(channel_name='specific.abc'))
    with pytest.raises(KeyError):
        reg.add(Connection(channel_name='specific.def', conn_id=conn.conn_id))


def test_lookups_return_copies(reg):
    conn = reg.add(Connection(channel_name='specific.abc'))
    copy = reg.get(conn.conn_id)
    copy.rooms.add('relay.all')
    copy.user_id = 'intruder'
    stored = reg.get(conn.conn_id)
    assert stored.rooms == set()
    assert stored.user_id is None


def test_for_user_and_snapshot(reg):
    a = reg.add(Connection(channel_name='specific.a', authenticated=True))
    b = reg.add(Connection(channel_name='specific.b'))
    reg.add(Connection(channel_name='specific.c'))
    reg.bind(a.conn_id, 'user-1')
    reg.bind(b.conn_id, 'user-1')

    assert {c.channel_name for c in reg.for_user('user-1')} == {'specific.a', 'specific.b'}
    snap = {row['connId']: row for row in reg.snapshot()}
    assert snap[a.conn_id]['authenticated'] is True
    assert snap[a.conn_id]['userId'] == 'user-1'
    assert len(snap) == 3

    reg.clear()
    assert reg.count() == 0


def test_concurrent_add_and_remove(reg):
    def churn():
        for _ in range(200):
            conn = reg.add(Connection(channel_name='specific.x'))
            reg.join(conn.conn_id, 'relay.all')
            reg.remove(conn.conn_id)

    threads = [threading.Thread(target=churn) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert reg.count() == 0
