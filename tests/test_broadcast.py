import asyncio

from canteen.broadcast import STAFF_GROUP, ConnectionHub, order_group, user_group

from .helpers import FakeConnection, StalledConnection, run


def test_emit_reaches_only_group_members():
    hub = ConnectionHub()
    member, outsider = FakeConnection(), FakeConnection()
    hub.join(member, user_group(1))
    hub.join(outsider, user_group(2))

    delivered = run(hub.emit("status_changed", {"id": 5}, user_group(1)))

    assert delivered == 1
    assert member.sent == [{"event": "status_changed", "data": {"id": 5}}]
    assert outsider.sent == []


def test_connection_in_several_target_groups_gets_one_copy():
    hub = ConnectionHub()
    conn = FakeConnection()
    hub.join(conn, user_group(1))
    hub.join(conn, order_group(9))

    run(hub.emit("status_changed", {"id": 9}, user_group(1), order_group(9)))

    assert len(conn.sent) == 1


def test_emit_to_empty_group_is_a_noop():
    hub = ConnectionHub()
    assert run(hub.emit("new_order", {}, STAFF_GROUP)) == 0


def test_leave_single_group_and_all_groups():
    hub = ConnectionHub()
    conn = FakeConnection()
    hub.join(conn, user_group(1))
    hub.join(conn, order_group(2))

    hub.leave(conn, user_group(1))
    assert hub.groups_of(conn) == {order_group(2)}

    hub.leave(conn)
    assert hub.groups_of(conn) == set()
    assert hub.members(order_group(2)) == set()


def test_failed_send_drops_connection_without_raising():
    hub = ConnectionHub()
    broken, healthy = FakeConnection(fail=True), FakeConnection()
    hub.join(broken, STAFF_GROUP)
    hub.join(healthy, STAFF_GROUP)

    delivered = run(hub.emit("new_order", {"id": 1}, STAFF_GROUP))

    assert delivered == 1
    assert hub.members(STAFF_GROUP) == {healthy}
    assert broken.sent == []


def test_late_joiner_gets_no_replay():
    hub = ConnectionHub()
    run(hub.emit("status_changed", {"id": 1}, order_group(1)))
    late = FakeConnection()
    hub.join(late, order_group(1))
    assert late.sent == []


def test_stalled_connection_is_timed_out_and_dropped():
    hub = ConnectionHub(send_timeout=0.05)
    stalled, healthy = StalledConnection(), FakeConnection()
    hub.join(stalled, order_group(1))
    hub.join(healthy, order_group(1))

    delivered = run(asyncio.wait_for(hub.emit("status_changed", {"id": 1}, order_group(1)), timeout=5))

    assert delivered == 1
    assert healthy.sent == [{"event": "status_changed", "data": {"id": 1}}]
    assert hub.members(order_group(1)) == {healthy}
    assert hub.groups_of(stalled) == set()
