from __future__ import annotations

import threading
from uuid import uuid4

from weighbridge.domain.workflow import BridgeAdmissionController, Granted, Queued


def test_first_request_is_granted_and_others_queue_in_order() -> None:
    bridge = BridgeAdmissionController()
    a, b, c = uuid4(), uuid4(), uuid4()

    assert bridge.request_occupancy(a) == Granted(a)
    assert bridge.request_occupancy(b) == Queued(b, 1)
    assert bridge.request_occupancy(c) == Queued(c, 2)

    snapshot = bridge.snapshot()
    assert snapshot.holder == a
    assert snapshot.waiting == (b, c)


def test_repeated_requests_are_idempotent() -> None:
    bridge = BridgeAdmissionController()
    a, b = uuid4(), uuid4()
    bridge.request_occupancy(a)
    bridge.request_occupancy(b)

    assert bridge.request_occupancy(a) == Granted(a)
    assert bridge.request_occupancy(b) == Queued(b, 1)
    assert bridge.snapshot().waiting == (b,)


def test_release_hands_bridge_to_head_of_queue_and_notifies() -> None:
    bridge = BridgeAdmissionController()
    granted: list[object] = []
    bridge.add_grant_listener(granted.append)
    a, b, c = uuid4(), uuid4(), uuid4()
    for session_id in (a, b, c):
        bridge.request_occupancy(session_id)

    assert bridge.release(a) == b

    assert granted == [b]
    assert bridge.holder == b
    assert bridge.position(c) == 1


def test_release_by_non_holder_is_a_no_op() -> None:
    bridge = BridgeAdmissionController()
    a, b = uuid4(), uuid4()
    bridge.request_occupancy(a)
    bridge.request_occupancy(b)

    assert bridge.release(b) is None
    assert bridge.holder == a


def test_last_release_leaves_bridge_free() -> None:
    bridge = BridgeAdmissionController()
    a = uuid4()
    bridge.request_occupancy(a)

    assert bridge.release(a) is None
    assert bridge.holder is None
    assert isinstance(bridge.request_occupancy(uuid4()), Granted)


def test_relinquish_withdraws_a_waiting_session() -> None:
    bridge = BridgeAdmissionController()
    a, b, c = uuid4(), uuid4(), uuid4()
    for session_id in (a, b, c):
        bridge.request_occupancy(session_id)

    assert bridge.relinquish(b) is None

    assert bridge.snapshot().waiting == (c,)
    assert bridge.holder == a


def test_failing_listener_does_not_break_release() -> None:
    bridge = BridgeAdmissionController()
    seen: list[object] = []

    def broken(_session_id: object) -> None:
        raise RuntimeError("boom")

    bridge.add_grant_listener(broken)
    bridge.add_grant_listener(seen.append)
    a, b = uuid4(), uuid4()
    bridge.request_occupancy(a)
    bridge.request_occupancy(b)

    assert bridge.release(a) == b
    assert seen == [b]


def test_wait_for_grant_wakes_up_on_release() -> None:
    bridge = BridgeAdmissionController()
    a, b = uuid4(), uuid4()
    bridge.request_occupancy(a)
    bridge.request_occupancy(b)
    result: list[bool] = []

    waiter = threading.Thread(target=lambda: result.append(bridge.wait_for_grant(b, timeout=5)))
    waiter.start()
    bridge.release(a)
    waiter.join(timeout=5)

    assert result == [True]


def test_wait_for_grant_times_out() -> None:
    bridge = BridgeAdmissionController()
    a, b = uuid4(), uuid4()
    bridge.request_occupancy(a)
    bridge.request_occupancy(b)

    assert bridge.wait_for_grant(b, timeout=0.01) is False


def test_concurrent_requests_grant_exactly_one_holder() -> None:
    bridge = BridgeAdmissionController()
    ids = [uuid4() for _ in range(16)]
    barrier = threading.Barrier(len(ids))
    results: dict[object, object] = {}

    def request(session_id: object) -> None:
        barrier.wait()
        results[session_id] = bridge.request_occupancy(session_id)  # type: ignore[arg-type]

    threads = [threading.Thread(target=request, args=(session_id,)) for session_id in ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    granted = [result for result in results.values() if isinstance(result, Granted)]
    queued = sorted(result.position for result in results.values() if isinstance(result, Queued))
    assert len(granted) == 1
    assert queued == list(range(1, len(ids)))


def test_restore_puts_back_holder_and_waiters_without_notifying() -> None:
    bridge = BridgeAdmissionController()
    granted: list[object] = []
    bridge.add_grant_listener(granted.append)
    a, b = uuid4(), uuid4()

    snapshot = bridge.restore([a, b, a])

    assert snapshot.holder == a
    assert snapshot.waiting == (b,)
    assert granted == []
    assert bridge.request_occupancy(a) == Granted(a)
    assert bridge.release(a) == b
    assert granted == [b]


def test_restore_of_nothing_leaves_bridge_free() -> None:
    bridge = BridgeAdmissionController()

    snapshot = bridge.restore([])

    assert snapshot.holder is None
    assert snapshot.waiting == ()
