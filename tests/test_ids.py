from __future__ import annotations

import threading

from gatewaypy.transport.ids import REQUEST_ID_START, ClientIdManager, IdGenerator


def test_next_post_increments():
    ids = IdGenerator(5)
    assert ids.current() == 5
    assert ids.next() == 5
    assert ids.next() == 6
    assert ids.current() == 7


def test_set_and_reset():
    ids = IdGenerator(0)
    ids.next()
    ids.set(500)
    assert ids.current() == 500
    assert ids.next() == 500
    ids.reset()
    assert ids.next() == 0


def test_concurrent_callers_get_distinct_contiguous_ids():
    ids = IdGenerator(0)
    results = []
    lock = threading.Lock()

    def worker():
        mine = [ids.next() for _ in range(100)]
        with lock:
            results.extend(mine)

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == list(range(1000))
    assert ids.current() == 1000


def test_client_id_manager():
    manager = ClientIdManager(initial_order_id=90)
    assert manager.next_request_id() == REQUEST_ID_START == 9000
    assert manager.next_request_id() == 9001
    assert manager.next_order_id() == 90
    manager.set_order_id(200)
    assert manager.next_order_id() == 200
    assert manager.next_request_id() == 9002
