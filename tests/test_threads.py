import threading

from eventizer.core.dispatcher import Dispatcher


def test_concurrent_subscribe_and_unsubscribe_keeps_counts():
    bus = Dispatcher("test.threads.count", metrics=False)
    n_threads, per_thread = 8, 200
    barrier = threading.Barrier(n_threads)

    def worker(i):
        handles = []
        barrier.wait()
        for k in range(per_thread):
            handles.append(bus.on("shared", lambda p, i=i, k=k: None))
        for h in handles[: per_thread // 2]:
            h()

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(n_threads)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10.0)

    assert bus.subscriber_count("shared") == n_threads * per_thread // 2


def test_emit_while_other_threads_mutate():
    bus = Dispatcher("test.threads.emit", metrics=False)
    received = []
    lock = threading.Lock()

    def listener(payload):
        with lock:
            received.append(payload)

    bus.on("tick", listener)
    stop = threading.Event()

    def churn():
        while not stop.is_set():
            unsub = bus.on("tick", lambda p: None)
            unsub()

    churners = [threading.Thread(target=churn, daemon=True) for _ in range(4)]
    for t in churners:
        t.start()
    try:
        for i in range(500):
            bus.emit("tick", i)
    finally:
        stop.set()
        for t in churners:
            t.join(timeout=2.0)

    assert received == list(range(500))
    assert bus.subscriber_count("tick") == 1
