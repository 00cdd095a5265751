"""Example synchronous worker using a thread-hosted stat pool.

Run with:
    python -m examples.background_example

Behaviour:
    Worker threads emit stats without an event loop. Stats go to an
    in-memory transport so the example runs offline; the delivered records
    are printed once the pool stops. Swap InMemoryTransport for
    HttpxTransport(url) to send to a real collector.
"""

import json
import logging
import threading
import time

from statpool import (
    BackgroundStatPool,
    DiagnosticsHandler,
    InMemoryTransport,
    StatPool,
)

# Keep statpool's warnings (dropped stats, failed batches) for inspection
diagnostics = DiagnosticsHandler(level=logging.WARNING)
logging.getLogger("statpool").addHandler(diagnostics)


def worker(stats: BackgroundStatPool, name: str) -> None:
    for _ in range(50):
        start = time.perf_counter()
        time.sleep(0.001)
        stats.count("items_processed")
        stats.sampled_duration("item_time", time.perf_counter() - start, 0.2)
    stats.value(f"{name}_finished_at", 1, time.time())


def main() -> None:
    transport = InMemoryTransport()
    stats = BackgroundStatPool(StatPool(transport, "example-key", flush_interval=1.0))
    stats.start()

    threads = [
        threading.Thread(target=worker, args=(stats, f"worker{i}")) for i in range(4)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    stats.stop_sync()

    for record in transport.records():
        print(json.dumps(record))
    print(f"{len(transport.bodies)} request(s), {len(diagnostics.entries())} warning(s)")


if __name__ == "__main__":
    main()
