"""Example asyncio application sending stats to an HTTP collector.

Run with:
    python -m examples.http_pool_example https://collector.example.com/ez my-key

Behaviour:
    Every simulated job bumps a counter, records the queue depth as a value
    and times itself. Counters merge in memory; everything is POSTed in one
    batch every 2 seconds and a final time when the pool stops. Failed
    batches are logged with their payload; `--verbose` shows them on stderr.
"""

import argparse
import asyncio
import random

from statpool import StatsPort, create_stat_pool, enable_verbose_logging, timed


async def run_job(stats: StatsPort, job_id: int) -> None:
    """Do some fake work and report it."""
    with timed(stats, "job_duration"):
        await asyncio.sleep(random.uniform(0.01, 0.1))
    stats.count("jobs_done")
    stats.value("queue_depth", random.randint(0, 20))
    if job_id % 10 == 0:
        stats.count("jobs_slow")


async def main(url: str, ezkey: str, jobs: int) -> None:
    pool = create_stat_pool(url, ezkey, flush_interval=2.0, prefix="demo:")
    async with pool as stats:
        await asyncio.gather(*(run_job(stats, i) for i in range(jobs)))
        print(f"emitted stats for {jobs} jobs, dropped {stats.stats.dropped}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("url")
    parser.add_argument("ezkey")
    parser.add_argument("--jobs", type=int, default=100)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()
    if args.verbose:
        enable_verbose_logging()
    asyncio.run(main(args.url, args.ezkey, args.jobs))
