"""Null stat pool that discards everything."""

from datetime import datetime, timedelta


class NullStatPool:
    """StatPoolPort implementation whose every operation does nothing.

    Use it to disable metrics without branching at call sites:

    Example:
        ```python
        stats = create_stat_pool(url, key, 10) if enabled else NullStatPool()
        stats.count("requests")
        ```
    """

    __slots__ = ()

    def count(self, key: str, amount: float = 1.0) -> None:
        pass

    def value(
        self,
        key: str,
        amount: float,
        timestamp: float | datetime | None = None,
    ) -> None:
        pass

    def duration(self, key: str, elapsed: float | timedelta) -> None:
        pass

    def sampled_duration(
        self, key: str, elapsed: float | timedelta, rate: float
    ) -> None:
        pass

    def start(self) -> None:
        pass

    async def flush(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    def flush_sync(self) -> None:
        pass

    def stop_sync(self) -> None:
        pass
