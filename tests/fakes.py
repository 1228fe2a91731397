"""Test doubles shared across the suite."""

from datetime import datetime, timedelta, timezone

from quant_loader.ingestion.ports.sources import SourceResponse


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 2, 9, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class ScriptedAdapter:
    """ISourceAdapter returning queued results in order.

    Each queued item is either a payload, a ``SourceResponse`` or an
    exception instance to raise. The last item repeats once the queue
    is down to one.
    """

    def __init__(self, source: str, *results):
        self.source = source
        self._results = list(results) or [{"source": source}]
        self.calls: list[tuple[str, object]] = []

    async def fetch(self, identifier, task):
        self.calls.append((identifier, task))
        result = self._results.pop(0) if len(self._results) > 1 else self._results[0]
        if isinstance(result, BaseException):
            raise result
        if isinstance(result, SourceResponse):
            return result
        return SourceResponse(data=result, endpoint=f"https://{self.source}.test/query")
