"""Vendor adapter abstractions used by the fallback coordinator."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from quant_loader.ingestion.tasks import BatchRunResult, FetchTask


@dataclass
class SourceResponse:
    """Payload returned by one vendor.

    ``source_identifier`` is set when the vendor reports how it actually
    names the entity (e.g. a coin id resolved from a ticker); the
    coordinator records it as the verified mapping.
    """

    data: Any
    source_identifier: str | None = None
    endpoint: str = ""
    status_code: int = 200


class ISourceAdapter(Protocol):
    """One data vendor.

    ``fetch`` either returns a ``SourceResponse`` or raises a classified
    ``LoaderError``.
    """

    source: str

    async def fetch(self, identifier: str, task: "FetchTask") -> SourceResponse:
        ...


class ILoader(Protocol):
    """Anything that turns fetch tasks into a run result."""

    async def load(self, tasks: list["FetchTask"], persist=None) -> "BatchRunResult":
        ...
