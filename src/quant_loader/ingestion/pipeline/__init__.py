from .loader import LoaderPipeline
from .tracker import (
    InMemoryProcessTracker,
    IProcessTracker,
    PostgresProcessTracker,
    ProcessInfo,
)

__all__ = [
    "InMemoryProcessTracker",
    "IProcessTracker",
    "LoaderPipeline",
    "PostgresProcessTracker",
    "ProcessInfo",
]
