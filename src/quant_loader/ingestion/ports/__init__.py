from .http import HttpResponse, IHttpClient
from .sources import ILoader, ISourceAdapter, SourceResponse

__all__ = [
    "HttpResponse",
    "IHttpClient",
    "ILoader",
    "ISourceAdapter",
    "SourceResponse",
]
