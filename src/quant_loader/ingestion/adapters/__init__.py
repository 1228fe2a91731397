from .alphavantage import AlphaVantageSourceAdapter
from .http_source import HttpSourceAdapter

__all__ = ["AlphaVantageSourceAdapter", "HttpSourceAdapter"]
