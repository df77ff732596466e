"""
Content fetching for external availability sources.
"""

from .source_fetcher import FetchResponse, SourceFetcher

__all__ = [
    "FetchResponse",
    "SourceFetcher",
]
