"""Microsoft Graph adapters."""

from .auth import ClientCredentialsTokenProvider, StaticTokenProvider, build_token_provider
from .client import GraphClient, parse_retry_after
from .pagination import PageAggregator

__all__ = [
    "ClientCredentialsTokenProvider",
    "GraphClient",
    "PageAggregator",
    "StaticTokenProvider",
    "build_token_provider",
    "parse_retry_after",
]
