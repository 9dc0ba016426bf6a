"""Adapters for external systems integration."""

from .graph import GraphClient, PageAggregator

__all__ = [
    "GraphClient",
    "PageAggregator",
]
