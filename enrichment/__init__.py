"""Enrichment module for token metadata."""

from .metadata import MetadataFetcher, gateway_url

__all__ = [
    "MetadataFetcher",
    "gateway_url",
]
