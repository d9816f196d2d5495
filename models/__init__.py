"""Data models for Mintwatch."""

from .events import (
    METADATA_PLACEHOLDER,
    RAYDIUM_POOL,
    UNKNOWN_SYMBOL,
    MigrationEvent,
    RecordKind,
    TokenCreationEvent,
    TokenMetadata,
    TradeEvent,
)

__all__ = [
    "METADATA_PLACEHOLDER",
    "RAYDIUM_POOL",
    "UNKNOWN_SYMBOL",
    "MigrationEvent",
    "RecordKind",
    "TokenCreationEvent",
    "TokenMetadata",
    "TradeEvent",
]
