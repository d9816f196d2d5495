"""Frame classification into creation, migration and trade records."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from models.events import (
    RAYDIUM_POOL,
    MigrationEvent,
    RecordKind,
    TokenCreationEvent,
    TradeEvent,
    now_ms,
)

logger = logging.getLogger(__name__)


def is_creation(frame: Dict[str, Any]) -> bool:
    """New-token announcement: name and mint both present."""
    return bool(frame.get("name")) and bool(frame.get("mint"))


def is_migration(frame: Dict[str, Any]) -> bool:
    """Liquidity event in the Raydium pool."""
    return frame.get("pool") == RAYDIUM_POOL


def is_trade(frame: Dict[str, Any]) -> bool:
    """Trade candidate: signature and txType both present."""
    return bool(frame.get("signature")) and bool(frame.get("txType"))


@dataclass
class ClassifiedFrame:
    """
    Records built from one frame.

    The predicates overlap: a create frame also satisfies the trade
    predicate, so it yields both a creation and a trade record.
    """
    creation: Optional[TokenCreationEvent] = None
    migration: Optional[MigrationEvent] = None
    trade: Optional[TradeEvent] = None

    @property
    def kinds(self) -> List[RecordKind]:
        kinds = []
        if self.creation is not None:
            kinds.append(RecordKind.CREATION)
        if self.migration is not None:
            kinds.append(RecordKind.MIGRATION)
        if self.trade is not None:
            kinds.append(RecordKind.TRADE)
        return kinds

    @property
    def is_empty(self) -> bool:
        return not self.kinds


def classify_frame(frame: Any, timestamp_ms: Optional[int] = None) -> ClassifiedFrame:
    """Build every record shape `frame` matches. Unknown keys are ignored."""
    if not isinstance(frame, dict):
        return ClassifiedFrame()

    timestamp = timestamp_ms if timestamp_ms is not None else now_ms()
    result = ClassifiedFrame()

    if is_creation(frame):
        result.creation = TokenCreationEvent.from_frame(frame, timestamp)
    if is_migration(frame):
        result.migration = MigrationEvent.from_frame(frame, timestamp)
    if is_trade(frame):
        result.trade = TradeEvent.from_frame(frame, timestamp)

    return result


def decode_frame(raw: Union[str, bytes]) -> Optional[Dict[str, Any]]:
    """Parse a raw socket message. Returns None unless it is a JSON object."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.debug(f"Ignoring non-JSON frame: {e}")
        return None

    if not isinstance(data, dict):
        logger.debug(f"Ignoring non-object frame: {type(data).__name__}")
        return None

    return data
