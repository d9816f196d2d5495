"""Normalized records built from PumpPortal feed frames."""

import time
from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, Optional

UNKNOWN_SYMBOL = "UNKNOWN"
METADATA_PLACEHOLDER = "N/A"
RAYDIUM_POOL = "raydium"


class RecordKind(str, Enum):
    """Record shape a frame can produce."""
    CREATION = "creation"
    MIGRATION = "migration"
    TRADE = "trade"


def now_ms() -> int:
    """Ingestion timestamp in epoch milliseconds."""
    return int(time.time() * 1000)


def _mint(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def _rpc_params(record: Any) -> Dict[str, Any]:
    return {f"p_{key}": value for key, value in asdict(record).items()}


@dataclass
class TokenMetadata:
    """
    Off-chain metadata document for a token.

    Every field is optional; None means the document did not supply a
    usable value.
    """
    description: Optional[str] = None
    twitter: Optional[str] = None
    telegram: Optional[str] = None
    website: Optional[str] = None
    image: Optional[str] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "TokenMetadata":
        """Keep only non-empty string values from a decoded document."""
        values = {}
        for f in fields(cls):
            value = document.get(f.name)
            if isinstance(value, str) and value.strip():
                values[f.name] = value
        return cls(**values)


@dataclass
class TokenCreationEvent:
    """
    A freshly minted token announcement.

    mint_address is the natural dedup key. Metadata fields hold the
    placeholder until enrichment supplies a value.
    """
    signature: Optional[str]
    mint_address: str
    trader_public_key: Optional[str]
    tx_type: Optional[str]
    initial_buy: Optional[float]
    sol_amount: Optional[float]
    bonding_curve_key: Optional[str]
    v_tokens_in_bonding_curve: Optional[float]
    v_sol_in_bonding_curve: Optional[float]
    market_cap_sol: Optional[float]
    name: str
    symbol: str
    uri: Optional[str]
    pool: Optional[str]
    description: str = METADATA_PLACEHOLDER
    twitter: str = METADATA_PLACEHOLDER
    telegram: str = METADATA_PLACEHOLDER
    website: str = METADATA_PLACEHOLDER
    image: str = METADATA_PLACEHOLDER
    timestamp: int = 0

    @classmethod
    def from_frame(cls, frame: Dict[str, Any], timestamp: Optional[int] = None) -> "TokenCreationEvent":
        """Build from a frame that has both name and mint."""
        return cls(
            signature=frame.get("signature"),
            mint_address=str(frame["mint"]),
            trader_public_key=frame.get("traderPublicKey"),
            tx_type=frame.get("txType"),
            initial_buy=frame.get("initialBuy"),
            sol_amount=frame.get("solAmount"),
            bonding_curve_key=frame.get("bondingCurveKey"),
            v_tokens_in_bonding_curve=frame.get("vTokensInBondingCurve"),
            v_sol_in_bonding_curve=frame.get("vSolInBondingCurve"),
            market_cap_sol=frame.get("marketCapSol"),
            name=frame["name"],
            symbol=frame.get("symbol") or UNKNOWN_SYMBOL,
            uri=frame.get("uri") or None,
            pool=frame.get("pool"),
            timestamp=timestamp if timestamp is not None else now_ms(),
        )

    def with_metadata(self, metadata: TokenMetadata) -> "TokenCreationEvent":
        """Return a copy with placeholders replaced by supplied metadata."""
        supplied = {k: v for k, v in asdict(metadata).items() if v}
        return replace(self, **supplied)

    def to_rpc_params(self) -> Dict[str, Any]:
        return _rpc_params(self)


@dataclass
class MigrationEvent:
    """Liquidity for a token landing in the Raydium pool."""
    signature: Optional[str]
    mint_address: Optional[str]
    tx_type: Optional[str]
    market_id: Optional[str]
    market_cap_sol: Optional[float]
    price: Optional[float]
    pool: str
    timestamp: int = 0

    @classmethod
    def from_frame(cls, frame: Dict[str, Any], timestamp: Optional[int] = None) -> "MigrationEvent":
        return cls(
            signature=frame.get("signature"),
            mint_address=_mint(frame.get("mint")),
            tx_type=frame.get("txType"),
            market_id=frame.get("marketId"),
            market_cap_sol=frame.get("marketCapSol"),
            price=frame.get("price"),
            pool=frame["pool"],
            timestamp=timestamp if timestamp is not None else now_ms(),
        )

    def to_rpc_params(self) -> Dict[str, Any]:
        return _rpc_params(self)


@dataclass
class TradeEvent:
    """A buy, sell or create transaction on a token."""
    signature: str
    mint_address: Optional[str]
    trader_public_key: Optional[str]
    tx_type: str
    initial_buy: float
    sol_amount: Optional[float]
    bonding_curve_key: Optional[str]
    v_tokens_in_bonding_curve: Optional[float]
    v_sol_in_bonding_curve: Optional[float]
    market_cap_sol: Optional[float]
    name: Optional[str]
    symbol: str
    uri: Optional[str]
    pool: Optional[str]
    timestamp: int = 0
    token_amount: float = 0
    new_token_balance: float = 0

    @classmethod
    def from_frame(cls, frame: Dict[str, Any], timestamp: Optional[int] = None) -> "TradeEvent":
        """Build from a frame that has both signature and txType."""
        return cls(
            signature=frame["signature"],
            mint_address=_mint(frame.get("mint")),
            trader_public_key=frame.get("traderPublicKey"),
            tx_type=frame["txType"],
            initial_buy=frame.get("initialBuy") or 0,
            sol_amount=frame.get("solAmount"),
            bonding_curve_key=frame.get("bondingCurveKey"),
            v_tokens_in_bonding_curve=frame.get("vTokensInBondingCurve"),
            v_sol_in_bonding_curve=frame.get("vSolInBondingCurve"),
            market_cap_sol=frame.get("marketCapSol"),
            name=frame.get("name") or None,
            symbol=frame.get("symbol") or UNKNOWN_SYMBOL,
            uri=frame.get("uri") or None,
            pool=frame.get("pool"),
            timestamp=timestamp if timestamp is not None else now_ms(),
            token_amount=frame.get("tokenAmount") or 0,
            new_token_balance=frame.get("newTokenBalance") or 0,
        )

    def to_rpc_params(self) -> Dict[str, Any]:
        return _rpc_params(self)
