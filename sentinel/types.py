import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class VolumeTrend(str, Enum):
    RISING = "RISING"
    FLAT = "FLAT"
    FALLING = "FALLING"


class Sentiment(str, Enum):
    POSITIVE = "POSITIVE"
    NEUTRAL = "NEUTRAL"
    NEGATIVE = "NEGATIVE"


class Classification(str, Enum):
    VALID_BREAKOUT = "VALID_BREAKOUT"
    FAKE_PUMP = "FAKE_PUMP"
    ACCUMULATION = "ACCUMULATION"
    NOISE = "NOISE"


class RiskMode(str, Enum):
    GUARDIAN = "GUARDIAN"
    HUNTER = "HUNTER"


class TradeAction(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class MarketSnapshot(BaseModel):
    token_address: str
    price: float
    volume_24h: float
    volume_trend: VolumeTrend
    observed_at: float = Field(default_factory=time.time)
    source: str = "unknown"


class SentimentSnapshot(BaseModel):
    token_symbol: str
    mentions: int
    sentiment: Sentiment
    sources: list[str] = Field(default_factory=list)
    smart_money_mentions: int = 0
    observed_at: float = Field(default_factory=time.time)


class Signal(BaseModel):
    classification: Classification
    confidence_score: float = Field(ge=0.0, le=100.0)
    reasoning: str
    produced_at: float = Field(default_factory=time.time)


class RiskProfile(BaseModel):
    # Frozen: a mode switch replaces the whole profile.
    model_config = {"frozen": True}

    mode: RiskMode
    allowed_tokens: tuple[str, ...] = ()  # empty = all tokens allowed
    min_confidence_score: float
    stop_loss_percent: float
    max_position_size: float
    slippage_tolerance: float  # percent, 1 = 1%


class TradeDecision(BaseModel):
    should_trade: bool
    action: TradeAction
    amount: float = 0.0
    reasoning: str
    token_address: str | None = None
    source_signal: Optional[Signal] = None
    source_market: Optional[MarketSnapshot] = None
    source_sentiment: Optional[SentimentSnapshot] = None
    error: str | None = None
    tx_hash: str | None = None


class PendingTrade(BaseModel):
    action: TradeAction
    token_in: str
    token_out: str
    amount: float = Field(gt=0.0)
    requires_confirmation: bool = False
    created_at: float = Field(default_factory=time.time)


class CircuitBreakerState(BaseModel):
    failure_count: int = 0
    circuit_open: bool = False
    last_failure_at: float = 0.0


class TokenInfo(BaseModel):
    address: str
    symbol: str
    name: str | None = None


class SwapResult(BaseModel):
    ok: bool
    tx_hash: str | None = None
    block_number: int | None = None
    approval_tx_hash: str | None = None
    balances: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: str | None = None


class LlmResponse(BaseModel):
    status: str  # success | error
    text: str
    error_kind: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"
