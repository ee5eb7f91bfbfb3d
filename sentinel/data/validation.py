import time

from sentinel.types import (
    MarketSnapshot,
    RiskMode,
    RiskProfile,
    Sentiment,
    SentimentSnapshot,
    VolumeTrend,
)

MAX_DATA_AGE_SEC = 60.0


def _fresh(observed_at: float, now: float | None, max_age: float) -> bool:
    now = time.time() if now is None else now
    return now - observed_at <= max_age


def validate_market_data(
    data: MarketSnapshot, now: float | None = None, max_age: float = MAX_DATA_AGE_SEC
) -> bool:
    if not data.token_address or not data.token_address.startswith("0x"):
        return False
    if data.price < 0 or data.volume_24h < 0:
        return False
    if data.volume_trend not in VolumeTrend:
        return False
    return _fresh(data.observed_at, now, max_age)


def validate_sentiment_data(
    data: SentimentSnapshot, now: float | None = None, max_age: float = MAX_DATA_AGE_SEC
) -> bool:
    if not data.token_symbol:
        return False
    if data.mentions < 0 or data.smart_money_mentions < 0:
        return False
    if data.sentiment not in Sentiment:
        return False
    if not isinstance(data.sources, list):
        return False
    return _fresh(data.observed_at, now, max_age)


def validate_risk_profile(profile: RiskProfile) -> bool:
    """GUARDIAN profiles must be tight: SL no wider than -5%, confidence floor
    of 80 and an explicit allowlist. HUNTER has no floor."""
    if profile.mode == RiskMode.GUARDIAN:
        if profile.stop_loss_percent < -5:
            return False
        if profile.min_confidence_score < 80:
            return False
        if not profile.allowed_tokens:
            return False
    return True
