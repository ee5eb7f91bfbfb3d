from sentinel.chains import CRONOS
from sentinel.data.validation import validate_risk_profile
from sentinel.types import Classification, RiskMode, RiskProfile, Signal, TradeAction, TradeDecision

GUARDIAN_PROFILE = RiskProfile(
    mode=RiskMode.GUARDIAN,
    allowed_tokens=(
        CRONOS.tokens["WCRO"],
        CRONOS.tokens["USDC"],
        CRONOS.tokens["WBTC"],
    ),
    min_confidence_score=90,
    stop_loss_percent=-2,
    max_position_size=1000,
    slippage_tolerance=0.5,
)

HUNTER_PROFILE = RiskProfile(
    mode=RiskMode.HUNTER,
    allowed_tokens=(),
    min_confidence_score=50,
    stop_loss_percent=-15,
    max_position_size=500,
    slippage_tolerance=2,
)


def profile_for(mode: str | RiskMode) -> RiskProfile:
    if not isinstance(mode, RiskMode):
        mode = RiskMode(mode.upper())
    return GUARDIAN_PROFILE if mode == RiskMode.GUARDIAN else HUNTER_PROFILE


def _hold(reasoning: str, token_address: str, signal: Signal) -> TradeDecision:
    return TradeDecision(
        should_trade=False,
        action=TradeAction.HOLD,
        amount=0,
        reasoning=reasoning,
        token_address=token_address,
        source_signal=signal,
    )


def evaluate(signal: Signal, profile: RiskProfile, token_address: str) -> TradeDecision:
    """Filter a signal through the risk profile. Never emits SELL."""
    if not validate_risk_profile(profile):
        return _hold("Invalid risk profile configuration", token_address, signal)

    if signal.confidence_score < profile.min_confidence_score:
        return _hold(
            f"Confidence {signal.confidence_score} below minimum "
            f"{profile.min_confidence_score} for {profile.mode.value} mode",
            token_address,
            signal,
        )

    if profile.mode == RiskMode.GUARDIAN:
        allowed = {t.lower() for t in profile.allowed_tokens}
        if token_address.lower() not in allowed:
            return _hold(
                f"Token {token_address} is not in the GUARDIAN whitelist "
                f"({', '.join(profile.allowed_tokens)})",
                token_address,
                signal,
            )

    if signal.classification in (Classification.VALID_BREAKOUT, Classification.ACCUMULATION):
        return TradeDecision(
            should_trade=True,
            action=TradeAction.BUY,
            amount=profile.max_position_size,
            reasoning=f"{signal.classification.value}: {signal.reasoning}",
            token_address=token_address,
            source_signal=signal,
        )

    return _hold(
        f"{signal.classification.value} is not actionable: {signal.reasoning}",
        token_address,
        signal,
    )


class RiskGate:
    def evaluate(self, signal: Signal, profile: RiskProfile, token_address: str) -> TradeDecision:
        return evaluate(signal, profile, token_address)
