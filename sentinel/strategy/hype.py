from sentinel.types import (
    Classification,
    MarketSnapshot,
    Sentiment,
    SentimentSnapshot,
    Signal,
    VolumeTrend,
)

# The label drives classification; the score only feeds the thresholds below.
SENTIMENT_SCORE = {
    Sentiment.POSITIVE: 85,
    Sentiment.NEUTRAL: 50,
    Sentiment.NEGATIVE: 20,
}


def classify(market: MarketSnapshot, sentiment: SentimentSnapshot) -> Signal:
    """Hype filter: sort a (market, sentiment) pair into one of four verdicts.

    Rules are checked in order and the first match wins:

    1. hot sentiment, flat volume   -> FAKE_PUMP (85)
    2. hot sentiment, rising volume -> VALID_BREAKOUT (90)
    3. cool sentiment, smart money  -> ACCUMULATION (75)
    4. anything else                -> NOISE (50)
    """
    score = SENTIMENT_SCORE[sentiment.sentiment]
    trend = market.volume_trend

    if score > 75 and trend == VolumeTrend.FLAT:
        return Signal(
            classification=Classification.FAKE_PUMP,
            confidence_score=85,
            reasoning="High social hype but volume is flat; likely a coordinated pump.",
        )
    if score > 75 and trend == VolumeTrend.RISING:
        return Signal(
            classification=Classification.VALID_BREAKOUT,
            confidence_score=90,
            reasoning="Positive sentiment backed by rising volume.",
        )
    if score <= 50 and sentiment.smart_money_mentions > 5:
        return Signal(
            classification=Classification.ACCUMULATION,
            confidence_score=75,
            reasoning=(
                f"Quiet sentiment while smart money is active "
                f"({sentiment.smart_money_mentions} mentions)."
            ),
        )
    return Signal(
        classification=Classification.NOISE,
        confidence_score=50,
        reasoning="No clear signal.",
    )


class SignalClassifier:
    def classify(self, market: MarketSnapshot, sentiment: SentimentSnapshot) -> Signal:
        return classify(market, sentiment)
