import json
import logging
import re
import time
from typing import Callable

from sentinel.data.market import address_hash
from sentinel.data.validation import validate_sentiment_data
from sentinel.types import Sentiment, SentimentSnapshot

logger = logging.getLogger("sentinel.data")

STABLECOINS = {"USDC", "USDT", "DAI", "BUSD", "TUSD"}
MAJORS = {"CRO", "WCRO", "BTC", "WBTC", "ETH", "WETH"}

POSITIVE_WORDS = ["bullish", "moon", "buy", "accumulation", "positive", "rising", "growth"]
NEGATIVE_WORDS = ["bearish", "sell", "dump", "negative", "falling", "declining", "scam"]

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")
_MENTIONS = re.compile(r"(\d+)\s*mentions", re.IGNORECASE)

SENTIMENT_PROMPT = """
You are a crypto market analyst tracking social chatter and smart-money wallets.
Assess the current sentiment for the token {symbol} on Cronos.

Respond ONLY in JSON with keys:
  sentiment (POSITIVE | NEUTRAL | NEGATIVE),
  mentions (integer, approximate social mentions in the last 24h),
  smartMoneyActivity (integer, notable smart-money wallet interactions),
  sources (list of strings).
"""


def heuristic_sentiment(symbol: str, now: float | None = None) -> SentimentSnapshot:
    """Symbol-class guess used whenever the LLM path is unavailable."""
    now = time.time() if now is None else now
    sym = symbol.upper()
    h = abs(address_hash(sym))
    if sym in STABLECOINS:
        sentiment, mentions, smart = Sentiment.NEUTRAL, 10 + h % 40, 0
    elif sym in MAJORS:
        sentiment, mentions, smart = Sentiment.POSITIVE, 300 + h % 700, h % 10
    else:
        sentiment = [Sentiment.POSITIVE, Sentiment.NEUTRAL, Sentiment.NEGATIVE][h % 3]
        mentions, smart = h % 1000, (h // 1000) % 50
    return SentimentSnapshot(
        token_symbol=symbol,
        mentions=mentions,
        sentiment=sentiment,
        sources=["Heuristic"],
        smart_money_mentions=smart,
        observed_at=now,
    )


def extract_from_text(symbol: str, text: str, now: float | None = None) -> SentimentSnapshot:
    lower = text.lower()
    pos = sum(1 for w in POSITIVE_WORDS if w in lower)
    neg = sum(1 for w in NEGATIVE_WORDS if w in lower)
    if pos > neg:
        sentiment = Sentiment.POSITIVE
    elif neg > pos:
        sentiment = Sentiment.NEGATIVE
    else:
        sentiment = Sentiment.NEUTRAL
    m = _MENTIONS.search(text)
    return SentimentSnapshot(
        token_symbol=symbol,
        mentions=int(m.group(1)) if m else 50,
        sentiment=sentiment,
        sources=["AI Analysis", "Social Media"],
        smart_money_mentions=5 if sentiment == Sentiment.POSITIVE else 0,
        observed_at=time.time() if now is None else now,
    )


def parse_llm_sentiment(symbol: str, text: str, now: float | None = None) -> SentimentSnapshot:
    """Structured reading of an LLM answer, keyword extraction if it isn't JSON.

    Raises ``ValueError`` or ``TypeError`` when the JSON carries fields of the
    wrong shape, e.g. a number where the source list belongs.
    """
    now = time.time() if now is None else now
    m = _JSON_BLOCK.search(text)
    try:
        if not m:
            raise ValueError("no JSON object in response")
        data = json.loads(m.group(0))
        if not isinstance(data, dict):
            raise ValueError("JSON response is not an object")
    except ValueError:
        return extract_from_text(symbol, text, now)

    label = str(data.get("sentiment") or "NEUTRAL").upper()
    if label not in Sentiment.__members__:
        label = "NEUTRAL"
    sources = data.get("sources") or ["AI Analysis"]
    if isinstance(sources, str):
        sources = [sources]
    return SentimentSnapshot(
        token_symbol=symbol,
        mentions=int(data.get("mentions") or 100),
        sentiment=Sentiment(label),
        sources=[str(s) for s in sources],
        smart_money_mentions=int(data.get("smartMoneyActivity") or 0),
        observed_at=now,
    )


class SentimentGateway:
    def __init__(
        self,
        llm_queue=None,
        cache_ttl: float = 30.0,
        max_age: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        self.llm_queue = llm_queue
        self.cache_ttl = cache_ttl
        self.max_age = max_age
        self.clock = clock
        self._cache: dict[str, tuple[SentimentSnapshot, float]] = {}

    async def get_sentiment_data(self, token_symbol: str) -> SentimentSnapshot:
        hit = self._cache.get(token_symbol)
        if hit and self.clock() - hit[1] < self.cache_ttl:
            return hit[0]

        snap = await self._from_llm(token_symbol)
        if snap is None or not validate_sentiment_data(
            snap, now=self.clock(), max_age=self.max_age
        ):
            snap = heuristic_sentiment(token_symbol, self.clock())

        self._cache[token_symbol] = (snap, self.clock())
        return snap

    async def _from_llm(self, token_symbol: str) -> SentimentSnapshot | None:
        if self.llm_queue is None:
            return None
        resp = await self.llm_queue.submit(SENTIMENT_PROMPT.format(symbol=token_symbol))
        if not resp.ok:
            logger.warning(f"[sentiment] LLM unavailable for {token_symbol}: {resp.text}")
            return None
        try:
            return parse_llm_sentiment(token_symbol, resp.text, self.clock())
        except (ValueError, TypeError) as e:
            logger.warning(f"[sentiment] unusable LLM answer for {token_symbol}: {e}")
            return None
