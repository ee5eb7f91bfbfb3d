import asyncio
import logging
import time
from typing import Callable, Iterable, Protocol

from sentinel.config import settings as default_settings
from sentinel.data.breaker import CircuitBreaker
from sentinel.data.price_index import PriceIndexSource, RouterQuoteSource
from sentinel.data.validation import validate_market_data
from sentinel.errors import CircuitOpen, DataUnavailable, StaleData
from sentinel.types import MarketSnapshot, VolumeTrend

logger = logging.getLogger("sentinel.data")


class MarketSource(Protocol):
    name: str

    def fetch(self, token_address: str) -> MarketSnapshot: ...


def address_hash(addr: str) -> int:
    """32-bit signed string hash (h * 31 + c, wrapping)."""
    h = 0
    for ch in addr:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


def mock_snapshot(token_address: str, now: float | None = None) -> MarketSnapshot:
    """Deterministic stand-in used when every source is down."""
    base = abs(address_hash(token_address)) % 1000
    trend = [VolumeTrend.RISING, VolumeTrend.FLAT, VolumeTrend.FALLING][base % 3]
    return MarketSnapshot(
        token_address=token_address,
        price=0.1 + (base / 1000) * 10,
        volume_24h=1000 + base * 10,
        volume_trend=trend,
        observed_at=time.time() if now is None else now,
        source="mock",
    )


class MarketDataGateway:
    """Price/volume for a token through an ordered chain of sources.

    Results are cached per address. A circuit breaker counts calls where
    every source failed. With ``allow_mock_on_fail`` the gateway never raises
    and serves ``mock_snapshot`` instead, leaving the breaker untouched.
    """

    def __init__(
        self,
        sources: Iterable[MarketSource],
        cache_ttl: float = 30.0,
        allow_mock_on_fail: bool = True,
        breaker: CircuitBreaker | None = None,
        max_age: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        self.sources = list(sources)
        self.cache_ttl = cache_ttl
        self.allow_mock_on_fail = allow_mock_on_fail
        self.breaker = breaker or CircuitBreaker(clock=clock, name="market")
        self.max_age = max_age
        self.clock = clock
        self._cache: dict[str, tuple[MarketSnapshot, float]] = {}

    @classmethod
    def from_settings(cls, s=None, web3=None) -> "MarketDataGateway":
        s = s or default_settings
        sources = [
            PriceIndexSource(s.price_index_base, s.price_timeout),
            RouterQuoteSource(web3, s.router_address, s.stable_token, s.stable_decimals),
        ]
        return cls(
            sources,
            cache_ttl=s.market_cache_ttl,
            allow_mock_on_fail=s.allow_mock_on_fail,
            breaker=CircuitBreaker(s.breaker_failure_threshold, s.breaker_reset_sec, name="market"),
            max_age=s.max_data_age,
        )

    def _cached(self, token_address: str) -> MarketSnapshot | None:
        hit = self._cache.get(token_address)
        if hit and self.clock() - hit[1] < self.cache_ttl:
            return hit[0]
        return None

    def _store(self, token_address: str, snap: MarketSnapshot) -> MarketSnapshot:
        self._cache[token_address] = (snap, self.clock())
        return snap

    def _fallback(self, token_address: str, reason: str) -> MarketSnapshot:
        logger.warning(f"[market] {token_address}: {reason}; serving mock snapshot")
        return self._store(token_address, mock_snapshot(token_address, self.clock()))

    async def get_market_data(self, token_address: str) -> MarketSnapshot:
        cached = self._cached(token_address)
        if cached is not None:
            return cached

        if not self.breaker.allow():
            if self.allow_mock_on_fail:
                return self._fallback(token_address, "circuit open")
            raise CircuitOpen(f"market data circuit open for {token_address}")

        errors = []
        for source in self.sources:
            try:
                snap = await asyncio.to_thread(source.fetch, token_address)
                if not validate_market_data(snap, now=self.clock(), max_age=self.max_age):
                    raise StaleData(f"{source.name} returned invalid or stale data")
            except Exception as e:
                logger.info(f"[market] {source.name} failed for {token_address}: {e}")
                errors.append(f"{source.name}: {e}")
                continue
            self.breaker.record_success()
            return self._store(token_address, snap)

        reason = "; ".join(errors) or "no sources configured"
        if self.allow_mock_on_fail:
            return self._fallback(token_address, reason)
        self.breaker.record_failure()
        raise DataUnavailable(f"market data unavailable for {token_address}: {reason}")
