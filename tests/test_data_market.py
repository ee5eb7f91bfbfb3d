import pytest

from conftest import market_snapshot
from sentinel.data.breaker import CircuitBreaker
from sentinel.data.market import MarketDataGateway, address_hash, mock_snapshot
from sentinel.data.price_index import PriceIndexSource
from sentinel.errors import CircuitOpen, DataUnavailable, TransientSourceFailure
from sentinel.types import VolumeTrend

TOKEN = "0x" + "ab" * 20


class Clock:
    def __init__(self, t=1_700_000_000.0):
        self.t = t

    def __call__(self):
        return self.t


class Source:
    def __init__(self, name, clock, price=1.0, fail=False, age=0.0):
        self.name = name
        self.clock = clock
        self.price = price
        self.fail = fail
        self.age = age
        self.calls = 0

    def fetch(self, token):
        self.calls += 1
        if self.fail:
            raise TransientSourceFailure(f"{self.name} down")
        return market_snapshot(token, price=self.price, observed_at=self.clock() - self.age)


def gateway(sources, clock, allow_mock=False, threshold=5):
    return MarketDataGateway(
        sources,
        cache_ttl=30,
        allow_mock_on_fail=allow_mock,
        breaker=CircuitBreaker(threshold, 60, clock=clock),
        clock=clock,
    )


@pytest.mark.asyncio
async def test_primary_result_is_cached():
    clock = Clock()
    primary = Source("primary", clock, price=2.0)
    gw = gateway([primary], clock)
    a = await gw.get_market_data(TOKEN)
    clock.t += 29
    b = await gw.get_market_data(TOKEN)
    assert a.price == b.price == 2.0
    assert primary.calls == 1
    clock.t += 2
    await gw.get_market_data(TOKEN)
    assert primary.calls == 2


@pytest.mark.asyncio
async def test_falls_through_to_secondary():
    clock = Clock()
    primary = Source("primary", clock, fail=True)
    secondary = Source("secondary", clock, price=0.5)
    gw = gateway([primary, secondary], clock)
    snap = await gw.get_market_data(TOKEN)
    assert snap.price == 0.5
    assert primary.calls == secondary.calls == 1
    assert gw.breaker.state.failure_count == 0


@pytest.mark.asyncio
async def test_stale_source_data_counts_as_failure():
    clock = Clock()
    stale = Source("stale", clock, price=9.0, age=120)
    fresh = Source("fresh", clock, price=1.5)
    gw = gateway([stale, fresh], clock)
    assert (await gw.get_market_data(TOKEN)).price == 1.5


@pytest.mark.asyncio
async def test_all_fail_without_fallback_raises():
    clock = Clock()
    gw = gateway([Source("a", clock, fail=True), Source("b", clock, fail=True)], clock)
    with pytest.raises(DataUnavailable):
        await gw.get_market_data(TOKEN)
    assert gw.breaker.state.failure_count == 1


@pytest.mark.asyncio
async def test_breaker_trips_and_fails_fast_until_window_elapses():
    clock = Clock()
    src = Source("a", clock, fail=True)
    gw = gateway([src], clock)
    for _ in range(5):
        with pytest.raises(DataUnavailable):
            await gw.get_market_data(TOKEN)
    assert src.calls == 5
    assert gw.breaker.is_open

    for _ in range(3):
        clock.t += 10
        with pytest.raises(CircuitOpen):
            await gw.get_market_data(TOKEN)
    assert src.calls == 5

    clock.t += 31
    src.fail = False
    snap = await gw.get_market_data(TOKEN)
    assert snap.price == 1.0
    assert src.calls == 6
    assert not gw.breaker.is_open


@pytest.mark.asyncio
async def test_fallback_serves_deterministic_mock_and_caches_it():
    clock = Clock()
    src = Source("a", clock, fail=True)
    gw = gateway([src], clock, allow_mock=True)
    snap = await gw.get_market_data(TOKEN)
    assert snap.source == "mock"
    assert snap == mock_snapshot(TOKEN, clock.t)
    await gw.get_market_data(TOKEN)
    assert src.calls == 1
    assert gw.breaker.state.failure_count == 0


@pytest.mark.asyncio
async def test_open_breaker_with_fallback_returns_mock():
    clock = Clock()
    breaker = CircuitBreaker(1, 60, clock=clock)
    breaker.record_failure()
    src = Source("a", clock)
    gw = MarketDataGateway([src], allow_mock_on_fail=True, breaker=breaker, clock=clock)
    snap = await gw.get_market_data(TOKEN)
    assert snap.source == "mock"
    assert src.calls == 0


def test_mock_snapshot_ranges():
    for i in range(50):
        addr = "0x" + f"{i:040x}"
        snap = mock_snapshot(addr, 0.0)
        assert 0.1 <= snap.price <= 10.1
        assert 1000 <= snap.volume_24h < 11000
        base = abs(address_hash(addr)) % 1000
        assert snap.volume_trend == [VolumeTrend.RISING, VolumeTrend.FLAT, VolumeTrend.FALLING][base % 3]


def test_address_hash_is_32bit_signed():
    assert address_hash("") == 0
    assert address_hash("a") == 97
    assert address_hash("ab") == 97 * 31 + 98
    h = address_hash("0x" + "ff" * 20)
    assert -(2**31) <= h < 2**31


@pytest.mark.asyncio
async def test_price_index_429_moves_to_next_source(requests_mock):
    clock = Clock()
    requests_mock.get(f"https://prices.test/latest/dex/tokens/{TOKEN}", status_code=429)
    backup = Source("router", clock, price=0.3)
    gw = gateway([PriceIndexSource("https://prices.test", 5), backup], clock)
    snap = await gw.get_market_data(TOKEN)
    assert snap.price == 0.3
    assert requests_mock.call_count == 1


def test_from_settings(monkeypatch):
    from sentinel.config import settings

    monkeypatch.setattr(settings, "market_cache_ttl", 12.0)
    monkeypatch.setattr(settings, "allow_mock_on_fail", False)
    gw = MarketDataGateway.from_settings(settings, web3=object())
    assert [s.name for s in gw.sources] == ["price_index", "router"]
    assert gw.cache_ttl == 12.0
    assert gw.allow_mock_on_fail is False
    assert gw.breaker.threshold == settings.breaker_failure_threshold
