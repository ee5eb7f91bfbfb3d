import time

import pytest

from sentinel.types import (
    LlmResponse,
    MarketSnapshot,
    Sentiment,
    SentimentSnapshot,
    VolumeTrend,
)

OWNER = "0x" + "11" * 20
ROUTER = "0x" + "22" * 20
STABLE = "0x" + "33" * 20
TOKEN = "0x" + "44" * 20


class FakeChain:
    """Stands in for ChainClient; records every write."""

    address = OWNER

    def __init__(self, allowance=0, head=100, head_step=1, fail_balance=False):
        self.web3 = object()
        self.calls = []
        self._allowance = allowance
        self.head = head
        self.head_step = head_step
        self.fail_balance = fail_balance

    def to_units(self, token, amount):
        return int(amount * 10**6)

    def allowance(self, token, spender):
        return self._allowance

    def approve(self, token, spender, raw):
        self.calls.append(("approve", token, spender, raw))
        self._allowance = raw
        return {"tx_hash": "0xapprove", "block_number": 99, "status": 1}

    def transfer(self, token, to, raw):
        self.calls.append(("transfer", token, to, raw))
        return {"tx_hash": "0xtransfer", "block_number": 120, "status": 1}

    def send_native(self, to, amount):
        self.calls.append(("send_native", to, amount))
        return {"tx_hash": "0xnative", "block_number": 121, "status": 1}

    def block_number(self):
        self.head += self.head_step
        return self.head

    def native_balance(self):
        if self.fail_balance:
            raise ConnectionError("rpc lagging")
        return 10.0

    def token_balance(self, token):
        if self.fail_balance:
            raise ConnectionError("rpc lagging")
        return 5.0


class FakeLlm:
    """Scripted completer: each entry is returned, or raised if an exception."""

    def __init__(self, *script):
        self.script = list(script)
        self.prompts = []

    async def complete(self, prompt, history=None):
        self.prompts.append(prompt)
        item = self.script.pop(0) if self.script else "ok"
        if isinstance(item, BaseException):
            raise item
        return item


class FakeQueue:
    """LlmRequestQueue lookalike returning canned responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts = []

    async def submit(self, prompt, history=None):
        self.prompts.append(prompt)
        if not self.responses:
            return LlmResponse(status="error", text="no response", error_kind="transient")
        r = self.responses.pop(0)
        if isinstance(r, LlmResponse):
            return r
        return LlmResponse(status="success", text=r)


class FakeMarket:
    def __init__(self, snapshots=None, fail=()):
        self.snapshots = snapshots or {}
        self.fail = set(fail)
        self.calls = []

    async def get_market_data(self, token_address):
        self.calls.append(token_address)
        if token_address in self.fail:
            raise ConnectionError(f"market down for {token_address}")
        return self.snapshots.get(token_address) or market_snapshot(token_address)


class FakeSentiment:
    def __init__(self, by_symbol=None, default=Sentiment.NEUTRAL, smart=0):
        self.by_symbol = by_symbol or {}
        self.default = default
        self.smart = smart
        self.calls = []

    async def get_sentiment_data(self, symbol):
        self.calls.append(symbol)
        return self.by_symbol.get(symbol) or sentiment_snapshot(symbol, self.default, self.smart)


def market_snapshot(address=TOKEN, trend=VolumeTrend.RISING, price=1.0, volume=100_000, observed_at=None):
    return MarketSnapshot(
        token_address=address,
        price=price,
        volume_24h=volume,
        volume_trend=trend,
        observed_at=time.time() if observed_at is None else observed_at,
    )


def sentiment_snapshot(symbol="TKN", sentiment=Sentiment.POSITIVE, smart=2, mentions=200, observed_at=None):
    return SentimentSnapshot(
        token_symbol=symbol,
        mentions=mentions,
        sentiment=sentiment,
        sources=["test"],
        smart_money_mentions=smart,
        observed_at=time.time() if observed_at is None else observed_at,
    )


class SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def fake_chain():
    return FakeChain()


@pytest.fixture
def sleeps():
    return SleepRecorder()
