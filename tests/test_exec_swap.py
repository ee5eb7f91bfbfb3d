import pytest

from conftest import ROUTER, STABLE, TOKEN, FakeChain, SleepRecorder
from sentinel.errors import ExecutionFailure
from sentinel.exec.swap import SwapExecutor, SwapState
from sentinel.onchain import uniswap_v2
from sentinel.types import PendingTrade, TradeAction

WRAPPED = "0x" + "55" * 20
TOKENS = {"usdc": STABLE, "WCRO": TOKEN}


class Clock:
    def __init__(self, t=1000.0):
        self.t = t

    def __call__(self):
        return self.t


@pytest.fixture
def swaps(monkeypatch):
    calls = []

    def fake_swap(client, router_address, amount_in, path, min_out=0, deadline_sec=300):
        calls.append((router_address, amount_in, path, deadline_sec))
        return {"tx_hash": "0xswap", "block_number": 100, "status": 1}

    monkeypatch.setattr(uniswap_v2, "swap_exact_tokens_for_tokens", fake_swap)
    return calls


def trade(amount=10.0, confirm=False, created_at=1000.0):
    return PendingTrade(
        action=TradeAction.BUY,
        token_in="USDC",
        token_out="WCRO",
        amount=amount,
        requires_confirmation=confirm,
        created_at=created_at,
    )


def executor(chain=None, sleeps=None, **kw):
    return SwapExecutor(
        chain if chain is not None else FakeChain(),
        router_address=ROUTER,
        tokens=TOKENS,
        wrapped_native=WRAPPED,
        sleep=sleeps or SleepRecorder(),
        **kw,
    )


def test_resolve():
    ex = executor()
    assert ex.resolve("usdc") == STABLE
    assert ex.resolve("CRO") == WRAPPED
    assert ex.resolve("tcro") == WRAPPED
    assert ex.resolve(TOKEN) == TOKEN
    with pytest.raises(ExecutionFailure, match="DOGE"):
        ex.resolve("DOGE")


def test_small_trade_is_not_staged():
    ex = executor()
    assert ex.stage(trade()) is False
    assert ex.pending is None
    assert ex.state == SwapState.NONE


def test_stage_and_cancel():
    ex = executor()
    t = trade(1000, confirm=True)
    assert ex.stage(t) is True
    assert ex.pending is t
    assert ex.state == SwapState.AWAITING_CONFIRMATION
    assert ex.cancel() is t
    assert ex.pending is None
    assert ex.state == SwapState.CANCELLED
    assert ex.cancel() is None


def test_new_stage_replaces_pending():
    ex = executor()
    ex.stage(trade(1000, confirm=True))
    second = trade(2000, confirm=True)
    ex.stage(second)
    assert ex.pending is second


@pytest.mark.asyncio
async def test_confirm_without_pending():
    result = await executor().confirm()
    assert not result.ok
    assert result.error == "No pending trade to confirm."


@pytest.mark.asyncio
async def test_confirm_executes_and_settles(swaps):
    chain = FakeChain(allowance=0)
    sleeps = SleepRecorder()
    ex = executor(chain, sleeps)
    ex.stage(trade(1000, confirm=True))
    result = await ex.confirm()

    assert result.ok
    assert result.tx_hash == "0xswap"
    assert result.approval_tx_hash == "0xapprove"
    assert ex.pending is None
    assert ex.state == SwapState.SETTLED
    assert chain.calls[0] == ("approve", STABLE, ROUTER, 1000 * 10**6)
    assert swaps == [(ROUTER, 1000 * 10**6, [STABLE, TOKEN], 300)]
    # head moved on the first poll, then the settle delay
    assert sleeps.calls == [1.0]
    assert result.balances == {"native": 10.0, "tokens": {"USDC": 5.0, "WCRO": 5.0}}


@pytest.mark.asyncio
async def test_sufficient_allowance_skips_approve(swaps):
    chain = FakeChain(allowance=10**30)
    result = await executor(chain).execute(trade())
    assert result.ok
    assert result.approval_tx_hash is None
    assert chain.calls == []


@pytest.mark.asyncio
async def test_settle_wait_gives_up_after_poll_limit(swaps):
    chain = FakeChain(allowance=10**30, head=100, head_step=0)
    sleeps = SleepRecorder()
    result = await executor(chain, sleeps, settle_polls=20, settle_poll_interval=0.5, settle_delay=1.0).execute(trade())
    assert result.ok
    assert sleeps.calls == [0.5] * 20 + [1.0]


@pytest.mark.asyncio
async def test_balance_failure_is_a_warning(swaps):
    chain = FakeChain(allowance=10**30, fail_balance=True)
    result = await executor(chain).execute(trade())
    assert result.ok
    assert result.balances == {}
    assert result.warnings and "Balance refresh failed" in result.warnings[0]


@pytest.mark.asyncio
async def test_swap_failure_clears_pending(monkeypatch):
    def boom(*a, **k):
        raise ExecutionFailure("transaction reverted")

    monkeypatch.setattr(uniswap_v2, "swap_exact_tokens_for_tokens", boom)
    ex = executor(FakeChain(allowance=10**30))
    ex.stage(trade(1000, confirm=True))
    result = await ex.confirm()
    assert not result.ok
    assert "reverted" in result.error
    assert ex.pending is None
    assert ex.state == SwapState.NONE


@pytest.mark.asyncio
async def test_unknown_symbol_fails_without_sending(swaps):
    chain = FakeChain()
    bad = trade().model_copy(update={"token_out": "DOGE"})
    result = await executor(chain).execute(bad)
    assert not result.ok
    assert "DOGE" in result.error
    assert swaps == []
    assert chain.calls == []


@pytest.mark.asyncio
async def test_immediate_trade_keeps_pending_slot(swaps):
    ex = executor(FakeChain(allowance=10**30))
    staged = trade(1000, confirm=True)
    ex.stage(staged)
    result = await ex.execute(trade())
    assert result.ok
    assert ex.pending is staged
    assert ex.state == SwapState.AWAITING_CONFIRMATION


@pytest.mark.asyncio
async def test_not_configured():
    ex = SwapExecutor(None, router_address=None)
    ex.stage(trade(1000, confirm=True))
    result = await ex.confirm()
    assert result.error == "Wallet or router not configured. Cannot execute trade."
    assert ex.pending is not None
    assert (await ex.execute(trade())).ok is False


@pytest.mark.asyncio
async def test_pending_trade_expiry(swaps):
    clock = Clock(1000.0)
    ex = executor(pending_ttl=60, clock=clock)
    ex.stage(trade(1000, confirm=True, created_at=1000.0))
    clock.t += 61
    result = await ex.confirm()
    assert result.error == "Pending trade expired; please place it again."
    assert ex.pending is None
    assert swaps == []


@pytest.mark.asyncio
async def test_transfer_native(swaps):
    chain = FakeChain()
    to = "0x" + "66" * 20
    result = await executor(chain).transfer("cro", to, 1.5)
    assert result.ok
    assert result.tx_hash == "0xnative"
    assert chain.calls == [("send_native", to, 1.5)]
    assert result.balances == {"native": 10.0, "tokens": {}}


@pytest.mark.asyncio
async def test_transfer_token():
    chain = FakeChain()
    to = "0x" + "66" * 20
    result = await executor(chain).transfer("USDC", to, 2)
    assert result.tx_hash == "0xtransfer"
    assert chain.calls == [("transfer", STABLE, to, 2 * 10**6)]


@pytest.mark.asyncio
async def test_transfer_rejections():
    assert (await SwapExecutor(None).transfer("CRO", "0x", 1)).error == "Wallet not connected."
    assert (await executor().transfer("CRO", "0x", 0)).error == "Transfer amount must be positive."
