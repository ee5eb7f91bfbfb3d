import random

import pytest

from conftest import FakeQueue
from sentinel.exec.commands import CommandKind, CommandParser, requires_confirmation
from sentinel.types import LlmResponse, TradeAction

_rng = random.Random(99)
# 50 / 0.12 = 416.67 units is the break-even amount.
ABOVE = [round(_rng.uniform(416.67, 100_000), 4) for _ in range(20)]
AT_OR_BELOW = [round(_rng.uniform(0.0001, 416.66), 4) for _ in range(20)]


@pytest.mark.parametrize("amount", ABOVE)
def test_above_threshold_requires_confirmation(amount):
    cmd = CommandParser().parse_local(f"buy {amount} WCRO")
    assert cmd.trade.requires_confirmation is True


@pytest.mark.parametrize("amount", AT_OR_BELOW)
def test_at_or_below_threshold_runs_immediately(amount):
    cmd = CommandParser().parse_local(f"buy {amount} WCRO")
    assert cmd.trade.requires_confirmation is False


def test_threshold_is_strict():
    assert requires_confirmation(50 / 0.12 - 1e-9) is False
    assert requires_confirmation(1000, ref_price_usd=0.05) is False
    assert requires_confirmation(1000, ref_price_usd=0.06) is True


def test_buy_forms():
    p = CommandParser(default_quote="usdc")
    t = p.parse_local("Buy 10 wcro worth of USDT").trade
    assert (t.action, t.token_in, t.token_out, t.amount) == (TradeAction.BUY, "USDT", "WCRO", 10.0)
    t = p.parse_local("buy 2.5 WBTC").trade
    assert (t.token_in, t.token_out) == ("USDC", "WBTC")


def test_sell_and_swap_forms():
    p = CommandParser()
    t = p.parse_local("sell 3 WETH for USDT").trade
    assert (t.action, t.token_in, t.token_out) == (TradeAction.SELL, "WETH", "USDT")
    t = p.parse_local("sell 3 WETH").trade
    assert t.token_out == "USDC"
    t = p.parse_local("swap 100 USDC to WCRO").trade
    assert (t.action, t.token_in, t.token_out, t.amount) == (TradeAction.SELL, "USDC", "WCRO", 100.0)


@pytest.mark.parametrize(
    "text,kind",
    [
        ("confirm", CommandKind.CONFIRM),
        ("  Confirm! ", CommandKind.CONFIRM),
        ("cancel.", CommandKind.CANCEL),
        ("yes, but what's my balance first?", CommandKind.BALANCE),
        ("no idea, what is the price of WCRO?", CommandKind.ANALYZE),
        ("what's my balance?", CommandKind.BALANCE),
        ("how much USDC in my wallet", CommandKind.BALANCE),
        ("analyze WBTC", CommandKind.ANALYZE),
        ("should i buy eth?", CommandKind.ANALYZE),
        ("buy 5 WCRO", CommandKind.TRADE),
    ],
)
def test_local_kinds(text, kind):
    assert CommandParser().parse_local(text).kind == kind


def test_symbol_extraction():
    p = CommandParser()
    assert p.parse_local("how much USDC do I have").symbol == "USDC"
    assert p.parse_local("market sentiment for wbtc").symbol == "WBTC"
    assert p.parse_local("what's the market like").symbol == "WCRO"


def test_transfer():
    to = "0x" + "Ab" * 20
    cmd = CommandParser().parse_local(f"please send 1.5 cro to {to}")
    assert cmd.kind == CommandKind.TRANSFER
    assert (cmd.amount, cmd.symbol, cmd.recipient) == (1.5, "CRO", to)


@pytest.mark.asyncio
async def test_unparseable_transfer_still_tagged():
    cmd = await CommandParser().parse("send some tokens to my friend")
    assert cmd.kind == CommandKind.TRANSFER
    assert cmd.recipient is None


@pytest.mark.asyncio
async def test_plain_chat():
    cmd = await CommandParser().parse("hello there")
    assert cmd.kind == CommandKind.CHAT


@pytest.mark.asyncio
async def test_llm_fallback_for_free_form_trade():
    q = FakeQueue('{"action": "BUY", "tokenIn": "USDC", "tokenOut": "WCRO", "amount": 1000}')
    cmd = await CommandParser(q).parse("I'd like to trade into some cronos, 1000 of them")
    assert cmd.kind == CommandKind.TRADE
    assert cmd.trade.token_out == "WCRO"
    assert cmd.trade.amount == 1000
    assert cmd.trade.requires_confirmation is True
    assert len(q.prompts) == 1


@pytest.mark.asyncio
async def test_llm_fallback_text_answer_parsed_locally():
    q = FakeQueue("buy 20 WBTC with USDC")
    cmd = await CommandParser(q).parse("can you trade 20 btc for me")
    assert cmd.trade.token_out == "WBTC"
    assert cmd.trade.requires_confirmation is False


@pytest.mark.asyncio
async def test_llm_failure_leaves_trade_empty():
    q = FakeQueue(LlmResponse(status="error", text="quota", error_kind="quota"))
    cmd = await CommandParser(q).parse("trade something")
    assert cmd.kind == CommandKind.TRADE
    assert cmd.trade is None


def test_trade_json_rejects_bad_payloads():
    p = CommandParser()
    assert p.parse_trade_json('{"action": "HOLD", "tokenIn": "A", "tokenOut": "B", "amount": 1}') is None
    assert p.parse_trade_json('{"action": "BUY", "tokenIn": "A", "tokenOut": "B", "amount": 0}') is None
    assert p.parse_trade_json('{"action": "BUY"}') is None
    assert p.parse_trade_json("no json") is None


@pytest.mark.parametrize("text", ["yes", "no", "Yes please", "cancel that", "confirm the price of WBTC", "abort"])
def test_confirm_and_cancel_need_the_bare_word(text):
    kind = CommandParser().parse_local(text)
    assert kind is None or kind.kind not in (CommandKind.CONFIRM, CommandKind.CANCEL)
