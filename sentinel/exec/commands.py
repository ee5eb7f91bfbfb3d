import json
import logging
import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ValidationError

from sentinel.types import PendingTrade, TradeAction

logger = logging.getLogger("sentinel.wallet")

KNOWN_SYMBOLS = ("WCRO", "CRO", "USDC", "USDT", "WBTC", "WETH", "ETH")

# must be the whole message
_CONFIRM = re.compile(r"^\s*confirm\s*[.!]?\s*$", re.IGNORECASE)
_CANCEL = re.compile(r"^\s*cancel\s*[.!]?\s*$", re.IGNORECASE)
_TRANSFER = re.compile(
    r"(?:send|transfer)\s+(\d+(?:\.\d+)?)\s+(\w+)\s+to\s+(0x[a-fA-F0-9]{40})", re.IGNORECASE
)
_BUY = re.compile(r"^\s*buy\s+(\d+(?:\.\d+)?)\s+(\w+)(?:\s+(?:worth of|of|for|with)\s+(\w+))?", re.IGNORECASE)
_SELL = re.compile(r"^\s*sell\s+(\d+(?:\.\d+)?)\s+(\w+)(?:\s+(?:for|to)\s+(\w+))?", re.IGNORECASE)
_SWAP = re.compile(r"^\s*swap\s+(\d+(?:\.\d+)?)\s+(\w+)\s+(?:for|to)\s+(\w+)", re.IGNORECASE)
_SYMBOL = re.compile(r"\b(" + "|".join(KNOWN_SYMBOLS) + r")\b", re.IGNORECASE)
_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

TRADE_PROMPT = (
    'Parse this trade command: "{message}". Extract action (BUY or SELL), tokenIn, '
    'tokenOut and amount. Reply only with JSON like '
    '{{"action": "BUY", "tokenIn": "USDC", "tokenOut": "WCRO", "amount": 10}}'
)


class CommandKind(str, Enum):
    BALANCE = "BALANCE"
    ANALYZE = "ANALYZE"
    TRADE = "TRADE"
    CONFIRM = "CONFIRM"
    CANCEL = "CANCEL"
    TRANSFER = "TRANSFER"
    CHAT = "CHAT"


class ChatCommand(BaseModel):
    kind: CommandKind
    text: str
    symbol: Optional[str] = None
    trade: Optional[PendingTrade] = None
    amount: Optional[float] = None
    recipient: Optional[str] = None


def requires_confirmation(amount: float, ref_price_usd: float = 0.12, threshold_usd: float = 50.0) -> bool:
    return amount * ref_price_usd > threshold_usd


def _has(msg: str, *words: str) -> bool:
    return any(w in msg for w in words)


class CommandParser:
    """Turns a chat message into a ``ChatCommand``.

    Regexes handle the common phrasings. Trade requests the regexes cannot
    read are handed to the LLM queue (when one is configured) for a JSON parse.
    """

    def __init__(
        self,
        llm_queue=None,
        ref_price_usd: float = 0.12,
        confirm_threshold_usd: float = 50.0,
        default_quote: str = "USDC",
    ):
        self.llm_queue = llm_queue
        self.ref_price_usd = ref_price_usd
        self.confirm_threshold_usd = confirm_threshold_usd
        self.default_quote = default_quote.upper()

    @classmethod
    def from_settings(cls, s, llm_queue=None) -> "CommandParser":
        return cls(llm_queue, s.ref_price_usd, s.confirm_threshold_usd, s.default_quote_token)

    def _trade(self, action: TradeAction, token_in: str, token_out: str, amount: float) -> PendingTrade:
        return PendingTrade(
            action=action,
            token_in=token_in.upper(),
            token_out=token_out.upper(),
            amount=amount,
            requires_confirmation=requires_confirmation(
                amount, self.ref_price_usd, self.confirm_threshold_usd
            ),
        )

    def parse_trade(self, text: str) -> PendingTrade | None:
        m = _BUY.match(text)
        if m:
            quote = m.group(3) or self.default_quote
            return self._trade(TradeAction.BUY, quote, m.group(2), float(m.group(1)))
        m = _SELL.match(text)
        if m:
            quote = m.group(3) or self.default_quote
            return self._trade(TradeAction.SELL, m.group(2), quote, float(m.group(1)))
        m = _SWAP.match(text)
        if m:
            return self._trade(TradeAction.SELL, m.group(2), m.group(3), float(m.group(1)))
        return None

    def parse_trade_json(self, text: str) -> PendingTrade | None:
        m = _JSON_BLOCK.search(text)
        if not m:
            return None
        try:
            data = json.loads(m.group(0))
            action = TradeAction(str(data["action"]).upper())
            if action == TradeAction.HOLD:
                return None
            return self._trade(action, str(data["tokenIn"]), str(data["tokenOut"]), float(data["amount"]))
        except (ValueError, KeyError, TypeError, ValidationError) as e:
            logger.debug(f"[commands] unusable trade JSON {m.group(0)!r}: {e}")
            return None

    def parse_local(self, message: str) -> ChatCommand | None:
        if _CONFIRM.match(message):
            return ChatCommand(kind=CommandKind.CONFIRM, text=message)
        if _CANCEL.match(message):
            return ChatCommand(kind=CommandKind.CANCEL, text=message)

        m = _TRANSFER.search(message)
        if m:
            return ChatCommand(
                kind=CommandKind.TRANSFER,
                text=message,
                amount=float(m.group(1)),
                symbol=m.group(2).upper(),
                recipient=m.group(3),
            )

        trade = self.parse_trade(message)
        if trade is not None:
            return ChatCommand(kind=CommandKind.TRADE, text=message, trade=trade)

        msg = message.lower()
        sym = _SYMBOL.search(message)
        symbol = sym.group(1).upper() if sym else None
        if _has(msg, "balance", "wallet", "how much"):
            return ChatCommand(kind=CommandKind.BALANCE, text=message, symbol=symbol)
        if _has(msg, "market", "sentiment", "should i", "analyze", "analyse", "price"):
            return ChatCommand(kind=CommandKind.ANALYZE, text=message, symbol=symbol or "WCRO")
        return None

    async def parse(self, message: str) -> ChatCommand:
        cmd = self.parse_local(message)
        if cmd is not None:
            return cmd

        msg = message.lower()
        if _has(msg, "buy", "sell", "swap", "trade"):
            return ChatCommand(kind=CommandKind.TRADE, text=message, trade=await self._llm_trade(message))
        if _has(msg, "send", "transfer"):
            # Transfer wording without a parseable amount/recipient.
            return ChatCommand(kind=CommandKind.TRANSFER, text=message)
        return ChatCommand(kind=CommandKind.CHAT, text=message)

    async def _llm_trade(self, message: str) -> PendingTrade | None:
        if self.llm_queue is None:
            return None
        resp = await self.llm_queue.submit(TRADE_PROMPT.format(message=message))
        if not resp.ok:
            logger.warning(f"[commands] LLM trade parse failed: {resp.text}")
            return None
        return self.parse_trade_json(resp.text) or self.parse_trade(resp.text)
