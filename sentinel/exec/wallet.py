import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from sentinel.exec.commands import ChatCommand, CommandKind, CommandParser
from sentinel.exec.swap import SwapExecutor

logger = logging.getLogger("sentinel.wallet")

HISTORY_LIMIT = 20


@dataclass
class ChatReply:
    text: str
    status: str = "success"  # success | error
    actions: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == "success"


def _short(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}"


class SmartWallet:
    """Conversational front end: balances, analyses, trades and transfers."""

    def __init__(
        self,
        parser: CommandParser,
        executor: SwapExecutor,
        agent=None,
        llm_queue=None,
        ref_price_usd: float = 0.12,
    ):
        self.parser = parser
        self.executor = executor
        self.agent = agent
        self.llm_queue = llm_queue
        self.ref_price_usd = ref_price_usd
        self.history: List[Dict[str, str]] = []

    def clear_history(self) -> None:
        self.history = []

    def _remember(self, role: str, content: str) -> None:
        self.history.append({"role": role, "content": content})
        del self.history[:-HISTORY_LIMIT]

    async def process_message(self, message: str) -> ChatReply:
        cmd = await self.parser.parse(message)
        logger.debug(f"[wallet] {cmd.kind.value}: {message!r}")
        try:
            reply = await self._dispatch(cmd)
        except Exception as e:
            logger.exception(f"[wallet] {cmd.kind.value} failed: {e}")
            reply = ChatReply(f"Error: {e}", status="error")
        self._remember("user", message)
        self._remember("assistant", reply.text)
        return reply

    async def _dispatch(self, cmd: ChatCommand) -> ChatReply:
        kind = cmd.kind
        if kind == CommandKind.BALANCE:
            return await self._balance(cmd)
        if kind == CommandKind.ANALYZE:
            return await self._analyze(cmd)
        if kind == CommandKind.TRADE:
            return await self._trade(cmd)
        if kind == CommandKind.CONFIRM:
            return await self._confirm()
        if kind == CommandKind.CANCEL:
            return self._cancel()
        if kind == CommandKind.TRANSFER:
            return await self._transfer(cmd)
        if kind == CommandKind.CHAT:
            return await self._chat(cmd)
        raise ValueError(f"unhandled command kind {kind}")

    async def _balance(self, cmd: ChatCommand) -> ChatReply:
        chain = self.executor.chain
        if chain is None:
            return ChatReply("Wallet not connected. Please initialize the agent first.", "error")
        symbols = [cmd.symbol] if cmd.symbol else []
        try:
            balances = await self.executor.balances(symbols)
        except Exception as e:
            return ChatReply(f"Failed to fetch balance: {e}", "error")

        native = balances["native"]
        value = native * self.ref_price_usd
        lines = [
            "Your Wallet Balance",
            f"Address: {_short(chain.address)}",
            f"CRO: {native:.6f} CRO",
            f"Value: ~${value:.2f} USD",
        ]
        for sym, amount in balances["tokens"].items():
            lines.append(f"{sym}: {amount:.6f} {sym}")
        return ChatReply(
            "\n".join(lines),
            actions=[{"type": "balance_query", "details": {"balance": native, "value_usd": value, **balances}}],
        )

    async def _analyze(self, cmd: ChatCommand) -> ChatReply:
        if self.agent is None:
            return ChatReply("Market analysis is not available.", "error")
        symbol = cmd.symbol or "WCRO"
        try:
            address = self.executor.resolve(symbol)
        except Exception as e:
            return ChatReply(f"Analysis failed: {e}", "error")
        decision = await self.agent.analyze(address)
        if decision.error:
            return ChatReply(f"Analysis failed: {decision.error}", "error")

        signal = decision.source_signal
        lines = [f"Market Analysis: {symbol}"]
        if decision.source_market is not None:
            m = decision.source_market
            lines.append(f"Price: ${m.price:.6f} | 24h volume: ${m.volume_24h:,.0f} | trend {m.volume_trend.value}")
        if decision.source_sentiment is not None:
            s = decision.source_sentiment
            lines.append(f"Sentiment: {s.sentiment.value} ({s.mentions} mentions, smart money {s.smart_money_mentions})")
        if signal is not None:
            lines.append(f"Signal: {signal.classification.value} ({signal.confidence_score:.0f}% confidence)")
        lines.append(f"Recommendation: {decision.action.value}")
        lines.append(decision.reasoning)
        return ChatReply(
            "\n".join(lines),
            actions=[{"type": "market_analysis", "details": decision.model_dump(mode="json")}],
        )

    async def _trade(self, cmd: ChatCommand) -> ChatReply:
        trade = cmd.trade
        if trade is None:
            return ChatReply('Could not parse trade command. Try: "Buy 10 WCRO with USDC"', "error")

        details = trade.model_dump(mode="json")
        if self.executor.stage(trade):
            return ChatReply(
                "Confirm Trade\n"
                f"Action: {trade.action.value}\n"
                f"Amount: {trade.amount} {trade.token_in}\n"
                f"For: {trade.token_out}\n"
                f"Estimated value: ~${trade.amount * self.ref_price_usd:.2f}\n"
                'Reply "confirm" to proceed or "cancel" to abort.',
                actions=[{"type": "trade_confirmation_required", "details": details}],
            )

        result = await self.executor.execute(trade)
        if not result.ok:
            return ChatReply(f"On-chain trade failed: {result.error}", "error")
        return self._executed("Trade executed on-chain", trade, result, details)

    async def _confirm(self) -> ChatReply:
        trade = self.executor.pending
        if trade is None:
            return ChatReply("No pending trade to confirm.", "error")
        result = await self.executor.confirm()
        if not result.ok:
            return ChatReply(f"Execution failed: {result.error}", "error")
        return self._executed("Confirmed and executed", trade, result, trade.model_dump(mode="json"))

    def _executed(self, head, trade, result, details) -> ChatReply:
        text = f"{head}: {trade.action.value} {trade.amount} {trade.token_in} -> {trade.token_out}. Tx: {result.tx_hash}"
        if result.warnings:
            text += "\n" + "\n".join(f"Warning: {w}" for w in result.warnings)
        actions = [{"type": "trade_executed", "details": {**details, "tx": result.tx_hash}}]
        if result.balances:
            actions.append({"type": "balance_update", "details": result.balances})
        return ChatReply(text, actions=actions)

    def _cancel(self) -> ChatReply:
        trade = self.executor.cancel()
        if trade is None:
            return ChatReply("No pending trade to cancel.", "error")
        return ChatReply(
            f"Cancelled: {trade.action.value} {trade.amount} {trade.token_in} -> {trade.token_out}",
            actions=[{"type": "trade_cancelled", "details": trade.model_dump(mode="json")}],
        )

    async def _transfer(self, cmd: ChatCommand) -> ChatReply:
        if cmd.recipient is None or cmd.amount is None or cmd.symbol is None:
            return ChatReply('Could not parse transfer. Try: "Send 1 CRO to 0x..."', "error")
        result = await self.executor.transfer(cmd.symbol, cmd.recipient, cmd.amount)
        if not result.ok:
            return ChatReply(f"Transfer failed: {result.error}", "error")
        text = f"Sent {cmd.amount} {cmd.symbol} to {cmd.recipient}. Tx: {result.tx_hash}"
        if result.warnings:
            text += "\n" + "\n".join(f"Warning: {w}" for w in result.warnings)
        actions = [
            {
                "type": "transfer",
                "details": {"to": cmd.recipient, "amount": cmd.amount, "symbol": cmd.symbol, "tx": result.tx_hash},
            }
        ]
        if result.balances:
            actions.append({"type": "balance_update", "details": result.balances})
        return ChatReply(text, actions=actions)

    async def _chat(self, cmd: ChatCommand) -> ChatReply:
        if self.llm_queue is None:
            return ChatReply(
                "I can check balances, analyze tokens, and place trades or transfers. "
                'Try "balance", "analyze WCRO" or "buy 10 WCRO".'
            )
        resp = await self.llm_queue.submit(cmd.text, list(self.history))
        return ChatReply(resp.text, "success" if resp.ok else "error")
