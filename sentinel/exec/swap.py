import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Dict, Iterable

from sentinel.chains import NATIVE_SYMBOLS
from sentinel.errors import ExecutionFailure
from sentinel.onchain import uniswap_v2
from sentinel.types import PendingTrade, SwapResult

logger = logging.getLogger("sentinel.swap")


class SwapState(str, Enum):
    NONE = "NONE"
    AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"
    CONFIRMED = "CONFIRMED"
    EXECUTING = "EXECUTING"
    SETTLED = "SETTLED"
    CANCELLED = "CANCELLED"


class SwapExecutor:
    """Runs router swaps for the wallet and holds at most one pending trade.

    A trade above the confirmation threshold is staged and waits for
    ``confirm()``. Once the swap is mined the executor waits for the chain
    head to move past the receipt block, then a fixed settle delay, before
    reading balances. A failed balance read is a warning; the swap still
    counts as executed.
    """

    def __init__(
        self,
        chain=None,
        router_address: str | None = None,
        tokens: Dict[str, str] | None = None,
        wrapped_native: str | None = None,
        deadline_sec: int = 300,
        settle_polls: int = 20,
        settle_poll_interval: float = 0.5,
        settle_delay: float = 1.0,
        pending_ttl: float = 0.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.chain = chain
        self.router_address = router_address
        self.tokens = {k.upper(): v for k, v in (tokens or {}).items()}
        self.wrapped_native = wrapped_native
        self.deadline_sec = deadline_sec
        self.settle_polls = settle_polls
        self.settle_poll_interval = settle_poll_interval
        self.settle_delay = settle_delay
        self.pending_ttl = pending_ttl
        self.sleep = sleep
        self.clock = clock
        self.state = SwapState.NONE
        self.pending: PendingTrade | None = None

    @classmethod
    def from_settings(cls, s, chain=None, tokens: Dict[str, str] | None = None) -> "SwapExecutor":
        return cls(
            chain,
            router_address=s.router_address,
            tokens=tokens,
            wrapped_native=s.wrapped_native,
            deadline_sec=s.swap_deadline_sec,
            settle_polls=s.settle_polls,
            settle_poll_interval=s.settle_poll_interval,
            settle_delay=s.settle_delay_sec,
            pending_ttl=s.pending_trade_ttl_sec,
        )

    @property
    def ready(self) -> bool:
        return self.chain is not None and bool(self.router_address)

    def resolve(self, symbol: str) -> str:
        sym = symbol.upper()
        if sym.startswith("0X") and len(sym) == 42:
            return symbol
        if sym in NATIVE_SYMBOLS and self.wrapped_native:
            return self.wrapped_native
        if sym in self.tokens:
            return self.tokens[sym]
        raise ExecutionFailure(f"Unknown token symbol: {symbol}")

    # --- pending slot ---

    def stage(self, trade: PendingTrade) -> bool:
        """Hold ``trade`` for confirmation if it needs one. Returns True when staged."""
        if not trade.requires_confirmation:
            return False
        if self.pending is not None:
            logger.info(f"[swap] replacing pending trade {self.pending.action.value} {self.pending.amount}")
        self.pending = trade
        self.state = SwapState.AWAITING_CONFIRMATION
        return True

    def cancel(self) -> PendingTrade | None:
        trade, self.pending = self.pending, None
        if trade is not None:
            self.state = SwapState.CANCELLED
        return trade

    def _expired(self, trade: PendingTrade) -> bool:
        return self.pending_ttl > 0 and self.clock() - trade.created_at > self.pending_ttl

    async def confirm(self) -> SwapResult:
        trade = self.pending
        if trade is None:
            return SwapResult(ok=False, error="No pending trade to confirm.")
        if self._expired(trade):
            self.pending = None
            self.state = SwapState.NONE
            return SwapResult(ok=False, error="Pending trade expired; please place it again.")
        if not self.ready:
            return SwapResult(ok=False, error="Wallet or router not configured. Cannot execute trade.")
        self.state = SwapState.CONFIRMED
        self.pending = None
        return await self._run(trade, track_state=True)

    async def execute(self, trade: PendingTrade) -> SwapResult:
        """Swap without staging; used for trades under the threshold."""
        if not self.ready:
            return SwapResult(ok=False, error="Wallet or router not configured. Cannot execute trade.")
        return await self._run(trade, track_state=self.pending is None)

    # --- execution ---

    def _swap_sync(self, trade: PendingTrade) -> dict:
        token_in = self.resolve(trade.token_in)
        token_out = self.resolve(trade.token_out)
        amount_in = self.chain.to_units(token_in, trade.amount)

        approval = None
        if self.chain.allowance(token_in, self.router_address) < amount_in:
            logger.info(f"[swap] approving router for {amount_in} of {trade.token_in}")
            approval = self.chain.approve(token_in, self.router_address, amount_in)

        receipt = uniswap_v2.swap_exact_tokens_for_tokens(
            self.chain,
            self.router_address,
            amount_in,
            [token_in, token_out],
            min_out=0,
            deadline_sec=self.deadline_sec,
        )
        receipt["approval_tx_hash"] = approval["tx_hash"] if approval else None
        return receipt

    async def _wait_settled(self, block_number: int) -> None:
        for _ in range(self.settle_polls):
            head = await asyncio.to_thread(self.chain.block_number)
            if head > block_number:
                break
            await self.sleep(self.settle_poll_interval)
        else:
            logger.info(f"[swap] chain head did not pass block {block_number}; continuing")
        await self.sleep(self.settle_delay)

    async def _run(self, trade: PendingTrade, track_state: bool = True) -> SwapResult:
        # An immediate trade must not disturb a trade that is awaiting confirmation.
        if track_state:
            self.state = SwapState.EXECUTING
        try:
            receipt = await asyncio.to_thread(self._swap_sync, trade)
        except Exception as e:
            logger.error(f"[swap] {trade.action.value} {trade.amount} {trade.token_in} failed: {e}")
            if track_state:
                self.state = SwapState.NONE
            return SwapResult(ok=False, error=str(e))

        result = SwapResult(
            ok=True,
            tx_hash=receipt["tx_hash"],
            block_number=receipt["block_number"],
            approval_tx_hash=receipt.get("approval_tx_hash"),
        )
        await self._wait_settled(receipt["block_number"])
        if track_state:
            self.state = SwapState.SETTLED
        await self._attach_balances(result, [trade.token_in, trade.token_out])
        logger.info(f"[swap] settled {trade.action.value} {trade.amount} {trade.token_in}->{trade.token_out} tx={result.tx_hash}")
        return result

    async def _attach_balances(self, result: SwapResult, symbols: Iterable[str]) -> None:
        try:
            result.balances = await self.balances(symbols)
        except Exception as e:
            result.warnings.append(f"Balance refresh failed: {e}")

    async def balances(self, symbols: Iterable[str] = ()) -> dict:
        def read() -> dict:
            out = {"native": self.chain.native_balance(), "tokens": {}}
            for sym in symbols:
                if sym.upper() in NATIVE_SYMBOLS:
                    continue
                out["tokens"][sym.upper()] = self.chain.token_balance(self.resolve(sym))
            return out

        return await asyncio.to_thread(read)

    async def transfer(self, symbol: str, to: str, amount: float) -> SwapResult:
        if self.chain is None:
            return SwapResult(ok=False, error="Wallet not connected.")
        if amount <= 0:
            return SwapResult(ok=False, error="Transfer amount must be positive.")

        def send() -> dict:
            if symbol.upper() in NATIVE_SYMBOLS:
                return self.chain.send_native(to, amount)
            token = self.resolve(symbol)
            return self.chain.transfer(token, to, self.chain.to_units(token, amount))

        try:
            receipt = await asyncio.to_thread(send)
        except Exception as e:
            logger.error(f"[swap] transfer of {amount} {symbol} to {to} failed: {e}")
            return SwapResult(ok=False, error=str(e))

        result = SwapResult(ok=True, tx_hash=receipt["tx_hash"], block_number=receipt["block_number"])
        await self._attach_balances(result, [symbol])
        return result
