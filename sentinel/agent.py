import asyncio
import logging
from enum import Enum
from typing import List, Optional

from sentinel.config.watchlist import symbol_for
from sentinel.onchain import uniswap_v2
from sentinel.strategy.hype import SignalClassifier
from sentinel.strategy.risk import GUARDIAN_PROFILE, RiskGate
from sentinel.types import RiskProfile, TokenInfo, TradeAction, TradeDecision

logger = logging.getLogger("sentinel.agent")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class LoopState(str, Enum):
    IDLE = "IDLE"
    PROBING = "PROBING"
    READY = "READY"
    NOT_READY = "NOT_READY"
    SCANNING = "SCANNING"


def error_record(token_address: str, error: Exception | str) -> TradeDecision:
    return TradeDecision(
        should_trade=False,
        action=TradeAction.HOLD,
        amount=0,
        reasoning=f"Error: {error}",
        token_address=token_address,
        error=str(error),
    )


class TradingLoop:
    """Polling orchestrator.

    Each cycle probes the market gateway with a known token. If the probe
    fails the scan is skipped; otherwise every watched token is analysed in
    turn and approved decisions are executed. The next cycle is always
    scheduled, whatever happened in this one.
    """

    def __init__(
        self,
        market,
        sentiment,
        tokens: List[TokenInfo],
        probe_token: str,
        stable_token: Optional[str] = None,
        router_address: Optional[str] = None,
        profile: RiskProfile = GUARDIAN_PROFILE,
        interval: float = 30.0,
        deadline_sec: int = 300,
        classifier: Optional[SignalClassifier] = None,
        risk_gate: Optional[RiskGate] = None,
    ):
        self.market = market
        self.sentiment = sentiment
        self.tokens = list(tokens)
        self.probe_token = probe_token
        self.stable_token = stable_token
        self.router_address = router_address
        self.profile = profile
        self.interval = interval
        self.deadline_sec = deadline_sec
        self.classifier = classifier or SignalClassifier()
        self.risk_gate = risk_gate or RiskGate()

        self.signer = None
        self.contract_address: Optional[str] = None
        self.state = LoopState.IDLE
        self.last_results: List[TradeDecision] = []
        self.cycles_completed = 0
        self._running = False
        self._ready = False
        self._generation = 0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, s, market, sentiment, tokens: List[TokenInfo], profile: RiskProfile):
        return cls(
            market,
            sentiment,
            tokens,
            probe_token=s.probe_token,
            stable_token=s.stable_token,
            router_address=s.router_address,
            profile=profile,
            interval=s.poll_interval_sec,
            deadline_sec=s.swap_deadline_sec,
        )

    # --- lifecycle ---

    def start(self, signer=None, contract_address: Optional[str] = None) -> None:
        """Bind the signer (and agent contract, if any) and run the first cycle now."""
        if self._running:
            logger.info("[agent] already running")
            return
        self.signer = signer
        if contract_address and contract_address.lower() != ZERO_ADDRESS:
            self.contract_address = contract_address
        else:
            self.contract_address = None
        self._running = True
        self._generation += 1
        logger.info(
            f"[agent] started mode={self.profile.mode.value} tokens={len(self.tokens)} "
            f"contract={self.contract_address or '-'}"
        )
        self._schedule(0)

    def stop(self) -> None:
        """Cancel the next scheduled cycle. A cycle already running completes."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._running:
            logger.info("[agent] stopped")
        self._running = False

    def is_running(self) -> bool:
        return self._running

    def is_ready(self) -> bool:
        return self._ready

    def update_risk_profile(self, profile: RiskProfile) -> None:
        logger.info(f"[agent] risk profile -> {profile.mode.value}")
        self.profile = profile

    def _schedule(self, delay: float) -> None:
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, self._fire, self._generation)

    def _fire(self, generation: int) -> None:
        self._timer = None
        self._task = asyncio.get_running_loop().create_task(self._tick(generation))

    async def _tick(self, generation: int) -> None:
        try:
            await self.run_cycle()
        except Exception as e:
            logger.exception(f"[agent] cycle crashed: {e}")
        finally:
            self.cycles_completed += 1
            # a stop/start while this cycle ran has already scheduled its own chain
            if self._running and generation == self._generation:
                self._schedule(self.interval)

    # --- cycle ---

    def _enter(self, state: LoopState) -> None:
        logger.debug(f"[agent] state {self.state.value} -> {state.value}")
        self.state = state

    async def run_cycle(self) -> List[TradeDecision]:
        self._enter(LoopState.PROBING)
        try:
            await self.market.get_market_data(self.probe_token)
        except Exception as e:
            logger.warning(f"[agent] dependency probe failed, skipping scan: {e}")
            self._ready = False
            self._enter(LoopState.NOT_READY)
            self._enter(LoopState.IDLE)
            return []

        self._ready = True
        self._enter(LoopState.READY)
        self._enter(LoopState.SCANNING)
        results = []
        for token in self.tokens:
            results.append(await self.analyze_and_trade(token.address))
        self.last_results = results
        self._enter(LoopState.IDLE)

        trades = sum(1 for d in results if d.should_trade)
        errors = sum(1 for d in results if d.error)
        logger.info(f"[agent] cycle done: {len(results)} tokens, {trades} trades, {errors} errors")
        return results

    async def analyze(self, token_address: str) -> TradeDecision:
        """Run the decision pipeline for one token without executing anything."""
        try:
            market = await self.market.get_market_data(token_address)
            symbol = symbol_for(token_address, self.tokens)
            sentiment = await self.sentiment.get_sentiment_data(symbol)
            signal = self.classifier.classify(market, sentiment)
            decision = self.risk_gate.evaluate(signal, self.profile, token_address)
        except Exception as e:
            logger.warning(f"[agent] analysis failed for {token_address}: {e}")
            return error_record(token_address, e)

        decision.source_market = market
        decision.source_sentiment = sentiment
        logger.debug(
            f"[agent] {symbol} {signal.classification.value}/{signal.confidence_score} "
            f"-> {decision.action.value} ({decision.reasoning})"
        )
        return decision

    async def analyze_and_trade(self, token_address: str) -> TradeDecision:
        decision = await self.analyze(token_address)
        if not decision.should_trade or decision.action != TradeAction.BUY:
            return decision
        if self.signer is None:
            decision.reasoning += " (no signer bound; not executed)"
            return decision
        try:
            receipt = await asyncio.to_thread(self._execute, token_address, decision.amount)
        except Exception as e:
            logger.error(f"[agent] execution failed for {token_address}: {e}")
            record = error_record(token_address, e)
            record.source_signal = decision.source_signal
            record.source_market = decision.source_market
            record.source_sentiment = decision.source_sentiment
            return record
        decision.tx_hash = receipt["tx_hash"]
        logger.info(f"[agent] BUY {decision.amount} of {token_address} tx={decision.tx_hash}")
        return decision

    def _execute(self, token_address: str, amount: float) -> dict:
        if not self.stable_token:
            raise RuntimeError("stable token not configured")
        amount_in = self.signer.to_units(self.stable_token, amount)
        if self.contract_address:
            return uniswap_v2.open_position(
                self.signer, self.contract_address, self.stable_token, token_address, amount_in, 0
            )
        if not self.router_address:
            raise RuntimeError("no agent contract or router configured")
        if self.signer.allowance(self.stable_token, self.router_address) < amount_in:
            self.signer.approve(self.stable_token, self.router_address, amount_in)
        return uniswap_v2.swap_exact_tokens_for_tokens(
            self.signer,
            self.router_address,
            amount_in,
            [self.stable_token, token_address],
            min_out=0,
            deadline_sec=self.deadline_sec,
        )
