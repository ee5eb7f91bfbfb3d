import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

import typer

from sentinel.agent import TradingLoop
from sentinel.chains import CHAINS
from sentinel.config.settings import settings
from sentinel.config.watchlist import load_watchlist
from sentinel.data.discovery import TokenDiscovery
from sentinel.data.market import MarketDataGateway
from sentinel.data.sentiment import SentimentGateway
from sentinel.exec.commands import CommandParser
from sentinel.exec.swap import SwapExecutor
from sentinel.exec.wallet import SmartWallet
from sentinel.llm.client import OpenAIChat
from sentinel.llm.queue import LlmRequestQueue
from sentinel.onchain.eth import ChainClient
from sentinel.strategy.risk import profile_for

app = typer.Typer()

# --- Logging setup ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
)
logger = logging.getLogger("sentinel")


@dataclass
class Sentinel:
    agent: TradingLoop
    wallet: SmartWallet
    executor: SwapExecutor
    llm_queue: Optional[LlmRequestQueue]
    signer: Optional[ChainClient]


def build_signer(s=settings) -> Optional[ChainClient]:
    if not s.private_key:
        logger.info("No PRIVATE_KEY configured; running analysis-only")
        return None
    try:
        return ChainClient.from_private_key(s.private_key)
    except Exception as e:
        logger.error(f"Signer unavailable, running analysis-only: {e}")
        return None


def build(s=settings, signer: Optional[ChainClient] = None, risk_mode: Optional[str] = None) -> Sentinel:
    """Wire every component from settings."""
    llm_queue = None
    if s.llm_api_key:
        llm_queue = LlmRequestQueue.from_settings(OpenAIChat(), s)
    else:
        logger.warning("No LLM_API_KEY configured; sentiment falls back to heuristics")

    if s.discover_tokens:
        tokens = TokenDiscovery.from_settings(s).tokens_to_scan()
    else:
        tokens = load_watchlist(s.network, s.scan_tokens)
    market = MarketDataGateway.from_settings(s, web3=signer.web3 if signer else None)
    sentiment = SentimentGateway(llm_queue, cache_ttl=s.sentiment_cache_ttl, max_age=s.max_data_age)
    agent = TradingLoop.from_settings(s, market, sentiment, tokens, profile_for(risk_mode or s.risk_mode))

    chain = CHAINS.get(s.network)
    executor = SwapExecutor.from_settings(s, signer, tokens=chain.tokens if chain else {})
    parser = CommandParser.from_settings(s, llm_queue)
    wallet = SmartWallet(parser, executor, agent, llm_queue, ref_price_usd=s.ref_price_usd)
    return Sentinel(agent, wallet, executor, llm_queue, signer)


async def run_loop(sentinel: Sentinel, cycles: int = 0, contract: Optional[str] = None) -> None:
    agent = sentinel.agent
    agent.start(sentinel.signer, contract)
    try:
        while agent.is_running():
            if cycles and agent.cycles_completed >= cycles:
                break
            await asyncio.sleep(0.2)
    finally:
        agent.stop()
        if sentinel.llm_queue is not None:
            await sentinel.llm_queue.close()


def _print_decision(d) -> None:
    if d.error:
        typer.echo(f"{d.token_address}  ERROR  {d.error}")
        return
    sig = d.source_signal
    label = f"{sig.classification.value}/{sig.confidence_score:.0f}" if sig else "-"
    line = f"{d.token_address}  {d.action.value:<4}  {label:<18} {d.reasoning}"
    if d.tx_hash:
        line += f"  tx={d.tx_hash}"
    typer.echo(line)


@app.command()
def run(
    risk_mode: str = typer.Option(None, help="GUARDIAN | HUNTER (default: RISK_MODE)"),
    cycles: int = typer.Option(0, help="stop after N cycles (0=run until interrupted)"),
    debug: bool = typer.Option(False, help="verbose logs"),
):
    """Start the autonomous trading loop."""
    if debug:
        logger.setLevel(logging.DEBUG)

    logger.info(
        f"Starting Sentinel (network={settings.network}, chain_id={settings.chain_id}, "
        f"mode={risk_mode or settings.risk_mode})"
    )
    sentinel = build(settings, build_signer(settings), risk_mode)
    try:
        asyncio.run(run_loop(sentinel, cycles, settings.contract_address))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    for d in sentinel.agent.last_results:
        _print_decision(d)


@app.command()
def scan(
    token: Optional[List[str]] = typer.Option(None, help="token address (repeatable); default: watchlist"),
    risk_mode: str = typer.Option(None, help="GUARDIAN | HUNTER (default: RISK_MODE)"),
    debug: bool = typer.Option(False, help="verbose logs"),
):
    """Analyse tokens once without trading."""
    if debug:
        logger.setLevel(logging.DEBUG)
    sentinel = build(settings, None, risk_mode)
    addresses = token or [t.address for t in sentinel.agent.tokens]

    async def go():
        try:
            return [await sentinel.agent.analyze(a) for a in addresses]
        finally:
            if sentinel.llm_queue is not None:
                await sentinel.llm_queue.close()

    for d in asyncio.run(go()):
        _print_decision(d)


@app.command()
def chat(
    message: Optional[str] = typer.Argument(None, help="single message; omit for an interactive session"),
    debug: bool = typer.Option(False, help="verbose logs"),
):
    """Talk to the smart wallet."""
    if debug:
        logger.setLevel(logging.DEBUG)
    sentinel = build(settings, build_signer(settings))

    async def go():
        try:
            if message:
                reply = await sentinel.wallet.process_message(message)
                typer.echo(reply.text)
                return
            while True:
                text = await asyncio.to_thread(input, "you> ")
                if text.strip().lower() in ("exit", "quit"):
                    return
                if not text.strip():
                    continue
                reply = await sentinel.wallet.process_message(text)
                typer.echo(reply.text)
        finally:
            if sentinel.llm_queue is not None:
                await sentinel.llm_queue.close()

    try:
        asyncio.run(go())
    except (KeyboardInterrupt, EOFError):
        typer.echo("")


if __name__ == "__main__":
    app()
