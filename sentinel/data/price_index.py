import logging
import time

import requests

from sentinel.config import settings
from sentinel.errors import RateLimited, TransientSourceFailure
from sentinel.onchain.eth import read_decimals, w3
from sentinel.onchain.uniswap_v2 import quote_unit_price
from sentinel.types import MarketSnapshot, VolumeTrend

logger = logging.getLogger("sentinel.data")

TREND_THRESHOLD_PCT = 10.0


def volume_trend_from_change(change_24h: float) -> VolumeTrend:
    if change_24h > TREND_THRESHOLD_PCT:
        return VolumeTrend.RISING
    if change_24h < -TREND_THRESHOLD_PCT:
        return VolumeTrend.FALLING
    return VolumeTrend.FLAT


def lookup(
    token_address: str, base_url: str | None = None, timeout: float | None = None
) -> dict:
    """USD price, 24h volume and 24h change for a token from the price index.

    Uses the most liquid pair the index reports. Raises ``RateLimited`` on
    HTTP 429 and ``TransientSourceFailure`` for anything else that goes wrong.
    """
    url = f"{base_url or settings.price_index_base}/latest/dex/tokens/{token_address}"
    try:
        r = requests.get(url, timeout=timeout or settings.price_timeout)
    except requests.RequestException as e:
        raise TransientSourceFailure(f"price index request failed: {e}") from e
    if r.status_code == 429:
        raise RateLimited("price index rate limited (HTTP 429)")
    if r.status_code != 200:
        raise TransientSourceFailure(f"HTTP {r.status_code} {r.text}")

    try:
        pairs = (r.json() or {}).get("pairs") or []
    except ValueError as e:
        raise TransientSourceFailure(f"price index returned invalid JSON: {e}") from e
    if not pairs:
        raise TransientSourceFailure(f"no pairs for {token_address}")

    pair = max(pairs, key=lambda p: float((p.get("liquidity") or {}).get("usd") or 0))
    try:
        return {
            "usd_price": float(pair["priceUsd"]),
            "usd_volume_24h": float((pair.get("volume") or {}).get("h24") or 0),
            "usd_change_24h": float((pair.get("priceChange") or {}).get("h24") or 0),
        }
    except (KeyError, TypeError, ValueError) as e:
        raise TransientSourceFailure(f"malformed pair data: {e}") from e


class PriceIndexSource:
    name = "price_index"

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url
        self.timeout = timeout

    def fetch(self, token_address: str) -> MarketSnapshot:
        q = lookup(token_address, self.base_url, self.timeout)
        logger.debug(f"[price_index] {token_address} {q}")
        return MarketSnapshot(
            token_address=token_address,
            price=q["usd_price"],
            volume_24h=q["usd_volume_24h"],
            volume_trend=volume_trend_from_change(q["usd_change_24h"]),
            observed_at=time.time(),
            source=self.name,
        )


class RouterQuoteSource:
    """On-chain unit quote against the stable asset. Volume is unknown here."""

    name = "router"

    def __init__(
        self,
        web3=None,
        router_address: str | None = None,
        stable: str | None = None,
        stable_decimals: int | None = None,
    ):
        self.web3 = web3
        self.router_address = router_address or settings.router_address
        self.stable = stable or settings.stable_token
        self.stable_decimals = stable_decimals or settings.stable_decimals

    def fetch(self, token_address: str) -> MarketSnapshot:
        if not self.router_address or not self.stable:
            raise TransientSourceFailure("router or stable token not configured")
        try:
            web3 = self.web3 or w3()
            price = quote_unit_price(
                token_address,
                self.stable,
                token_decimals=read_decimals(web3, token_address),
                stable_decimals=self.stable_decimals,
                web3=web3,
                router_address=self.router_address,
            )
        except Exception as e:
            raise TransientSourceFailure(f"router quote failed: {e}") from e
        return MarketSnapshot(
            token_address=token_address,
            price=price,
            volume_24h=0.0,
            volume_trend=VolumeTrend.FLAT,
            observed_at=time.time(),
            source=self.name,
        )
