import logging
from typing import List

import requests

from sentinel.chains import CHAINS
from sentinel.config import settings as default_settings
from sentinel.config.watchlist import load_watchlist
from sentinel.types import TokenInfo

logger = logging.getLogger("sentinel.data")

TICKERS_URL = "https://api.crypto.com/exchange/v1/public/get-tickers"


def fetch_trending(
    url: str = TICKERS_URL,
    timeout: float = 10.0,
    min_volume_24h: float = 50_000.0,
    limit: int = 10,
) -> List[str]:
    """Symbols of the busiest CRO pairs on the exchange, highest volume first.

    ``X_CRO`` contributes ``X``; ``CRO_Y`` contributes ``CRO``. Pairs under
    ``min_volume_24h`` (USD value when the ticker carries it) are dropped.
    Raises ``requests.RequestException`` or ``ValueError`` when the exchange
    is unreachable or answers with something other than a ticker list.
    """
    r = requests.get(url, timeout=timeout)
    r.raise_for_status()
    body = r.json()
    rows = ((body.get("result") or {}).get("data")) if isinstance(body, dict) else None
    if not isinstance(rows, list):
        raise ValueError("tickers response has no result.data list")

    ranked = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        instrument = str(row.get("i") or "").upper()
        try:
            volume = float(row.get("vv") or row.get("v") or 0)
        except (TypeError, ValueError):
            continue
        base, _, quote = instrument.partition("_")
        if quote == "CRO":
            symbol = base
        elif base == "CRO" and quote:
            symbol = "CRO"
        else:
            continue
        if volume >= min_volume_24h:
            ranked.append((volume, symbol))

    ranked.sort(key=lambda x: x[0], reverse=True)
    symbols: List[str] = []
    for _, symbol in ranked:
        if symbol not in symbols:
            symbols.append(symbol)
    return symbols[:limit]


class TokenDiscovery:
    """Curated watchlist plus high-volume tokens the chain knows an address for."""

    def __init__(
        self,
        network: str,
        scan_tokens: str | None = None,
        url: str = TICKERS_URL,
        timeout: float = 10.0,
        min_volume_24h: float = 50_000.0,
        limit: int = 10,
    ):
        self.network = network
        self.scan_tokens = scan_tokens
        self.url = url
        self.timeout = timeout
        self.min_volume_24h = min_volume_24h
        self.limit = limit

    @classmethod
    def from_settings(cls, s=None) -> "TokenDiscovery":
        s = s or default_settings
        return cls(
            s.network,
            s.scan_tokens,
            url=s.discovery_url,
            timeout=s.discovery_timeout,
            min_volume_24h=s.discovery_min_volume_24h,
            limit=s.discovery_limit,
        )

    def tokens_to_scan(self) -> List[TokenInfo]:
        watchlist = load_watchlist(self.network, self.scan_tokens)
        try:
            trending = fetch_trending(self.url, self.timeout, self.min_volume_24h, self.limit)
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"[discovery] trending fetch failed, using watchlist only: {e}")
            return watchlist

        chain = CHAINS.get(self.network)
        known = chain.tokens if chain else {}
        tokens = list(watchlist)
        seen = {t.address.lower() for t in tokens}
        for symbol in trending:
            # exchange tickers use bare symbols, the chain may only list the wrapped token
            key = symbol if symbol in known else f"W{symbol}"
            address = known.get(key)
            if address is None or address.lower() in seen:
                continue
            seen.add(address.lower())
            tokens.append(TokenInfo(address=address, symbol=key))

        logger.info(
            f"[discovery] watchlist={len(watchlist)} trending={len(trending)} total={len(tokens)}"
        )
        return tokens
