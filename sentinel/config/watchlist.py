import json
from typing import List

from sentinel.chains import CHAINS
from sentinel.types import TokenInfo


def _parse_list(val: str | None) -> List[str]:
    """Parse env var into list. Accepts comma-separated or JSON array."""
    if not val:
        return []
    val = val.strip()
    try:
        if val.startswith("["):
            return json.loads(val)
    except ValueError:
        pass
    return [x.strip() for x in val.split(",") if x.strip()]


def load_watchlist(network: str, scan_tokens: str | None = None) -> List[TokenInfo]:
    """Tokens the loop scans each cycle.

    ``scan_tokens`` entries may be symbols known to the chain or raw
    addresses; without it the chain's curated token set is used.
    """
    chain = CHAINS.get(network)
    known = chain.tokens if chain else {}
    by_address = {addr.lower(): sym for sym, addr in known.items()}

    entries = _parse_list(scan_tokens)
    if not entries:
        return [TokenInfo(address=addr, symbol=sym) for sym, addr in known.items()]

    tokens: List[TokenInfo] = []
    seen = set()
    for entry in entries:
        if entry.lower().startswith("0x"):
            address = entry
            symbol = by_address.get(entry.lower(), entry)
        elif entry.upper() in known:
            symbol = entry.upper()
            address = known[symbol]
        else:
            continue
        if address.lower() in seen:
            continue
        seen.add(address.lower())
        tokens.append(TokenInfo(address=address, symbol=symbol))
    return tokens


def symbol_for(address: str, tokens: List[TokenInfo]) -> str:
    for t in tokens:
        if t.address.lower() == address.lower():
            return t.symbol
    return address
