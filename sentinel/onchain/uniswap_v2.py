import time

from web3 import Web3

from sentinel.onchain.eth import w3, ChainClient
from sentinel.config import settings

ROUTER_ABI = [
    {
        "inputs": [
            {"internalType": "uint256", "name": "amountIn", "type": "uint256"},
            {"internalType": "address[]", "name": "path", "type": "address[]"},
        ],
        "name": "getAmountsOut",
        "outputs": [
            {"internalType": "uint256[]", "name": "amounts", "type": "uint256[]"}
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "uint256", "name": "amountIn", "type": "uint256"},
            {"internalType": "uint256", "name": "amountOutMin", "type": "uint256"},
            {"internalType": "address[]", "name": "path", "type": "address[]"},
            {"internalType": "address", "name": "to", "type": "address"},
            {"internalType": "uint256", "name": "deadline", "type": "uint256"},
        ],
        "name": "swapExactTokensForTokens",
        "outputs": [
            {"internalType": "uint256[]", "name": "amounts", "type": "uint256[]"}
        ],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

AGENT_ABI = [
    {
        "inputs": [
            {"name": "tokenIn", "type": "address"},
            {"name": "tokenOut", "type": "address"},
            {"name": "amountIn", "type": "uint256"},
            {"name": "minAmountOut", "type": "uint256"},
        ],
        "name": "openPosition",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "positionId", "type": "uint256"},
            {"name": "minAmountOut", "type": "uint256"},
        ],
        "name": "closePosition",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]


def _router(web3: Web3 | None = None, router_address: str | None = None):
    return (web3 or w3()).eth.contract(
        address=Web3.to_checksum_address(router_address or settings.router_address),
        abi=ROUTER_ABI,
    )


def get_amounts_out(
    amount_in_wei: int,
    path: list[str],
    web3: Web3 | None = None,
    router_address: str | None = None,
) -> list[int]:
    router = _router(web3, router_address)
    return router.functions.getAmountsOut(
        amount_in_wei, [Web3.to_checksum_address(p) for p in path]
    ).call()


def quote_unit_price(
    token: str,
    stable: str,
    token_decimals: int = 18,
    stable_decimals: int = 6,
    web3: Web3 | None = None,
    router_address: str | None = None,
) -> float:
    """Price of one whole ``token`` in ``stable`` units, via the router's quote."""
    out = get_amounts_out(10**token_decimals, [token, stable], web3, router_address)[-1]
    return out / 10**stable_decimals


def swap_exact_tokens_for_tokens(
    client: ChainClient,
    router_address: str,
    amount_in: int,
    path: list[str],
    min_out: int = 0,
    deadline_sec: int = 300,
) -> dict:
    router = _router(client.web3, router_address)
    deadline = int(time.time()) + deadline_sec
    fn = router.functions.swapExactTokensForTokens(
        amount_in,
        min_out,
        [Web3.to_checksum_address(p) for p in path],
        client.address,
        deadline,
    )
    return client.send(fn)


def open_position(
    client: ChainClient,
    contract_address: str,
    token_in: str,
    token_out: str,
    amount_in: int,
    min_out: int = 0,
) -> dict:
    agent = client.web3.eth.contract(
        address=Web3.to_checksum_address(contract_address), abi=AGENT_ABI
    )
    fn = agent.functions.openPosition(
        Web3.to_checksum_address(token_in),
        Web3.to_checksum_address(token_out),
        amount_in,
        min_out,
    )
    return client.send(fn)
