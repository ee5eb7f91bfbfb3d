import logging
from decimal import Decimal
from typing import Any

from eth_account import Account
from web3 import Web3

from sentinel.config import settings
from sentinel.errors import ExecutionFailure

logger = logging.getLogger("sentinel.chain")

ERC20_ABI = [
    {
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

_w3 = None


def get_eth_client(url: str, timeout: float | None = None) -> Web3:
    return Web3(
        Web3.HTTPProvider(url, request_kwargs={"timeout": timeout or settings.rpc_timeout})
    )


def w3() -> Web3:
    """Shared Web3 handle; tries the primary RPC, then the fallback."""
    global _w3
    if _w3 is None:
        if not settings.rpc_url:
            raise RuntimeError("RPC_URL is not configured")
        urls = [settings.rpc_url]
        if settings.rpc_fallback_url and settings.rpc_fallback_url != settings.rpc_url:
            urls.append(settings.rpc_fallback_url)
        for url in urls:
            client = get_eth_client(url)
            if client.is_connected():
                if url != settings.rpc_url:
                    logger.warning(f"[chain] primary RPC unavailable, using fallback {url}")
                _w3 = client
                break
        else:
            raise RuntimeError("Web3 failed to connect")
    return _w3


def read_decimals(web3: Web3, token: str, default: int = 18) -> int:
    try:
        contract = web3.eth.contract(address=Web3.to_checksum_address(token), abi=ERC20_ABI)
        return int(contract.functions.decimals().call())
    except Exception as e:
        logger.debug(f"[chain] decimals() failed for {token}, assuming {default}: {e}")
        return default


class ChainClient:
    """A signer bound to a Web3 handle.

    All methods block; async callers run them through ``asyncio.to_thread``.
    """

    def __init__(self, web3: Web3, account: Any, receipt_timeout: float = 120.0):
        self.web3 = web3
        self.account = account
        self.receipt_timeout = receipt_timeout
        self._decimals: dict[str, int] = {}

    @classmethod
    def from_private_key(cls, private_key: str, web3: Web3 | None = None) -> "ChainClient":
        return cls(web3 or w3(), Account.from_key(private_key))

    @property
    def address(self) -> str:
        return self.account.address

    def erc20(self, token: str):
        return self.web3.eth.contract(address=Web3.to_checksum_address(token), abi=ERC20_ABI)

    def decimals(self, token: str) -> int:
        key = token.lower()
        if key not in self._decimals:
            self._decimals[key] = read_decimals(self.web3, token)
        return self._decimals[key]

    def to_units(self, token: str, amount: float) -> int:
        return int(Decimal(str(amount)) * (10 ** self.decimals(token)))

    def from_units(self, token: str, raw: int) -> float:
        return float(Decimal(raw) / (10 ** self.decimals(token)))

    def native_balance(self) -> float:
        return float(Web3.from_wei(self.web3.eth.get_balance(self.address), "ether"))

    def token_balance(self, token: str) -> float:
        raw = self.erc20(token).functions.balanceOf(self.address).call()
        return self.from_units(token, raw)

    def allowance(self, token: str, spender: str) -> int:
        return int(
            self.erc20(token)
            .functions.allowance(self.address, Web3.to_checksum_address(spender))
            .call()
        )

    def block_number(self) -> int:
        return int(self.web3.eth.block_number)

    def _base_tx(self) -> dict:
        return {
            "from": self.address,
            "nonce": self.web3.eth.get_transaction_count(self.address),
            "chainId": self.web3.eth.chain_id,
        }

    def send(self, fn) -> dict:
        """Sign, broadcast and wait for a contract call; return the receipt."""
        return self._submit(fn.build_transaction(self._base_tx()))

    def send_native(self, to: str, amount: float) -> dict:
        tx = self._base_tx()
        tx.update(
            {
                "to": Web3.to_checksum_address(to),
                "value": Web3.to_wei(Decimal(str(amount)), "ether"),
                "gas": 21000,
                "gasPrice": self.web3.eth.gas_price,
            }
        )
        return self._submit(tx)

    def _submit(self, tx: dict) -> dict:
        signed = self.account.sign_transaction(tx)
        tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
        receipt = self.web3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self.receipt_timeout
        )
        if receipt.get("status") == 0:
            raise ExecutionFailure(f"transaction reverted: {Web3.to_hex(tx_hash)}")
        return {
            "tx_hash": Web3.to_hex(tx_hash),
            "block_number": int(receipt["blockNumber"]),
            "status": int(receipt.get("status", 1)),
        }

    def approve(self, token: str, spender: str, raw_amount: int) -> dict:
        fn = self.erc20(token).functions.approve(
            Web3.to_checksum_address(spender), raw_amount
        )
        return self.send(fn)

    def transfer(self, token: str, to: str, raw_amount: int) -> dict:
        fn = self.erc20(token).functions.transfer(Web3.to_checksum_address(to), raw_amount)
        return self.send(fn)
