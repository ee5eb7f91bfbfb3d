from dataclasses import dataclass, field


@dataclass(frozen=True)
class EvmChain:
    name: str
    chain_id: int
    rpc_url: str
    wrapped_native: str
    router_v2: str
    stable: str
    stable_decimals: int = 6
    tokens: dict[str, str] = field(default_factory=dict)


CRONOS = EvmChain(
    "cronos",
    25,
    "https://evm.cronos.org",
    "0x5C7F8A570d578ED84E63fdFA7b1eE72dEae1AE23",
    "0x145863Eb42Cf62847A6Ca784e6416C1682b1b2Ae",
    "0xc21223249CA28397B4B6541dfFaEcC539BfF0c59",
    tokens={
        "WCRO": "0x5C7F8A570d578ED84E63fdFA7b1eE72dEae1AE23",
        "USDC": "0xc21223249CA28397B4B6541dfFaEcC539BfF0c59",
        "USDT": "0x66e428c3f67a68878562e79A0234c1F83c208770",
        "WBTC": "0x062E66477Faf219F25D27dCED647BF57C3107d52",
        "WETH": "0xe44Fd7fCb2b1581822D0c862B68222998a0c299a",
    },
)

CHAINS = {"cronos": CRONOS}

# Symbols that resolve to the chain's native coin rather than an ERC-20.
NATIVE_SYMBOLS = {"CRO", "TCRO"}
