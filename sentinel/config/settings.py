# sentinel/config/settings.py

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, model_validator

from sentinel.chains import CHAINS


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Core ---
    network: str = Field(default="cronos")
    chain_id: Optional[int] = None
    rpc_url: Optional[str] = None
    rpc_fallback_url: Optional[str] = None
    rpc_timeout: float = Field(default=20.0)

    # --- Keys + contracts ---
    private_key: Optional[str] = None
    contract_address: Optional[str] = None
    router_address: Optional[str] = None
    wrapped_native: Optional[str] = None
    stable_token: Optional[str] = None
    stable_decimals: int = Field(default=6)

    # --- Market data ---
    price_index_base: str = Field(default="https://api.dexscreener.com")
    price_timeout: float = Field(default=5.0)
    market_cache_ttl: float = Field(default=30.0)
    sentiment_cache_ttl: float = Field(default=30.0)
    max_data_age: float = Field(default=60.0)
    allow_mock_on_fail: bool = Field(default=True)
    breaker_failure_threshold: int = Field(default=5)
    breaker_reset_sec: float = Field(default=60.0)
    discover_tokens: bool = Field(default=False)
    discovery_url: str = Field(default="https://api.crypto.com/exchange/v1/public/get-tickers")
    discovery_timeout: float = Field(default=10.0)
    discovery_min_volume_24h: float = Field(default=50000.0)
    discovery_limit: int = Field(default=10)

    # --- Loop ---
    poll_interval_sec: float = Field(default=30.0)
    scan_tokens: Optional[str] = None
    probe_token: Optional[str] = None
    risk_mode: str = Field(default="GUARDIAN")

    # --- LLM ---
    llm_api_key: Optional[str] = None
    llm_model: str = Field(default="gpt-4o-mini")
    llm_base_url: Optional[str] = None
    llm_min_interval_sec: float = Field(default=2.0)
    llm_max_attempts: int = Field(default=3)

    # --- Smart wallet ---
    default_quote_token: str = Field(default="USDC")
    confirm_threshold_usd: float = Field(default=50.0)
    ref_price_usd: float = Field(default=0.12)
    swap_deadline_sec: int = Field(default=300)
    settle_polls: int = Field(default=20)
    settle_poll_interval: float = Field(default=0.5)
    settle_delay_sec: float = Field(default=1.0)
    pending_trade_ttl_sec: float = Field(default=0.0)  # 0 = never expires

    # --- Helpers ---
    def token_address(self, symbol: str) -> str | None:
        """Return the known contract address for a token symbol on this network."""
        chain = CHAINS.get(self.network)
        if chain is None:
            return None
        return chain.tokens.get(symbol.upper())

    # --- Validators ---
    @model_validator(mode="after")
    def configure_network_defaults(self):
        """Fill defaults depending on the selected network."""
        chain = CHAINS.get(self.network)
        if chain is not None:
            self.chain_id = self.chain_id or chain.chain_id
            self.rpc_url = self.rpc_url or chain.rpc_url
            self.router_address = self.router_address or chain.router_v2
            self.wrapped_native = self.wrapped_native or chain.wrapped_native
            self.stable_token = self.stable_token or chain.stable
            if "stable_decimals" not in self.model_fields_set:
                self.stable_decimals = chain.stable_decimals
            self.probe_token = self.probe_token or chain.wrapped_native
        return self


# Global settings instance
settings = Settings()
