import os

from pathlib import Path
from typing import Any, Dict

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]

CIRCLE_SANDBOX_API_URL = "https://iris-api-sandbox.circle.com"
CIRCLE_MAINNET_API_URL = "https://iris-api.circle.com"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        env_prefix="GASFLOW_",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Derive network-dependent endpoints and pick up unprefixed key aliases."""

        super().model_post_init(__context)

        if not self.circle_api_base_url:
            default_url = CIRCLE_SANDBOX_API_URL if self.use_testnet else CIRCLE_MAINNET_API_URL
            object.__setattr__(self, "circle_api_base_url", default_url)

        if not self.circle_api_key:
            fallback = os.getenv("CIRCLE_API_KEY")
            if fallback:
                object.__setattr__(self, "circle_api_key", fallback)

        if not self.coingecko_api_key:
            fallback = os.getenv("COINGECKO_API_KEY")
            if fallback:
                object.__setattr__(self, "coingecko_api_key", fallback)

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # Network selection
    use_testnet: bool = Field(default=True, description="Use the testnet chain table instead of mainnet")
    bridge_mode: str = Field(
        default="production",
        description="Bridge service variant: 'production' (CCTP) or 'mock' (simulated transfers)",
    )
    rpc_urls: Dict[int, str] = Field(
        default_factory=dict,
        description="Per-chain RPC URL overrides keyed by chain id",
    )

    # External APIs
    circle_api_base_url: str = Field(default="", description="Circle Iris API base URL")
    circle_api_key: str = Field(default="", description="Circle API key (optional for public endpoints)")
    coingecko_api_key: str = Field(default="", description="Coingecko API key")
    coingecko_base_url: str = Field(
        default="https://api.coingecko.com/api/v3",
        description="Coingecko API base URL",
    )

    # Sponsored execution (ERC-4337)
    paymaster_url: str = Field(default="", description="Paymaster JSON-RPC endpoint")
    paymaster_rpc_method: str = Field(
        default="pm_sponsorUserOperation",
        description="Paymaster sponsorship RPC method",
    )
    bundler_url: str = Field(default="", description="ERC-4337 bundler JSON-RPC endpoint")
    account_execute_signature: str = Field(
        default="execute(address,uint256,bytes)",
        description="Smart account execute function signature",
    )

    # Cache Settings
    balance_cache_ttl_seconds: int = Field(default=30, description="Balance cache TTL in seconds")
    gas_price_cache_ttl_seconds: int = Field(default=10, description="Gas price cache TTL in seconds")
    price_cache_ttl_seconds: int = Field(default=120, description="Native token price cache TTL in seconds")
    max_cache_size: int = Field(default=1000, description="Maximum entries per cache")

    # Timeouts
    rpc_timeout_seconds: float = Field(default=15.0, description="Chain RPC request timeout")
    fee_api_timeout_seconds: float = Field(default=5.0, description="Bridge fee API timeout")
    allowance_api_timeout_seconds: float = Field(default=3.0, description="Fast transfer allowance API timeout")
    price_timeout_seconds: float = Field(default=10.0, description="Price feed request timeout")
    attestation_request_timeout_seconds: float = Field(default=10.0, description="Single attestation poll timeout")
    attestation_poll_interval_seconds: float = Field(default=5.0, description="Attestation poll interval")
    attestation_timeout_seconds: float = Field(default=1200.0, description="Attestation polling ceiling")
    receipt_timeout_seconds: float = Field(default=180.0, description="Transaction receipt wait ceiling")
    receipt_poll_interval_seconds: float = Field(default=2.0, description="Receipt poll interval")

    # Retry
    rpc_max_attempts: int = Field(default=3, description="Attempts for chain read calls")

    # Routing
    savings_threshold: float = Field(
        default=0.20,
        description="Minimum relative saving before recommending a different execution chain",
    )
    update_channel_size: int = Field(default=32, description="Buffered transaction updates per request")


settings = Settings()
