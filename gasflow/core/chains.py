"""Static chain configuration for the supported CCTP networks.

The tables are loaded once and never mutated. ``ChainRegistry`` picks the
testnet or mainnet table at construction and answers pure lookups.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Union

from .recovery.errors import UnsupportedChainError

ChainId = int

ENTRY_POINT_V06 = "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789"
CIRCLE_PAYMASTER_TESTNET = "0x3BA9A96eE3eFf3A69E2B18886AcF52027EFF8966"
CIRCLE_PAYMASTER_ARBITRUM = "0x6C973eBe80dCD8660841D4356bf15c32460271C9"

# TokenMessengerV2 is deployed at the same address on every chain of a network
TESTNET_TOKEN_MESSENGER = "0x9f3B8679c73C2Fef8b59B4f3444d4e156fb70AA5"
MAINNET_TOKEN_MESSENGER = "0x28b5a0e9C621a5BadaA536219b3a228C8168cf5d"
TESTNET_MESSAGE_TRANSMITTER = "0x7865fAfC2db2093669d92c0F33AeEF291086BEFD"

# Seconds until a burn on the source chain is final enough for standard attestation
DEFAULT_FINALITY_SECONDS = 300


@dataclass(frozen=True)
class ChainConfig:
    chain_id: int
    name: str
    rpc_url: str
    usdc_address: str
    cctp_domain: int
    gas_token_symbol: str
    finality_seconds: int
    block_explorer_url: str
    token_messenger: str
    message_transmitter: str
    is_testnet: bool
    entry_point: str = ENTRY_POINT_V06
    paymaster_address: Optional[str] = None
    aliases: tuple = ()


TESTNET_CHAINS: Mapping[int, ChainConfig] = MappingProxyType({
    11155111: ChainConfig(
        chain_id=11155111,
        name="Ethereum Sepolia",
        rpc_url="https://ethereum-sepolia-rpc.publicnode.com",
        usdc_address="0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
        cctp_domain=0,
        gas_token_symbol="ETH",
        finality_seconds=900,
        block_explorer_url="https://sepolia.etherscan.io",
        token_messenger=TESTNET_TOKEN_MESSENGER,
        message_transmitter=TESTNET_MESSAGE_TRANSMITTER,
        is_testnet=True,
        paymaster_address=CIRCLE_PAYMASTER_TESTNET,
        aliases=("sepolia", "ethereum", "eth"),
    ),
    421614: ChainConfig(
        chain_id=421614,
        name="Arbitrum Sepolia",
        rpc_url="https://sepolia-rollup.arbitrum.io/rpc",
        usdc_address="0x75faf114eafb1BDbe2F0316DF893fd58CE46AA4d",
        cctp_domain=3,
        gas_token_symbol="ETH",
        finality_seconds=120,
        block_explorer_url="https://sepolia.arbiscan.io",
        token_messenger=TESTNET_TOKEN_MESSENGER,
        message_transmitter=TESTNET_MESSAGE_TRANSMITTER,
        is_testnet=True,
        paymaster_address=CIRCLE_PAYMASTER_TESTNET,
        aliases=("arbitrum", "arb"),
    ),
    84532: ChainConfig(
        chain_id=84532,
        name="Base Sepolia",
        rpc_url="https://sepolia.base.org",
        usdc_address="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        cctp_domain=6,
        gas_token_symbol="ETH",
        finality_seconds=120,
        block_explorer_url="https://sepolia.basescan.org",
        token_messenger=TESTNET_TOKEN_MESSENGER,
        message_transmitter=TESTNET_MESSAGE_TRANSMITTER,
        is_testnet=True,
        paymaster_address=CIRCLE_PAYMASTER_TESTNET,
        aliases=("base",),
    ),
    43113: ChainConfig(
        chain_id=43113,
        name="Avalanche Fuji",
        rpc_url="https://api.avax-test.network/ext/bc/C/rpc",
        usdc_address="0x5425890298aed601595a70AB815c96711a31Bc65",
        cctp_domain=1,
        gas_token_symbol="AVAX",
        finality_seconds=60,
        block_explorer_url="https://testnet.snowtrace.io",
        token_messenger=TESTNET_TOKEN_MESSENGER,
        message_transmitter=TESTNET_MESSAGE_TRANSMITTER,
        is_testnet=True,
        paymaster_address=CIRCLE_PAYMASTER_TESTNET,
        aliases=("avalanche", "avax", "fuji"),
    ),
    80002: ChainConfig(
        chain_id=80002,
        name="Polygon Amoy",
        rpc_url="https://rpc-amoy.polygon.technology",
        usdc_address="0x41E94Eb019C0762f9Bfcf9Fb1E58725BfB0e7582",
        cctp_domain=7,
        gas_token_symbol="MATIC",
        finality_seconds=120,
        block_explorer_url="https://amoy.polygonscan.com",
        token_messenger=TESTNET_TOKEN_MESSENGER,
        message_transmitter=TESTNET_MESSAGE_TRANSMITTER,
        is_testnet=True,
        paymaster_address=CIRCLE_PAYMASTER_TESTNET,
        aliases=("polygon", "matic", "amoy"),
    ),
})

MAINNET_CHAINS: Mapping[int, ChainConfig] = MappingProxyType({
    1: ChainConfig(
        chain_id=1,
        name="Ethereum",
        rpc_url="https://ethereum-rpc.publicnode.com",
        usdc_address="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        cctp_domain=0,
        gas_token_symbol="ETH",
        finality_seconds=900,
        block_explorer_url="https://etherscan.io",
        token_messenger=MAINNET_TOKEN_MESSENGER,
        message_transmitter="0x0a992d191DEeC32aFe36203Ad87D7d289a738F81",
        is_testnet=False,
        aliases=("ethereum", "eth", "mainnet"),
    ),
    42161: ChainConfig(
        chain_id=42161,
        name="Arbitrum One",
        rpc_url="https://arbitrum-one-rpc.publicnode.com",
        usdc_address="0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
        cctp_domain=3,
        gas_token_symbol="ETH",
        finality_seconds=120,
        block_explorer_url="https://arbiscan.io",
        token_messenger=MAINNET_TOKEN_MESSENGER,
        message_transmitter="0xC30362313FBBA5cf9163F0bb16a0e01f01A896ca",
        is_testnet=False,
        paymaster_address=CIRCLE_PAYMASTER_ARBITRUM,
        aliases=("arbitrum", "arb"),
    ),
    8453: ChainConfig(
        chain_id=8453,
        name="Base",
        rpc_url="https://base-rpc.publicnode.com",
        usdc_address="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        cctp_domain=6,
        gas_token_symbol="ETH",
        finality_seconds=120,
        block_explorer_url="https://basescan.org",
        token_messenger=MAINNET_TOKEN_MESSENGER,
        message_transmitter="0xAD09780d193884d503182aD4588450C416D6F9D4",
        is_testnet=False,
        aliases=("base",),
    ),
    43114: ChainConfig(
        chain_id=43114,
        name="Avalanche",
        rpc_url="https://avalanche-c-chain-rpc.publicnode.com",
        usdc_address="0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E",
        cctp_domain=1,
        gas_token_symbol="AVAX",
        finality_seconds=60,
        block_explorer_url="https://snowtrace.io",
        token_messenger=MAINNET_TOKEN_MESSENGER,
        message_transmitter="0x8186359aF5F57FbB40c6b14A588d2A59C0C29880",
        is_testnet=False,
        aliases=("avalanche", "avax"),
    ),
    137: ChainConfig(
        chain_id=137,
        name="Polygon",
        rpc_url="https://polygon-bor-rpc.publicnode.com",
        usdc_address="0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
        cctp_domain=7,
        gas_token_symbol="MATIC",
        finality_seconds=120,
        block_explorer_url="https://polygonscan.com",
        token_messenger=MAINNET_TOKEN_MESSENGER,
        message_transmitter="0xF3be9355363857F3e001be68856A2f96b4C39Ba9",
        is_testnet=False,
        aliases=("polygon", "matic"),
    ),
    10: ChainConfig(
        chain_id=10,
        name="Optimism",
        rpc_url="https://optimism-rpc.publicnode.com",
        usdc_address="0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85",
        cctp_domain=2,
        gas_token_symbol="ETH",
        finality_seconds=120,
        block_explorer_url="https://optimistic.etherscan.io",
        token_messenger=MAINNET_TOKEN_MESSENGER,
        message_transmitter="0x4D41f22c5a0e5c74090899E5a8FB597a8842b3e8",
        is_testnet=False,
        aliases=("optimism", "op"),
    ),
})


class ChainRegistry:
    """Read-only view over one chain table.

    Usage:
        registry = ChainRegistry(use_testnet=True)
        registry.domain_for(84532)        # 6
        registry.resolve("arbitrum")      # 421614
    """

    def __init__(
        self,
        use_testnet: bool = True,
        rpc_overrides: Optional[Mapping[int, str]] = None,
    ) -> None:
        table = TESTNET_CHAINS if use_testnet else MAINNET_CHAINS
        chains: Dict[int, ChainConfig] = {}
        for chain_id, config in table.items():
            override = (rpc_overrides or {}).get(chain_id)
            chains[chain_id] = replace(config, rpc_url=override) if override else config

        self.use_testnet = use_testnet
        self._chains: Mapping[int, ChainConfig] = MappingProxyType(chains)
        self._alias_to_id: Dict[str, int] = {}
        for config in chains.values():
            self._alias_to_id[config.name.lower()] = config.chain_id
            for alias in config.aliases:
                self._alias_to_id.setdefault(alias, config.chain_id)

    def get(self, chain_id: int) -> ChainConfig:
        config = self._chains.get(chain_id)
        if config is None:
            raise UnsupportedChainError(chain_id)
        return config

    def supported_chain_ids(self) -> List[int]:
        return list(self._chains.keys())

    def all(self) -> List[ChainConfig]:
        return list(self._chains.values())

    def is_supported(self, chain_id: int) -> bool:
        return chain_id in self._chains

    def is_cctp_supported(self, chain_id: int) -> bool:
        config = self._chains.get(chain_id)
        return bool(config and config.token_messenger and config.message_transmitter)

    def domain_for(self, chain_id: int) -> int:
        return self.get(chain_id).cctp_domain

    def finality_seconds(self, chain_id: int) -> int:
        config = self._chains.get(chain_id)
        return config.finality_seconds if config else DEFAULT_FINALITY_SECONDS

    def name_for(self, chain_id: int) -> str:
        config = self._chains.get(chain_id)
        return config.name if config else f"Chain {chain_id}"

    def resolve(self, chain: Union[str, int]) -> int:
        """Map a chain id or name/alias to a supported chain id."""
        if isinstance(chain, int):
            return self.get(chain).chain_id

        text = chain.strip().lower()
        if text.isdigit():
            return self.get(int(text)).chain_id
        chain_id = self._alias_to_id.get(text)
        if chain_id is None:
            raise UnsupportedChainError(chain)
        return chain_id
