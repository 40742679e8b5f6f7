from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: float = 10

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass


class ChainDataProvider(Provider):
    """Read and write access to EVM chains (balances, gas, transactions)"""

    @abstractmethod
    async def get_token_balance(self, chain_id: int, token: str, owner: str) -> int:
        """ERC-20 balance in the token's minor units"""
        pass

    @abstractmethod
    async def get_allowance(self, chain_id: int, token: str, owner: str, spender: str) -> int:
        pass

    @abstractmethod
    async def get_gas_price(self, chain_id: int) -> int:
        """Current gas price in wei"""
        pass

    @abstractmethod
    async def estimate_gas(self, chain_id: int, call: Dict[str, Any]) -> int:
        pass

    @abstractmethod
    async def get_transaction_count(self, chain_id: int, address: str) -> int:
        pass

    @abstractmethod
    async def send_raw_transaction(self, chain_id: int, raw_tx: str) -> str:
        pass

    @abstractmethod
    async def get_transaction_receipt(self, chain_id: int, tx_hash: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def wait_for_receipt(
        self,
        chain_id: int,
        tx_hash: str,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Poll until the transaction is mined"""
        pass

    async def close(self) -> None:
        pass


class PriceProvider(Provider):
    """Provider for native gas token prices"""

    @abstractmethod
    async def get_native_prices(self, symbols: List[str]) -> Dict[str, Any]:
        """USD spot price per gas token symbol (ETH, AVAX, MATIC)"""
        pass
