"""GasFlow: pay gas on any chain with USDC held on any other."""

__version__ = "0.1.0"
