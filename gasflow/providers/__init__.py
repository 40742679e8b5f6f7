"""Adapters for the external services the engine talks to."""

from .base import ChainDataProvider, PriceProvider, Provider

__all__ = ["ChainDataProvider", "PriceProvider", "Provider"]
