"""
Price providers package.
"""
from providers.base import BasePriceProvider
from providers.client import ProviderClient
from providers.frankfurter.client import FrankfurterProvider
from providers.coinbase.client import CoinbaseProvider
from providers.kraken.client import KrakenProvider

__all__ = [
    "BasePriceProvider",
    "ProviderClient",
    "FrankfurterProvider",
    "CoinbaseProvider",
    "KrakenProvider",
]
