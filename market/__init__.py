from market.cache import TTLCache
from market.providers import (
    BirdeyePriceProvider,
    CoinGeckoPriceProvider,
    JupiterQuotePriceProvider,
    JupiterTokenDirectory,
    PriceProvider,
    TokenInfo,
)
from market.service import MarketCache

__all__ = [
    "BirdeyePriceProvider",
    "CoinGeckoPriceProvider",
    "JupiterQuotePriceProvider",
    "JupiterTokenDirectory",
    "MarketCache",
    "PriceProvider",
    "TTLCache",
    "TokenInfo",
]
