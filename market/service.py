# market/service.py
from typing import Optional, Sequence

from loguru import logger

from market.cache import TTLCache
from market.providers import CoinGeckoPriceProvider, JupiterTokenDirectory, PriceProvider, TokenInfo

VERIFIED_LIST_KEY = "verified"
SOL_PRICE_KEY = "sol"


class MarketCache:
    """
    Token metadata and spot price with a time-bounded cache in front.

    Metadata is advisory: a failed lookup yields a placeholder instead of an
    error. Prices come from ``price_providers`` in order; the first usable
    answer wins and is cached for ``ttl`` seconds.
    """

    def __init__(
        self,
        directory: JupiterTokenDirectory,
        price_providers: Sequence[PriceProvider],
        ttl: float = 60.0,
        clock=None,
        sol_price_source: Optional[CoinGeckoPriceProvider] = None,
    ):
        self.directory = directory
        self.price_providers = list(price_providers)
        self.sol_price_source = sol_price_source

        cache_args = {"clock": clock} if clock else {}
        self.token_cache = TTLCache(ttl, **cache_args)
        self.price_cache = TTLCache(ttl, **cache_args)
        self.directory_cache = TTLCache(ttl, **cache_args)

    async def get_token_info(self, address: str) -> TokenInfo:
        cached = self.token_cache.get(address)
        if cached is not None:
            return cached

        try:
            info = await self.directory.get_token(address)
        except Exception as e:
            logger.warning(f"Token info lookup failed for {address}: {type(e).__name__} {e}")
            return TokenInfo.placeholder(address)

        self.token_cache.set(address, info)
        return info

    async def get_token_price(self, address: str) -> Optional[float]:
        cached = self.price_cache.get(address)
        if cached is not None:
            return cached

        decimals = (await self.get_token_info(address)).decimals
        for provider in self.price_providers:
            if not provider.available:
                continue
            try:
                price = await provider.get_price(address, decimals)
            except Exception as e:
                logger.warning(f"Price provider {provider.name} failed for {address}: {type(e).__name__} {e}")
                continue

            if price:
                logger.debug(f"Price for {address} from {provider.name}: {price}")
                self.price_cache.set(address, price)
                return price

        logger.warning(f"No price source could price {address}")
        return None

    async def get_sol_price(self) -> Optional[float]:
        cached = self.price_cache.get(SOL_PRICE_KEY)
        if cached is not None:
            return cached
        if self.sol_price_source is None:
            return None

        price = await self.sol_price_source.get_sol_price()
        if price:
            self.price_cache.set(SOL_PRICE_KEY, price)
        return price

    async def _verified_tokens(self) -> list[TokenInfo]:
        tokens = self.directory_cache.get(VERIFIED_LIST_KEY)
        if tokens is not None:
            return tokens

        try:
            tokens = await self.directory.list_verified()
        except Exception as e:
            logger.error(f"Verified token list unavailable: {type(e).__name__} {e}")
            return []

        self.directory_cache.set(VERIFIED_LIST_KEY, tokens)
        return tokens

    async def get_token_by_symbol(self, symbol: str) -> Optional[str]:
        wanted = symbol.strip().lower()
        for token in await self._verified_tokens():
            if token.symbol.lower() == wanted:
                return token.address
        return None

    async def get_top_tokens(self, limit: int = 20) -> list[TokenInfo]:
        return (await self._verified_tokens())[:limit]

    def clear(self):
        self.token_cache.clear()
        self.price_cache.clear()
        self.directory_cache.clear()
