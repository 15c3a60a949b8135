# market/providers.py
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from loguru import logger
from pydantic import BaseModel, Field

from config import LAMPORTS_PER_SOL, SOL_MINT

DEFAULT_DECIMALS = 9
FALLBACK_SOL_PRICE = 100.0


class TokenInfo(BaseModel):
    address: str
    symbol: str = "UNKNOWN"
    name: str = "Unknown Token"
    decimals: int = DEFAULT_DECIMALS
    logo_uri: Optional[str] = Field(default=None, alias="logoURI")

    model_config = {"populate_by_name": True}

    @classmethod
    def placeholder(cls, address: str) -> "TokenInfo":
        return cls(address=address)

    @classmethod
    def from_api(cls, data: dict, address: Optional[str] = None) -> "TokenInfo":
        return cls(
            address=address or data["address"],
            symbol=data.get("symbol") or "UNKNOWN",
            name=data.get("name") or "Unknown Token",
            decimals=data.get("decimals") or DEFAULT_DECIMALS,
            logo_uri=data.get("logoURI"),
        )


class JupiterTokenDirectory:
    """Jupiter token list: per-address lookup and the verified-token listing."""

    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def get_token(self, address: str) -> TokenInfo:
        resp = await self.client.get(f"{self.base_url}/token/{address}")
        resp.raise_for_status()
        data = resp.json()
        if not data:
            raise ValueError(f"Token {address} not found in directory")
        return TokenInfo.from_api(data, address=address)

    async def list_verified(self) -> list[TokenInfo]:
        resp = await self.client.get(f"{self.base_url}/tokens", params={"tags": "verified"})
        resp.raise_for_status()
        return [TokenInfo.from_api(item) for item in resp.json()]


class PriceProvider(ABC):
    name = "provider"

    @property
    def available(self) -> bool:
        return True

    @abstractmethod
    async def get_price(self, address: str, decimals: int = DEFAULT_DECIMALS) -> Optional[float]:
        """USD price or None; implementations swallow their own transport errors."""


class BirdeyePriceProvider(PriceProvider):
    name = "birdeye"

    def __init__(self, client: httpx.AsyncClient, base_url: str, api_key: Optional[str]):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    async def get_price(self, address: str, decimals: int = DEFAULT_DECIMALS) -> Optional[float]:
        try:
            resp = await self.client.get(
                f"{self.base_url}/defi/price",
                params={"address": address},
                headers={"X-API-KEY": self.api_key},
            )
            resp.raise_for_status()
            return (resp.json().get("data") or {}).get("value") or None
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Birdeye price failed for {address}: {type(e).__name__} {e}")
            return None


class CoinGeckoPriceProvider(PriceProvider):
    name = "coingecko"

    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def get_price(self, address: str, decimals: int = DEFAULT_DECIMALS) -> Optional[float]:
        try:
            resp = await self.client.get(
                f"{self.base_url}/simple/token_price/solana",
                params={"contract_addresses": address, "vs_currencies": "usd"},
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"CoinGecko price failed for {address}: {type(e).__name__} {e}")
            return None

        entry = data.get(address) or data.get(address.lower()) or {}
        return entry.get("usd") or None

    async def get_sol_price(self) -> Optional[float]:
        try:
            resp = await self.client.get(
                f"{self.base_url}/simple/price",
                params={"ids": "solana", "vs_currencies": "usd"},
            )
            resp.raise_for_status()
            return (resp.json().get("solana") or {}).get("usd") or None
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"CoinGecko SOL price failed: {type(e).__name__} {e}")
            return None


class JupiterQuotePriceProvider(PriceProvider):
    """Prices a token from the aggregator's 1 SOL quote, converted to USD."""

    name = "jupiter"

    def __init__(self, jupiter, sol_price_source: Optional[CoinGeckoPriceProvider] = None):
        self.jupiter = jupiter
        self.sol_price_source = sol_price_source

    async def get_price(self, address: str, decimals: int = DEFAULT_DECIMALS) -> Optional[float]:
        quote = await self.jupiter.get_quote(SOL_MINT, address, LAMPORTS_PER_SOL, 100)
        if quote is None:
            return None

        tokens_received = int(quote.out_amount) / 10 ** decimals
        if tokens_received <= 0:
            return None

        sol_price = None
        if self.sol_price_source is not None:
            sol_price = await self.sol_price_source.get_sol_price()
        return (1 / tokens_received) * (sol_price or FALLBACK_SOL_PRICE)
