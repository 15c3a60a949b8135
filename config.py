# config.py
from typing import Optional

from pydantic import BaseModel, field_validator, model_validator
from os import getenv
from dotenv import load_dotenv

load_dotenv()

MAINNET_RPC_URL = "https://api.mainnet-beta.solana.com"
DEVNET_RPC_URL = "https://api.devnet.solana.com"


class Config(BaseModel):
    bot_token: Optional[str] = None
    whitelisted_user_ids: list[int] = []
    solana_network: str = ""
    solana_rpc_url: str = ""
    jupiter_api_url: str = "https://quote-api.jup.ag/v6"
    jupiter_tokens_url: str = "https://tokens.jup.ag"
    birdeye_api_key: Optional[str] = None
    birdeye_api_url: str = "https://public-api.birdeye.so"
    coingecko_api_url: str = "https://api.coingecko.com/api/v3"
    database_path: Optional[str] = None
    log_level: str = "INFO"
    cache_ttl: float = 60.0
    http_timeout: float = 15.0
    max_retry: int = 3
    confirm_timeout: float = 60.0
    quote_ttl: float = 60.0
    price_impact_warning: float = 5.0
    price_impact_limit: float = 10.0
    priority_fee_micro_lamports: int = 2_000_000

    @field_validator("whitelisted_user_ids", mode="before")
    @classmethod
    def parse_user_ids(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [int(x.strip()) for x in value.split(",") if x.strip()]
        return value

    @field_validator("birdeye_api_key", "database_path", "bot_token", mode="before")
    @classmethod
    def empty_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def resolve_network(self):
        # explicit SOLANA_NETWORK wins, otherwise infer it from the RPC url
        network = self.solana_network.lower()
        if network not in ("mainnet", "devnet"):
            network = "devnet" if "devnet" in self.solana_rpc_url else "mainnet"
        self.solana_network = network

        if not self.solana_rpc_url:
            self.solana_rpc_url = MAINNET_RPC_URL if network == "mainnet" else DEVNET_RPC_URL
        return self

    @property
    def is_devnet(self) -> bool:
        return self.solana_network == "devnet"


config = Config(
    bot_token=getenv("TELEGRAM_BOT_TOKEN"),
    whitelisted_user_ids=getenv("WHITELISTED_USER_IDS"),
    solana_network=getenv("SOLANA_NETWORK", ""),
    solana_rpc_url=getenv("SOLANA_RPC_URL", ""),
    jupiter_api_url=getenv("JUPITER_API_URL", "https://quote-api.jup.ag/v6"),
    jupiter_tokens_url=getenv("JUPITER_TOKENS_URL", "https://tokens.jup.ag"),
    birdeye_api_key=getenv("BIRDEYE_API_KEY"),
    birdeye_api_url=getenv("BIRDEYE_API_URL", "https://public-api.birdeye.so"),
    coingecko_api_url=getenv("COINGECKO_API_URL", "https://api.coingecko.com/api/v3"),
    database_path=getenv("DATABASE_PATH"),
    log_level=getenv("LOG_LEVEL", "INFO"),
    cache_ttl=float(getenv("CACHE_TTL", 60)),
    http_timeout=float(getenv("HTTP_TIMEOUT", 15)),
    max_retry=int(getenv("MAX_RETRY", 3)),
    confirm_timeout=float(getenv("CONFIRM_TIMEOUT", 60)),
    quote_ttl=float(getenv("QUOTE_TTL", 60)),
    price_impact_warning=float(getenv("PRICE_IMPACT_WARNING", 5)),
    price_impact_limit=float(getenv("PRICE_IMPACT_LIMIT", 10)),
    priority_fee_micro_lamports=int(getenv("PRIORITY_FEE_MICRO_LAMPORTS", 2_000_000)),
)

SOL_MINT = "So11111111111111111111111111111111111111112"
LAMPORTS_PER_SOL = 1_000_000_000
SOL_DECIMALS = 9

TOKEN_SYMBOLS = {
    "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v": "USDC",
    "USDC": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
    "So11111111111111111111111111111111111111112": "WSOL",
    "WSOL": "So11111111111111111111111111111111111111112",
    "SOL": "So11111111111111111111111111111111111111112"
}
