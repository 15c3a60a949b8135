# main.py
import asyncio

import httpx

from bot import dp, make_bot
from config import config
from jupiter import JupiterClient
from ledger import open_store
from market import (
    BirdeyePriceProvider,
    CoinGeckoPriceProvider,
    JupiterQuotePriceProvider,
    JupiterTokenDirectory,
    MarketCache,
)
from solana_rpc import SolanaRpc
from trading import TradeOrchestrator
from utils.log import logger, setup_logger
from wallet import WalletManager


def build_orchestrator(client: httpx.AsyncClient, store, rpc: SolanaRpc) -> TradeOrchestrator:
    wallet = WalletManager()
    jupiter = JupiterClient(
        client,
        rpc,
        wallet,
        base_url=config.jupiter_api_url,
        max_retry=config.max_retry,
        priority_fee_micro_lamports=config.priority_fee_micro_lamports,
    )

    coingecko = CoinGeckoPriceProvider(client, config.coingecko_api_url)
    market = MarketCache(
        JupiterTokenDirectory(client, config.jupiter_tokens_url),
        [
            BirdeyePriceProvider(client, config.birdeye_api_url, config.birdeye_api_key),
            coingecko,
            JupiterQuotePriceProvider(jupiter, coingecko),
        ],
        ttl=config.cache_ttl,
        sol_price_source=coingecko,
    )

    return TradeOrchestrator(
        store,
        wallet,
        market,
        jupiter,
        rpc,
        price_impact_warning=config.price_impact_warning,
        price_impact_limit=config.price_impact_limit,
        quote_ttl=config.quote_ttl,
        confirm_timeout=config.confirm_timeout,
    )


async def main():
    setup_logger(config.log_level)
    logger.info("🚀 Bot starting...")

    if not config.bot_token:
        logger.critical("TELEGRAM_BOT_TOKEN is not set")
        return

    store = await open_store(config.database_path)
    logger.info(f"✅ Ledger ready ({type(store).__name__})")

    rpc = SolanaRpc(config.solana_rpc_url, config.solana_network)
    logger.info(f"🌐 Solana {config.solana_network}: {config.solana_rpc_url}")

    limits = httpx.Limits(
        max_connections=8,
        max_keepalive_connections=2
    )

    timeout = httpx.Timeout(config.http_timeout)

    async with httpx.AsyncClient(
        limits=limits,
        timeout=timeout,
        http2=False
    ) as client:
        orchestrator = build_orchestrator(client, store, rpc)
        bot = make_bot(config.bot_token)
        try:
            await dp.start_polling(bot, orchestrator=orchestrator)
        finally:
            await bot.session.close()
            await rpc.close()
            await store.close()
            logger.info("👋 Bot stopped")


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
