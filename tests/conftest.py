"""Shared fixtures for the trading bot test suite."""

import os
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set env BEFORE importing config so tests never talk to mainnet defaults
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456:ABC-DEF")
os.environ.setdefault("SOLANA_NETWORK", "devnet")
os.environ.setdefault("WHITELISTED_USER_IDS", "")
os.environ.setdefault("BIRDEYE_API_KEY", "")
os.environ.setdefault("DATABASE_PATH", "")

USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
BONK_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

@pytest.fixture(params=["memory", "sql"])
async def store(request, tmp_path):
    """Runs a test once against each LedgerStore implementation."""
    from ledger import open_store

    if request.param == "memory":
        store = await open_store(None)
    else:
        store = await open_store(str(tmp_path / "ledger.db"))
    yield store
    await store.close()


# ---------------------------------------------------------------------------
# Wallets
# ---------------------------------------------------------------------------

@pytest.fixture
def wallet_manager():
    from wallet import WalletManager
    return WalletManager()


@pytest.fixture
def wallet_info(wallet_manager):
    return wallet_manager.generate_wallet()


# ---------------------------------------------------------------------------
# Mocked external collaborators
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_rpc():
    from solana_rpc import ConfirmationOutcome

    rpc = MagicMock()
    rpc.network = "devnet"
    rpc.is_devnet = MagicMock(return_value=True)
    rpc.explorer_url = MagicMock(side_effect=lambda sig: f"https://solscan.io/tx/{sig}?cluster=devnet")
    rpc.get_balance = AsyncMock(return_value=2.0)
    rpc.get_all_token_balances = AsyncMock(return_value=[])
    rpc.wait_for_confirmation = AsyncMock(return_value=ConfirmationOutcome.CONFIRMED)
    rpc.request_airdrop = AsyncMock(return_value="airdrop-sig")
    rpc.send_raw_transaction = AsyncMock(return_value="sig-123")
    return rpc


@pytest.fixture
def mock_market():
    from market import TokenInfo

    infos = {
        USDC_MINT: TokenInfo(address=USDC_MINT, symbol="USDC", name="USD Coin", decimals=6),
        BONK_MINT: TokenInfo(address=BONK_MINT, symbol="BONK", name="Bonk", decimals=5),
    }

    market = MagicMock()
    market.get_token_info = AsyncMock(
        side_effect=lambda address: infos.get(address, TokenInfo.placeholder(address))
    )
    market.get_token_price = AsyncMock(return_value=1.0)
    market.get_sol_price = AsyncMock(return_value=150.0)
    market.get_token_by_symbol = AsyncMock(
        side_effect=lambda symbol: {"BONK": BONK_MINT}.get(symbol.upper())
    )
    return market


def make_quote(input_mint, output_mint, in_amount, out_amount, impact="0.42"):
    from jupiter import Quote

    return Quote.model_validate({
        "inputMint": input_mint,
        "inAmount": str(in_amount),
        "outputMint": output_mint,
        "outAmount": str(out_amount),
        "otherAmountThreshold": str(out_amount),
        "swapMode": "ExactIn",
        "slippageBps": 100,
        "priceImpactPct": impact,
        "routePlan": [],
    })


@pytest.fixture
def mock_jupiter():
    from config import SOL_MINT
    from jupiter import SwapResult

    jupiter = MagicMock()
    quote = make_quote(SOL_MINT, USDC_MINT, 50_000_000, 9_000_000)
    jupiter.get_quote = AsyncMock(return_value=quote)
    jupiter.execute_swap = AsyncMock(return_value=SwapResult(success=True, signature="sig-123", quote=quote))
    return jupiter
