# jupiter/client.py
import asyncio
import base64
from typing import Optional

import httpx
from loguru import logger
from pydantic import ValidationError

from config import SOL_DECIMALS, SOL_MINT
from jupiter.models import Quote, SwapResult, SwapTransaction
from solana_rpc import SolanaRpc
from utils import short
from utils.amounts import format_amount, to_smallest_unit
from wallet import InvalidKeyFormat, WalletManager

# swaps above this impact are refused before anything is signed
MAX_PRICE_IMPACT_PCT = 10.0
DEFAULT_SLIPPAGE_BPS = 100


class JupiterClient:
    """
    Quote and swap calls against the Jupiter v6 aggregator.

    Nothing here raises across the public surface: lookups return ``None`` and
    ``execute_swap`` returns a ``SwapResult`` carrying the error text and, when
    one was obtained, the quote.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        rpc: SolanaRpc,
        wallet: WalletManager,
        base_url: str = "https://quote-api.jup.ag/v6",
        max_retry: int = 3,
        retry_backoff: float = 1.0,
        priority_fee_micro_lamports: int = 2_000_000,
    ):
        self.client = client
        self.rpc = rpc
        self.wallet = wallet
        self.base_url = base_url.rstrip("/")
        self.max_retry = max(1, max_retry)
        self.retry_backoff = retry_backoff
        self.priority_fee_micro_lamports = priority_fee_micro_lamports

    async def _backoff(self, attempt: int) -> bool:
        if attempt + 1 >= self.max_retry:
            return False
        await asyncio.sleep(self.retry_backoff * 2 ** attempt)
        return True

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount,
        slippage_bps: int = DEFAULT_SLIPPAGE_BPS,
    ) -> Optional[Quote]:
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": int(slippage_bps),
            "onlyDirectRoutes": "false",
            "asLegacyTransaction": "true",
        }

        for attempt in range(self.max_retry):
            try:
                resp = await self.client.get(f"{self.base_url}/quote", params=params)
            except httpx.TimeoutException:
                logger.warning(f"Jupiter quote timeout (attempt {attempt + 1}/{self.max_retry})")
                if await self._backoff(attempt):
                    continue
                return None
            except httpx.HTTPError as e:
                logger.error(f"Jupiter quote request failed: {type(e).__name__} {e}")
                return None

            if resp.status_code == 429 or resp.status_code >= 500:
                logger.warning(
                    f"Jupiter quote returned {resp.status_code} (attempt {attempt + 1}/{self.max_retry})"
                )
                if await self._backoff(attempt):
                    continue
                return None

            if resp.status_code != 200:
                logger.error(f"Jupiter quote returned {resp.status_code}: {resp.text[:200]}")
                return None

            try:
                quote = Quote.model_validate(resp.json())
            except (ValueError, ValidationError) as e:
                logger.error(f"Jupiter quote has unexpected shape: {e}")
                return None

            logger.debug(
                f"Quote {short(input_mint)} -> {short(output_mint)}: in={quote.in_amount} "
                f"out={quote.out_amount} impact={quote.price_impact_pct}%"
            )
            return quote

        return None

    async def get_swap_transaction(
        self,
        quote: Quote,
        user_public_key: str,
        **options,
    ) -> Optional[SwapTransaction]:
        payload = {
            "quoteResponse": quote.to_api(),
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": True,
            "useSharedAccounts": True,
            "asLegacyTransaction": True,
            "computeUnitPriceMicroLamports": self.priority_fee_micro_lamports,
            **options,
        }

        try:
            resp = await self.client.post(f"{self.base_url}/swap", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Jupiter swap request failed: {type(e).__name__} {e}")
            return None

        if resp.status_code != 200:
            logger.error(f"Jupiter swap returned {resp.status_code}: {resp.text[:200]}")
            return None

        try:
            return SwapTransaction.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Jupiter swap response has unexpected shape: {e}")
            return None

    async def execute_swap(
        self,
        input_mint: str,
        output_mint: str,
        amount,
        private_key: str,
        slippage_bps: int = DEFAULT_SLIPPAGE_BPS,
    ) -> SwapResult:
        quote = None
        try:
            try:
                keypair = self.wallet.derive_keypair(private_key)
            except InvalidKeyFormat as e:
                return SwapResult(success=False, error=str(e))
            public_key = str(keypair.pubkey())

            quote = await self.get_quote(input_mint, output_mint, amount, slippage_bps)
            if quote is None:
                return SwapResult(success=False, error="Unable to get quote for this swap")

            impact = quote.price_impact
            if impact > MAX_PRICE_IMPACT_PCT:
                logger.warning(f"Refusing swap for {public_key}: price impact {impact:.2f}%")
                return SwapResult(
                    success=False,
                    error=f"High price impact: {impact:.2f}%. This swap may not be profitable.",
                    quote=quote,
                )

            swap = await self.get_swap_transaction(quote, public_key)
            if swap is None:
                return SwapResult(success=False, error="Unable to create swap transaction", quote=quote)

            try:
                signed = self.wallet.sign(base64.b64decode(swap.swap_transaction), keypair)
            except ValueError as e:
                logger.error(f"Signing swap for {public_key} failed: {e}")
                return SwapResult(success=False, error=f"Unable to sign swap transaction: {e}", quote=quote)

            try:
                signature = await self.rpc.send_raw_transaction(signed)
            except Exception as e:
                logger.error(f"Submitting swap for {public_key} failed: {type(e).__name__} {e}")
                return SwapResult(success=False, error=f"Transaction submission failed: {e}", quote=quote)

            logger.success(f"Swap {short(input_mint)} -> {short(output_mint)} sent for {public_key}: {signature}")
            return SwapResult(success=True, signature=signature, quote=quote)

        except Exception as e:
            logger.exception(f"Unexpected error executing swap: {e}")
            return SwapResult(success=False, error=str(e) or "Unknown error occurred", quote=quote)

    async def buy_token(
        self,
        token_mint: str,
        sol_amount,
        private_key: str,
        slippage_bps: int = DEFAULT_SLIPPAGE_BPS,
    ) -> SwapResult:
        lamports = to_smallest_unit(sol_amount, SOL_DECIMALS)
        return await self.execute_swap(SOL_MINT, token_mint, lamports, private_key, slippage_bps)

    async def sell_token(
        self,
        token_mint: str,
        token_amount,
        decimals: int,
        private_key: str,
        slippage_bps: int = DEFAULT_SLIPPAGE_BPS,
    ) -> SwapResult:
        raw_amount = to_smallest_unit(token_amount, decimals)
        return await self.execute_swap(token_mint, SOL_MINT, raw_amount, private_key, slippage_bps)

    @staticmethod
    def format_amount(raw_amount, decimals: int = SOL_DECIMALS) -> str:
        return format_amount(raw_amount, decimals)
