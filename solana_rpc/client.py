# solana_rpc/client.py
import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from loguru import logger
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TokenAccountOpts, TxOpts
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction_status import TransactionConfirmationStatus

from config import LAMPORTS_PER_SOL

TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
SEND_MAX_RETRIES = 3


class ConfirmationOutcome(str, Enum):
    CONFIRMED = "confirmed"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass
class TxStatus:
    confirmed: bool
    error: Optional[str] = None
    found: bool = True


@dataclass
class TokenAccount:
    address: str
    mint: str
    balance: str


class SolanaRpc:
    """Thin async adapter over the Solana JSON-RPC endpoint."""

    def __init__(self, rpc_url: str, network: str = "mainnet", client: Optional[AsyncClient] = None):
        self.rpc_url = rpc_url
        self.network = network
        self.client = client or AsyncClient(rpc_url, commitment=Confirmed)

    async def close(self):
        await self.client.close()

    def is_devnet(self) -> bool:
        return self.network == "devnet"

    def explorer_url(self, signature: str) -> str:
        cluster = "?cluster=devnet" if self.is_devnet() else ""
        return f"https://solscan.io/tx/{signature}{cluster}"

    async def get_balance(self, address: str) -> float:
        """SOL balance; 0 when the RPC call fails."""
        try:
            resp = await self.client.get_balance(Pubkey.from_string(address))
            return resp.value / LAMPORTS_PER_SOL
        except Exception as e:
            logger.error(f"get_balance failed for {address}: {type(e).__name__} {e}")
            return 0.0

    async def get_all_token_balances(self, address: str) -> list[TokenAccount]:
        try:
            resp = await self.client.get_token_accounts_by_owner_json_parsed(
                Pubkey.from_string(address),
                TokenAccountOpts(program_id=TOKEN_PROGRAM_ID),
            )
        except Exception as e:
            logger.error(f"get_token_accounts failed for {address}: {type(e).__name__} {e}")
            return []

        balances = []
        for account in resp.value:
            info = account.account.data.parsed["info"]
            ui_amount = info["tokenAmount"].get("uiAmount") or 0
            if ui_amount > 0:
                balances.append(TokenAccount(
                    address=str(account.pubkey),
                    mint=info["mint"],
                    balance=str(ui_amount),
                ))
        return balances

    async def get_latest_blockhash(self) -> str:
        resp = await self.client.get_latest_blockhash()
        return str(resp.value.blockhash)

    async def send_raw_transaction(self, raw_transaction: bytes, max_retries: int = SEND_MAX_RETRIES) -> str:
        """Submit signed bytes and return the signature; raises when the node rejects them."""
        resp = await self.client.send_raw_transaction(
            raw_transaction,
            opts=TxOpts(skip_preflight=False, preflight_commitment=Confirmed, max_retries=max_retries),
        )
        signature = str(resp.value)
        logger.info(f"📤 Submitted transaction {signature}")
        return signature

    async def get_transaction_status(self, signature: str) -> TxStatus:
        try:
            resp = await self.client.get_signature_statuses([Signature.from_string(signature)])
        except Exception as e:
            logger.warning(f"get_signature_statuses failed for {signature}: {type(e).__name__} {e}")
            return TxStatus(confirmed=False, error="Error checking status", found=False)

        status = resp.value[0] if resp.value else None
        if status is None:
            return TxStatus(confirmed=False, found=False)

        if status.err is not None:
            return TxStatus(confirmed=False, error=f"Transaction failed: {status.err}")

        confirmed = status.confirmation_status in (
            TransactionConfirmationStatus.Confirmed,
            TransactionConfirmationStatus.Finalized,
        )
        return TxStatus(confirmed=confirmed)

    async def wait_for_confirmation(
        self,
        signature: str,
        timeout: float = 60.0,
        poll_interval: float = 1.0,
    ) -> ConfirmationOutcome:
        """Poll the signature until confirmed, failed on chain, or ``timeout`` runs out."""
        deadline = time.monotonic() + timeout

        while True:
            status = await self.get_transaction_status(signature)
            if status.confirmed:
                logger.success(f"✅ Transaction {signature} confirmed")
                return ConfirmationOutcome.CONFIRMED
            if status.found and status.error:
                logger.error(f"❌ Transaction {signature} failed on chain: {status.error}")
                return ConfirmationOutcome.FAILED

            if time.monotonic() + poll_interval > deadline:
                logger.warning(f"Confirmation of {signature} not observed within {timeout:.0f}s")
                return ConfirmationOutcome.UNKNOWN
            await asyncio.sleep(poll_interval)

    async def request_airdrop(self, address: str, sol_amount: float) -> str:
        if not self.is_devnet():
            raise RuntimeError("Airdrops are only available on devnet")

        resp = await self.client.request_airdrop(
            Pubkey.from_string(address), int(sol_amount * LAMPORTS_PER_SOL)
        )
        signature = str(resp.value)
        logger.info(f"🪂 Airdrop of {sol_amount} SOL to {address}: {signature}")
        return signature
