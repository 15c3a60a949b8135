"""SolanaRpc adapter over a mocked solana-py AsyncClient."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from solders.keypair import Keypair
from solders.signature import Signature
from solders.transaction_status import TransactionConfirmationStatus

from solana_rpc import ConfirmationOutcome, SolanaRpc

SIGNATURE = str(Signature.default())
ADDRESS = str(Keypair().pubkey())


def _status(confirmation=TransactionConfirmationStatus.Confirmed, err=None):
    return SimpleNamespace(confirmation_status=confirmation, err=err)


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def rpc(client):
    return SolanaRpc("https://api.devnet.solana.com", "devnet", client=client)


class TestBalances:
    async def test_lamports_to_sol(self, rpc, client):
        client.get_balance = AsyncMock(return_value=SimpleNamespace(value=1_500_000_000))
        assert await rpc.get_balance(ADDRESS) == 1.5

    async def test_rpc_error_reads_as_zero(self, rpc, client):
        client.get_balance = AsyncMock(side_effect=ConnectionError("down"))
        assert await rpc.get_balance(ADDRESS) == 0.0

    async def test_token_accounts_skip_empty(self, rpc, client):
        def account(mint, ui_amount):
            parsed = {"info": {"mint": mint, "tokenAmount": {"uiAmount": ui_amount}}}
            return SimpleNamespace(
                pubkey=Keypair().pubkey(),
                account=SimpleNamespace(data=SimpleNamespace(parsed=parsed)),
            )

        client.get_token_accounts_by_owner_json_parsed = AsyncMock(
            return_value=SimpleNamespace(value=[account("MintA", 12.5), account("MintB", 0)])
        )

        balances = await rpc.get_all_token_balances(ADDRESS)
        assert [(b.mint, b.balance) for b in balances] == [("MintA", "12.5")]


class TestConfirmation:
    async def test_confirmed(self, rpc, client):
        client.get_signature_statuses = AsyncMock(return_value=SimpleNamespace(value=[_status()]))
        assert await rpc.wait_for_confirmation(SIGNATURE, timeout=1, poll_interval=0) == ConfirmationOutcome.CONFIRMED

    async def test_finalized_counts_as_confirmed(self, rpc, client):
        client.get_signature_statuses = AsyncMock(
            return_value=SimpleNamespace(value=[_status(TransactionConfirmationStatus.Finalized)])
        )
        assert (await rpc.get_transaction_status(SIGNATURE)).confirmed

    async def test_on_chain_error_fails(self, rpc, client):
        client.get_signature_statuses = AsyncMock(
            return_value=SimpleNamespace(value=[_status(err="InstructionError")])
        )
        assert await rpc.wait_for_confirmation(SIGNATURE, timeout=1, poll_interval=0) == ConfirmationOutcome.FAILED

    async def test_processed_then_confirmed(self, rpc, client):
        client.get_signature_statuses = AsyncMock(side_effect=[
            SimpleNamespace(value=[None]),
            SimpleNamespace(value=[_status(TransactionConfirmationStatus.Processed)]),
            SimpleNamespace(value=[_status()]),
        ])
        outcome = await rpc.wait_for_confirmation(SIGNATURE, timeout=5, poll_interval=0.01)
        assert outcome == ConfirmationOutcome.CONFIRMED
        assert client.get_signature_statuses.await_count == 3

    async def test_timeout_is_unknown(self, rpc, client):
        client.get_signature_statuses = AsyncMock(return_value=SimpleNamespace(value=[None]))
        outcome = await rpc.wait_for_confirmation(SIGNATURE, timeout=0.05, poll_interval=0.01)
        assert outcome == ConfirmationOutcome.UNKNOWN

    async def test_status_lookup_error_is_not_a_failure(self, rpc, client):
        client.get_signature_statuses = AsyncMock(side_effect=ConnectionError("down"))
        status = await rpc.get_transaction_status(SIGNATURE)
        assert not status.confirmed
        assert not status.found


class TestSubmitAndAirdrop:
    async def test_send_returns_signature(self, rpc, client):
        client.send_raw_transaction = AsyncMock(return_value=SimpleNamespace(value=Signature.default()))
        assert await rpc.send_raw_transaction(b"raw") == SIGNATURE

        opts = client.send_raw_transaction.await_args.kwargs["opts"]
        assert opts.skip_preflight is False
        assert opts.max_retries == 3

    async def test_airdrop_devnet_only(self, client):
        mainnet = SolanaRpc("https://api.mainnet-beta.solana.com", "mainnet", client=client)
        with pytest.raises(RuntimeError):
            await mainnet.request_airdrop(ADDRESS, 1)

    async def test_airdrop_lamports(self, rpc, client):
        client.request_airdrop = AsyncMock(return_value=SimpleNamespace(value=Signature.default()))
        await rpc.request_airdrop(ADDRESS, 1.5)
        assert client.request_airdrop.await_args.args[1] == 1_500_000_000

    def test_explorer_url(self, rpc):
        assert rpc.explorer_url("abc") == "https://solscan.io/tx/abc?cluster=devnet"

    async def test_latest_blockhash(self, rpc, client):
        from solders.hash import Hash

        client.get_latest_blockhash = AsyncMock(
            return_value=SimpleNamespace(value=SimpleNamespace(blockhash=Hash.default()))
        )
        assert await rpc.get_latest_blockhash() == str(Hash.default())
