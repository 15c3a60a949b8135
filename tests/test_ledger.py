"""Ledger store behaviour, run against both the in-memory and the SQL store."""

import asyncio
from decimal import Decimal

import pytest

from ledger import (
    DuplicateKeyError,
    InvariantViolation,
    TokenBalanceUpsert,
    TradingSettingsUpdate,
    TransactionCreate,
    TransactionStatus,
    TransactionType,
    UserCreate,
)

from conftest import USDC_MINT


async def _user(store, telegram_id=42):
    return await store.create_user(UserCreate(telegram_id=telegram_id, username="alice"))


def _tx(user_id, **overrides):
    base = dict(
        user_id=user_id,
        type=TransactionType.BUY,
        token_address=USDC_MINT,
        token_symbol="USDC",
        amount="9.000000",
        sol_amount="0.05",
        signature=None,
    )
    base.update(overrides)
    return TransactionCreate(**base)


# ====================================================================
# USERS
# ====================================================================

class TestUsers:
    async def test_create_and_lookup_by_telegram_id(self, store):
        user = await _user(store)

        assert user.telegram_id == "42"
        assert user.is_active is True
        assert user.has_wallet is False
        assert (await store.get_user(user.id)).username == "alice"
        assert (await store.get_user_by_telegram_id(42)).id == user.id
        assert (await store.get_user_by_telegram_id("42")).id == user.id

    async def test_unknown_user_is_none(self, store):
        assert await store.get_user("missing") is None
        assert await store.get_user_by_telegram_id(999) is None
        assert await store.update_user("missing", username="x") is None

    async def test_duplicate_telegram_id(self, store):
        await _user(store)
        with pytest.raises(DuplicateKeyError):
            await _user(store)

    async def test_update_is_partial(self, store):
        user = await _user(store)
        updated = await store.update_user(user.id, first_name="Alice")

        assert updated.first_name == "Alice"
        assert updated.username == "alice"
        assert updated.created_at == user.created_at

    async def test_wallet_fields_set_together(self, store):
        user = await _user(store)
        with pytest.raises(InvariantViolation):
            await store.update_user(user.id, wallet_address="addr")

        updated = await store.update_user(user.id, wallet_address="addr", wallet_private_key="key")
        assert updated.has_wallet

    async def test_immutable_fields(self, store):
        user = await _user(store)
        with pytest.raises(InvariantViolation):
            await store.update_user(user.id, telegram_id="7")

    async def test_unknown_fields_rejected(self, store):
        user = await _user(store)
        with pytest.raises(InvariantViolation):
            await store.update_user(user.id, nickname="al")
        assert (await store.get_user(user.id)).username == "alice"

        tx = await store.create_transaction(_tx(user.id))
        with pytest.raises(InvariantViolation):
            await store.update_transaction(tx.id, memo="x")

    async def test_returned_copies_do_not_leak(self, store):
        user = await _user(store)
        user.username = "mallory"
        assert (await store.get_user(user.id)).username == "alice"


# ====================================================================
# TRANSACTIONS
# ====================================================================

class TestTransactions:
    async def test_created_pending_without_confirmed_at(self, store):
        user = await _user(store)
        tx = await store.create_transaction(_tx(user.id, signature="sig-1"))

        assert tx.status == TransactionStatus.PENDING
        assert tx.confirmed_at is None
        assert tx.amount == Decimal("9.000000000")
        assert (await store.get_transaction_by_signature("sig-1")).id == tx.id

    async def test_confirm_stamps_confirmed_at(self, store):
        user = await _user(store)
        tx = await store.create_transaction(_tx(user.id))

        confirmed = await store.update_transaction(tx.id, status=TransactionStatus.CONFIRMED)
        assert confirmed.status == TransactionStatus.CONFIRMED
        assert confirmed.confirmed_at is not None
        assert confirmed.confirmed_at >= tx.created_at

        again = await store.update_transaction(tx.id, status="confirmed")
        assert again.confirmed_at == confirmed.confirmed_at

    async def test_failed_keeps_confirmed_at_empty(self, store):
        user = await _user(store)
        tx = await store.create_transaction(_tx(user.id))

        failed = await store.update_transaction(tx.id, status=TransactionStatus.FAILED)
        assert failed.status == TransactionStatus.FAILED
        assert failed.confirmed_at is None

    async def test_confirmed_is_terminal(self, store):
        user = await _user(store)
        tx = await store.create_transaction(_tx(user.id))
        await store.update_transaction(tx.id, status=TransactionStatus.CONFIRMED)

        with pytest.raises(InvariantViolation):
            await store.update_transaction(tx.id, status=TransactionStatus.PENDING)

    async def test_confirmed_at_cannot_be_written(self, store):
        user = await _user(store)
        tx = await store.create_transaction(_tx(user.id))

        updated = await store.update_transaction(tx.id, confirmed_at=tx.created_at, fees="0.000005")
        assert updated.confirmed_at is None
        assert updated.fees == Decimal("0.000005000")

    async def test_partial_update_keeps_other_fields(self, store):
        user = await _user(store)
        tx = await store.create_transaction(_tx(user.id, metadata={"priceImpact": "0.42"}))

        updated = await store.update_transaction(tx.id, signature="sig-late")
        assert updated.signature == "sig-late"
        assert updated.metadata == {"priceImpact": "0.42"}
        assert updated.amount == tx.amount

    async def test_duplicate_signature(self, store):
        user = await _user(store)
        await store.create_transaction(_tx(user.id, signature="sig-1"))
        with pytest.raises(DuplicateKeyError):
            await store.create_transaction(_tx(user.id, signature="sig-1"))

    async def test_requires_existing_user(self, store):
        with pytest.raises(InvariantViolation):
            await store.create_transaction(_tx("nobody"))

    async def test_history_newest_first_with_limit(self, store):
        user = await _user(store)
        ids = []
        for n in range(5):
            tx = await store.create_transaction(_tx(user.id, signature=f"sig-{n}"))
            ids.append(tx.id)
            await asyncio.sleep(0.001)

        history = await store.get_user_transactions(user.id, limit=3)
        assert [tx.id for tx in history] == ids[::-1][:3]

    async def test_history_is_per_user(self, store):
        alice = await _user(store, 1)
        bob = await _user(store, 2)
        await store.create_transaction(_tx(alice.id))

        assert await store.get_user_transactions(bob.id) == []


# ====================================================================
# TOKEN BALANCES
# ====================================================================

class TestTokenBalances:
    async def test_upsert_keeps_single_record(self, store):
        user = await _user(store)
        first = await store.create_or_update_token_balance(
            TokenBalanceUpsert(user_id=user.id, token_address=USDC_MINT, token_symbol="USDC", balance="9")
        )
        second = await store.create_or_update_token_balance(
            TokenBalanceUpsert(user_id=user.id, token_address=USDC_MINT, balance="12.5")
        )

        assert second.id == first.id
        assert second.balance == Decimal("12.5")
        assert second.token_symbol == "USDC"
        assert second.last_updated >= first.last_updated
        assert len(await store.get_user_token_balances(user.id)) == 1

    async def test_negative_balance_rejected(self, store):
        user = await _user(store)
        with pytest.raises(InvariantViolation):
            await store.create_or_update_token_balance(
                TokenBalanceUpsert(user_id=user.id, token_address=USDC_MINT, balance="-1")
            )

    async def test_large_balance_keeps_all_nine_places(self, store):
        user = await _user(store)
        await store.create_or_update_token_balance(
            TokenBalanceUpsert(user_id=user.id, token_address=USDC_MINT, balance=Decimal("123456789.123456789"))
        )

        stored = await store.get_token_balance(user.id, USDC_MINT)
        assert stored.balance == Decimal("123456789.123456789")

    async def test_large_transaction_amount_is_exact(self, store):
        user = await _user(store)
        tx = await store.create_transaction(_tx(user.id, amount="987654321987.123456789"))

        assert (await store.get_transaction(tx.id)).amount == Decimal("987654321987.123456789")

    async def test_missing_balance_is_none(self, store):
        user = await _user(store)
        assert await store.get_token_balance(user.id, USDC_MINT) is None


# ====================================================================
# TRADING SETTINGS
# ====================================================================

class TestTradingSettings:
    async def test_defaults_on_first_write(self, store):
        user = await _user(store)
        assert await store.get_trading_settings(user.id) is None

        settings = await store.create_or_update_trading_settings(user.id)
        assert settings.default_slippage == Decimal("1")
        assert settings.max_transaction_amount == Decimal("1")
        assert settings.auto_confirm is False
        assert settings.notifications is True
        assert settings.slippage_bps == 100

    async def test_partial_merge(self, store):
        user = await _user(store)
        await store.create_or_update_trading_settings(user.id, default_slippage="2")
        settings = await store.create_or_update_trading_settings(
            user.id, TradingSettingsUpdate(auto_confirm=True)
        )

        assert settings.default_slippage == Decimal("2")
        assert settings.auto_confirm is True
        assert settings.notifications is True

    async def test_single_record_per_user(self, store):
        user = await _user(store)
        first = await store.create_or_update_trading_settings(user.id)
        second = await store.create_or_update_trading_settings(user.id, notifications=False)
        assert first.id == second.id

    async def test_unknown_field_rejected(self, store):
        user = await _user(store)
        with pytest.raises(ValueError):
            await store.create_or_update_trading_settings(user.id, leverage=10)

    async def test_concurrent_merges_keep_both_fields(self, store):
        user = await _user(store)
        await store.create_or_update_trading_settings(user.id)

        await asyncio.gather(
            store.create_or_update_trading_settings(user.id, auto_confirm=True),
            store.create_or_update_trading_settings(user.id, default_slippage="3"),
        )

        settings = await store.get_trading_settings(user.id)
        assert settings.auto_confirm is True
        assert settings.default_slippage == Decimal("3")
