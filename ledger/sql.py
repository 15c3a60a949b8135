# ledger/sql.py
from datetime import timezone
from typing import Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine

from db import models, make_sessionmaker
from ledger.errors import DuplicateKeyError, InvariantViolation
from ledger.schemas import (
    TokenBalance,
    TokenBalanceUpsert,
    TradingSettings,
    TradingSettingsUpdate,
    Transaction,
    TransactionCreate,
    User,
    UserCreate,
    utcnow,
)
from ledger.store import (
    LedgerStore,
    check_transaction_changes,
    check_user_changes,
    confirmed_at_for,
    settings_changes,
)
from utils.locks import KeyedLocks


def _aware(value):
    # sqlite hands datetimes back without tzinfo
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _user(row: models.User) -> User:
    return User(
        id=row.id,
        telegram_id=row.telegram_id,
        username=row.username,
        first_name=row.first_name,
        last_name=row.last_name,
        wallet_address=row.wallet_address,
        wallet_private_key=row.wallet_private_key,
        is_active=row.is_active,
        created_at=_aware(row.created_at),
    )


def _transaction(row: models.Transaction) -> Transaction:
    return Transaction(
        id=row.id,
        user_id=row.user_id,
        signature=row.signature,
        type=row.type,
        token_address=row.token_address,
        token_symbol=row.token_symbol,
        token_name=row.token_name,
        amount=row.amount,
        sol_amount=row.sol_amount,
        price=row.price,
        status=row.status,
        slippage=row.slippage,
        fees=row.fees,
        metadata=row.extra or {},
        created_at=_aware(row.created_at),
        confirmed_at=_aware(row.confirmed_at),
    )


def _balance(row: models.TokenBalance) -> TokenBalance:
    return TokenBalance(
        id=row.id,
        user_id=row.user_id,
        token_address=row.token_address,
        token_symbol=row.token_symbol,
        token_name=row.token_name,
        balance=row.balance,
        last_updated=_aware(row.last_updated),
    )


def _settings(row: models.TradingSettings) -> TradingSettings:
    return TradingSettings(
        id=row.id,
        user_id=row.user_id,
        default_slippage=row.default_slippage,
        max_transaction_amount=row.max_transaction_amount,
        auto_confirm=row.auto_confirm,
        notifications=row.notifications,
    )


class SqlStore(LedgerStore):
    """LedgerStore backed by SQLAlchemy; one session and commit per operation."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.Session = make_sessionmaker(engine)
        self._locks = KeyedLocks()

    async def close(self):
        await self.engine.dispose()

    # ---------- Users ----------

    async def get_user(self, user_id: str) -> Optional[User]:
        async with self.Session() as session:
            row = await session.get(models.User, user_id)
            return _user(row) if row else None

    async def get_user_by_telegram_id(self, telegram_id) -> Optional[User]:
        async with self.Session() as session:
            row = await session.scalar(
                select(models.User).where(models.User.telegram_id == str(telegram_id))
            )
            return _user(row) if row else None

    async def create_user(self, data: UserCreate) -> User:
        if (data.wallet_address is None) != (data.wallet_private_key is None):
            raise InvariantViolation("wallet_address and wallet_private_key must be set together")

        user = User(**data.model_dump())
        async with self.Session() as session:
            session.add(models.User(**user.model_dump()))
            try:
                await session.commit()
            except IntegrityError:
                raise DuplicateKeyError(f"User with telegram id {data.telegram_id} already exists")

        logger.info(f"Created user {user.id} for telegram id {user.telegram_id}")
        return user

    async def update_user(self, user_id: str, **changes) -> Optional[User]:
        async with self._locks.hold(("user", user_id)):
            async with self.Session() as session:
                row = await session.get(models.User, user_id)
                if row is None:
                    return None

                check_user_changes(_user(row), changes)
                updated = User.model_validate({**_user(row).model_dump(), **changes})
                for field in changes:
                    setattr(row, field, getattr(updated, field))
                await session.commit()
                return _user(row)

    # ---------- Transactions ----------

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        async with self.Session() as session:
            row = await session.get(models.Transaction, transaction_id)
            return _transaction(row) if row else None

    async def get_transaction_by_signature(self, signature: str) -> Optional[Transaction]:
        async with self.Session() as session:
            row = await session.scalar(
                select(models.Transaction).where(models.Transaction.signature == signature)
            )
            return _transaction(row) if row else None

    async def get_user_transactions(self, user_id: str, limit: int = 50) -> list[Transaction]:
        async with self.Session() as session:
            rows = (await session.execute(
                select(models.Transaction)
                .where(models.Transaction.user_id == user_id)
                .order_by(models.Transaction.created_at.desc())
                .limit(limit)
            )).scalars().all()
            return [_transaction(row) for row in rows]

    async def create_transaction(self, data: TransactionCreate) -> Transaction:
        transaction = Transaction(**data.model_dump())
        values = transaction.model_dump()
        values["extra"] = values.pop("metadata")
        values["type"] = transaction.type.value
        values["status"] = transaction.status.value

        async with self.Session() as session:
            if await session.get(models.User, data.user_id) is None:
                raise InvariantViolation(f"Unknown user {data.user_id}")

            session.add(models.Transaction(**values))
            try:
                await session.commit()
            except IntegrityError:
                raise DuplicateKeyError(f"Transaction with signature {data.signature} already exists")

        return transaction

    async def update_transaction(self, transaction_id: str, **changes) -> Optional[Transaction]:
        changes = check_transaction_changes(changes)

        async with self._locks.hold(("transaction", transaction_id)):
            async with self.Session() as session:
                row = await session.get(models.Transaction, transaction_id)
                if row is None:
                    return None

                current = _transaction(row)
                values = {**current.model_dump(), **changes}
                values["confirmed_at"] = confirmed_at_for(current, changes.get("status"))
                updated = Transaction.model_validate(values)

                for field in (*changes.keys(), "confirmed_at"):
                    value = getattr(updated, field)
                    if field == "metadata":
                        row.extra = value
                    elif field in ("type", "status"):
                        setattr(row, field, value.value)
                    else:
                        setattr(row, field, value)
                try:
                    await session.commit()
                except IntegrityError:
                    raise DuplicateKeyError(f"Transaction with signature {updated.signature} already exists")
                return updated

    # ---------- Token balances ----------

    async def get_user_token_balances(self, user_id: str) -> list[TokenBalance]:
        async with self.Session() as session:
            rows = (await session.execute(
                select(models.TokenBalance).where(models.TokenBalance.user_id == user_id)
            )).scalars().all()
            return [_balance(row) for row in rows]

    async def get_token_balance(self, user_id: str, token_address: str) -> Optional[TokenBalance]:
        async with self.Session() as session:
            row = await session.scalar(
                select(models.TokenBalance).where(
                    models.TokenBalance.user_id == user_id,
                    models.TokenBalance.token_address == token_address,
                )
            )
            return _balance(row) if row else None

    async def create_or_update_token_balance(self, data: TokenBalanceUpsert) -> TokenBalance:
        if data.balance < 0:
            raise InvariantViolation(f"Negative balance {data.balance} for {data.token_address}")

        async with self._locks.hold(("balance", (data.user_id, data.token_address))):
            async with self.Session() as session:
                row = await session.scalar(
                    select(models.TokenBalance).where(
                        models.TokenBalance.user_id == data.user_id,
                        models.TokenBalance.token_address == data.token_address,
                    )
                )
                if row is None:
                    row = models.TokenBalance(**TokenBalance(**data.model_dump()).model_dump())
                    session.add(row)
                else:
                    for field, value in data.model_dump(exclude_unset=True).items():
                        setattr(row, field, value)
                    row.last_updated = utcnow()
                await session.commit()
                return _balance(row)

    # ---------- Trading settings ----------

    async def get_trading_settings(self, user_id: str) -> Optional[TradingSettings]:
        async with self.Session() as session:
            row = await session.scalar(
                select(models.TradingSettings).where(models.TradingSettings.user_id == user_id)
            )
            return _settings(row) if row else None

    async def create_or_update_trading_settings(
        self, user_id: str, update: Optional[TradingSettingsUpdate] = None, **fields
    ) -> TradingSettings:
        changes = settings_changes(update, fields)

        async with self._locks.hold(("settings", user_id)):
            async with self.Session() as session:
                row = await session.scalar(
                    select(models.TradingSettings).where(models.TradingSettings.user_id == user_id)
                )
                if row is None:
                    row = models.TradingSettings(**TradingSettings(user_id=user_id, **changes).model_dump())
                    session.add(row)
                else:
                    for field, value in changes.items():
                        setattr(row, field, value)
                await session.commit()
                return _settings(row)
