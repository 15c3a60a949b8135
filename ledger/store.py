# ledger/store.py
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from ledger.errors import InvariantViolation
from ledger.schemas import (
    TokenBalance,
    TokenBalanceUpsert,
    TradingSettings,
    TradingSettingsUpdate,
    Transaction,
    TransactionCreate,
    TransactionStatus,
    User,
    UserCreate,
    utcnow,
)

# fields a partial update may never touch
IMMUTABLE_USER_FIELDS = {"id", "telegram_id", "created_at"}
IMMUTABLE_TRANSACTION_FIELDS = {"id", "user_id", "created_at", "confirmed_at"}


class LedgerStore(ABC):
    """
    Source of truth for users, transactions, token balances and trading settings.

    Every ``update_*`` is a partial merge: fields absent from the update keep
    their previous values. Returned entities are copies; mutating them never
    changes stored state.
    """

    # Users
    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]: ...

    @abstractmethod
    async def get_user_by_telegram_id(self, telegram_id) -> Optional[User]: ...

    @abstractmethod
    async def create_user(self, data: UserCreate) -> User: ...

    @abstractmethod
    async def update_user(self, user_id: str, **changes) -> Optional[User]: ...

    # Transactions
    @abstractmethod
    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]: ...

    @abstractmethod
    async def get_transaction_by_signature(self, signature: str) -> Optional[Transaction]: ...

    @abstractmethod
    async def get_user_transactions(self, user_id: str, limit: int = 50) -> list[Transaction]: ...

    @abstractmethod
    async def create_transaction(self, data: TransactionCreate) -> Transaction: ...

    @abstractmethod
    async def update_transaction(self, transaction_id: str, **changes) -> Optional[Transaction]: ...

    # Token balances
    @abstractmethod
    async def get_user_token_balances(self, user_id: str) -> list[TokenBalance]: ...

    @abstractmethod
    async def get_token_balance(self, user_id: str, token_address: str) -> Optional[TokenBalance]: ...

    @abstractmethod
    async def create_or_update_token_balance(self, data: TokenBalanceUpsert) -> TokenBalance: ...

    # Trading settings
    @abstractmethod
    async def get_trading_settings(self, user_id: str) -> Optional[TradingSettings]: ...

    @abstractmethod
    async def create_or_update_trading_settings(
        self, user_id: str, update: Optional[TradingSettingsUpdate] = None, **fields
    ) -> TradingSettings: ...

    async def close(self):
        pass


def check_user_changes(current: User, changes: dict) -> dict:
    unknown = changes.keys() - User.model_fields.keys()
    if unknown:
        raise InvariantViolation(f"Unknown user fields: {', '.join(sorted(unknown))}")
    blocked = IMMUTABLE_USER_FIELDS & changes.keys()
    if blocked:
        raise InvariantViolation(f"User fields are immutable: {', '.join(sorted(blocked))}")

    address = changes.get("wallet_address", current.wallet_address)
    private_key = changes.get("wallet_private_key", current.wallet_private_key)
    if (address is None) != (private_key is None):
        raise InvariantViolation("wallet_address and wallet_private_key must be set together")
    return changes


def check_transaction_changes(changes: dict) -> dict:
    unknown = changes.keys() - Transaction.model_fields.keys()
    if unknown:
        raise InvariantViolation(f"Unknown transaction fields: {', '.join(sorted(unknown))}")
    blocked = (IMMUTABLE_TRANSACTION_FIELDS - {"confirmed_at"}) & changes.keys()
    if blocked:
        raise InvariantViolation(f"Transaction fields are immutable: {', '.join(sorted(blocked))}")
    # confirmed_at is owned by the store
    changes = dict(changes)
    changes.pop("confirmed_at", None)
    return changes


def confirmed_at_for(current: Transaction, new_status) -> Optional[datetime]:
    """
    Resolve ``confirmed_at`` for a status change.

    Entering ``confirmed`` stamps the current time, staying confirmed keeps the
    original stamp. ``confirmed`` is terminal so the stamp can never end up on a
    pending or failed record.
    """
    if new_status is None:
        return current.confirmed_at

    new_status = TransactionStatus(new_status)
    if current.status == TransactionStatus.CONFIRMED:
        if new_status != TransactionStatus.CONFIRMED:
            raise InvariantViolation(
                f"Transaction {current.id} is confirmed and cannot move to {new_status.value}"
            )
        return current.confirmed_at

    if new_status == TransactionStatus.CONFIRMED:
        return utcnow()
    return current.confirmed_at


def settings_changes(update: Optional[TradingSettingsUpdate], fields: dict) -> dict:
    merged = update.model_dump(exclude_unset=True) if update is not None else {}
    merged.update(fields)
    merged = {key: value for key, value in merged.items() if value is not None}
    return TradingSettingsUpdate(**merged).model_dump(exclude_unset=True)
