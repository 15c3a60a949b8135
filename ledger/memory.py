# ledger/memory.py
from typing import Optional

from loguru import logger

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
    confirmed_at_for,
    check_user_changes,
    settings_changes,
)
from utils.locks import KeyedLocks


class MemoryStore(LedgerStore):
    """Reference store: plain dicts plus secondary indexes, one lock per key."""

    def __init__(self):
        self._users: dict[str, User] = {}
        self._users_by_telegram: dict[str, str] = {}

        self._transactions: dict[str, Transaction] = {}
        self._transactions_by_signature: dict[str, str] = {}

        self._balances: dict[str, TokenBalance] = {}
        self._balances_by_pair: dict[tuple[str, str], str] = {}

        self._settings: dict[str, TradingSettings] = {}
        self._settings_by_user: dict[str, str] = {}

        self._locks = KeyedLocks()

    @staticmethod
    def _copy(entity):
        return entity.model_copy(deep=True) if entity is not None else None

    # ---------- Users ----------

    async def get_user(self, user_id: str) -> Optional[User]:
        return self._copy(self._users.get(user_id))

    async def get_user_by_telegram_id(self, telegram_id) -> Optional[User]:
        user_id = self._users_by_telegram.get(str(telegram_id))
        return self._copy(self._users.get(user_id)) if user_id else None

    async def create_user(self, data: UserCreate) -> User:
        if (data.wallet_address is None) != (data.wallet_private_key is None):
            raise InvariantViolation("wallet_address and wallet_private_key must be set together")

        async with self._locks.hold(("telegram", data.telegram_id)):
            if data.telegram_id in self._users_by_telegram:
                raise DuplicateKeyError(f"User with telegram id {data.telegram_id} already exists")

            user = User(**data.model_dump())
            self._users[user.id] = user
            self._users_by_telegram[user.telegram_id] = user.id

        logger.info(f"Created user {user.id} for telegram id {user.telegram_id}")
        return self._copy(user)

    async def update_user(self, user_id: str, **changes) -> Optional[User]:
        async with self._locks.hold(("user", user_id)):
            current = self._users.get(user_id)
            if current is None:
                return None

            check_user_changes(current, changes)
            updated = User.model_validate({**current.model_dump(), **changes})
            self._users[user_id] = updated

        return self._copy(updated)

    # ---------- Transactions ----------

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return self._copy(self._transactions.get(transaction_id))

    async def get_transaction_by_signature(self, signature: str) -> Optional[Transaction]:
        transaction_id = self._transactions_by_signature.get(signature)
        return self._copy(self._transactions.get(transaction_id)) if transaction_id else None

    async def get_user_transactions(self, user_id: str, limit: int = 50) -> list[Transaction]:
        transactions = [tx for tx in self._transactions.values() if tx.user_id == user_id]
        transactions.sort(key=lambda tx: tx.created_at, reverse=True)
        return [self._copy(tx) for tx in transactions[:limit]]

    async def create_transaction(self, data: TransactionCreate) -> Transaction:
        if data.user_id not in self._users:
            raise InvariantViolation(f"Unknown user {data.user_id}")

        signature_key = ("signature", data.signature) if data.signature else ("signature", None)
        async with self._locks.hold(signature_key):
            if data.signature and data.signature in self._transactions_by_signature:
                raise DuplicateKeyError(f"Transaction with signature {data.signature} already exists")

            transaction = Transaction(**data.model_dump())
            self._transactions[transaction.id] = transaction
            if transaction.signature:
                self._transactions_by_signature[transaction.signature] = transaction.id

        return self._copy(transaction)

    async def update_transaction(self, transaction_id: str, **changes) -> Optional[Transaction]:
        changes = check_transaction_changes(changes)

        async with self._locks.hold(("transaction", transaction_id)):
            current = self._transactions.get(transaction_id)
            if current is None:
                return None

            new_signature = changes.get("signature")
            if new_signature and new_signature != current.signature:
                owner = self._transactions_by_signature.get(new_signature)
                if owner is not None and owner != transaction_id:
                    raise DuplicateKeyError(f"Transaction with signature {new_signature} already exists")

            values = {**current.model_dump(), **changes}
            values["confirmed_at"] = confirmed_at_for(current, changes.get("status"))
            updated = Transaction.model_validate(values)

            if current.signature and current.signature != updated.signature:
                self._transactions_by_signature.pop(current.signature, None)
            if updated.signature:
                self._transactions_by_signature[updated.signature] = transaction_id
            self._transactions[transaction_id] = updated

        return self._copy(updated)

    # ---------- Token balances ----------

    async def get_user_token_balances(self, user_id: str) -> list[TokenBalance]:
        return [self._copy(b) for b in self._balances.values() if b.user_id == user_id]

    async def get_token_balance(self, user_id: str, token_address: str) -> Optional[TokenBalance]:
        balance_id = self._balances_by_pair.get((user_id, token_address))
        return self._copy(self._balances.get(balance_id)) if balance_id else None

    async def create_or_update_token_balance(self, data: TokenBalanceUpsert) -> TokenBalance:
        if data.balance < 0:
            raise InvariantViolation(f"Negative balance {data.balance} for {data.token_address}")

        pair = (data.user_id, data.token_address)
        async with self._locks.hold(("balance", pair)):
            balance_id = self._balances_by_pair.get(pair)
            if balance_id is not None:
                current = self._balances[balance_id]
                balance = TokenBalance.model_validate({
                    **current.model_dump(),
                    **data.model_dump(exclude_unset=True),
                    "last_updated": utcnow(),
                })
            else:
                balance = TokenBalance(**data.model_dump())
                self._balances_by_pair[pair] = balance.id
            self._balances[balance.id] = balance

        return self._copy(balance)

    # ---------- Trading settings ----------

    async def get_trading_settings(self, user_id: str) -> Optional[TradingSettings]:
        settings_id = self._settings_by_user.get(user_id)
        return self._copy(self._settings.get(settings_id)) if settings_id else None

    async def create_or_update_trading_settings(
        self, user_id: str, update: Optional[TradingSettingsUpdate] = None, **fields
    ) -> TradingSettings:
        changes = settings_changes(update, fields)

        async with self._locks.hold(("settings", user_id)):
            settings_id = self._settings_by_user.get(user_id)
            if settings_id is not None:
                current = self._settings[settings_id]
                settings = TradingSettings.model_validate({**current.model_dump(), **changes})
            else:
                settings = TradingSettings(user_id=user_id, **changes)
                self._settings_by_user[user_id] = settings.id
            self._settings[settings.id] = settings

        return self._copy(settings)
