from ledger.errors import DuplicateKeyError, InvariantViolation, LedgerError
from ledger.memory import MemoryStore
from ledger.schemas import (
    TokenBalance,
    TokenBalanceUpsert,
    TradingSettings,
    TradingSettingsUpdate,
    Transaction,
    TransactionCreate,
    TransactionStatus,
    TransactionType,
    User,
    UserCreate,
)
from ledger.store import LedgerStore


async def open_store(database_path: str | None) -> LedgerStore:
    """In-memory store when no database is configured, SqlStore otherwise."""
    if not database_path:
        return MemoryStore()

    from db import init_db, make_engine
    from ledger.sql import SqlStore

    engine = make_engine(database_path)
    await init_db(engine)
    return SqlStore(engine)


__all__ = [
    "DuplicateKeyError",
    "InvariantViolation",
    "LedgerError",
    "LedgerStore",
    "MemoryStore",
    "TokenBalance",
    "TokenBalanceUpsert",
    "TradingSettings",
    "TradingSettingsUpdate",
    "Transaction",
    "TransactionCreate",
    "TransactionStatus",
    "TransactionType",
    "User",
    "UserCreate",
    "open_store",
]
