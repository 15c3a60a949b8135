# ledger/schemas.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.amounts import quantize_ledger


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class TransactionType(str, Enum):
    BUY = "buy"
    SELL = "sell"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


def ledger_places(value):
    if value is None:
        return None
    return quantize_ledger(value)


# ---------- Users ----------

class UserCreate(BaseModel):
    telegram_id: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    wallet_address: Optional[str] = None
    wallet_private_key: Optional[str] = None

    @field_validator("telegram_id", mode="before")
    @classmethod
    def telegram_id_as_str(cls, value):
        return str(value)


class User(UserCreate):
    id: str = Field(default_factory=new_id)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def has_wallet(self) -> bool:
        return bool(self.wallet_address and self.wallet_private_key)


# ---------- Transactions ----------

class TransactionCreate(BaseModel):
    user_id: str
    type: TransactionType
    token_address: str
    token_symbol: Optional[str] = None
    token_name: Optional[str] = None
    amount: Decimal
    sol_amount: Decimal
    price: Optional[Decimal] = None
    signature: Optional[str] = None
    slippage: Optional[Decimal] = None
    fees: Optional[Decimal] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("amount", "sol_amount", "price", "fees", mode="before")
    @classmethod
    def pin_places(cls, value):
        return ledger_places(value)


class Transaction(TransactionCreate):
    id: str = Field(default_factory=new_id)
    status: TransactionStatus = TransactionStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    confirmed_at: Optional[datetime] = None


# ---------- Balances ----------

class TokenBalanceUpsert(BaseModel):
    user_id: str
    token_address: str
    token_symbol: Optional[str] = None
    token_name: Optional[str] = None
    balance: Decimal

    @field_validator("balance", mode="before")
    @classmethod
    def pin_places(cls, value):
        return ledger_places(value)


class TokenBalance(TokenBalanceUpsert):
    id: str = Field(default_factory=new_id)
    last_updated: datetime = Field(default_factory=utcnow)


# ---------- Settings ----------

class TradingSettingsUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    default_slippage: Optional[Decimal] = None
    max_transaction_amount: Optional[Decimal] = None
    auto_confirm: Optional[bool] = None
    notifications: Optional[bool] = None


class TradingSettings(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    default_slippage: Decimal = Decimal("1")
    max_transaction_amount: Decimal = Decimal("1")
    auto_confirm: bool = False
    notifications: bool = True

    @property
    def slippage_bps(self) -> int:
        return int(round(self.default_slippage * 100))
