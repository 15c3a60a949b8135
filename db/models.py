# db/models.py
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import Boolean, DateTime, ForeignKey, JSON, String
from sqlalchemy import UniqueConstraint
from sqlalchemy.types import TypeDecorator

from ledger.schemas import new_id, utcnow


class DecimalText(TypeDecorator):
    """Exact decimal stored as text; sqlite keeps NUMERIC columns as floats."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return format(Decimal(str(value)), "f")

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    telegram_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    username: Mapped[Optional[str]]
    first_name: Mapped[Optional[str]]
    last_name: Mapped[Optional[str]]
    wallet_address: Mapped[Optional[str]]
    wallet_private_key: Mapped[Optional[str]]
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    signature: Mapped[Optional[str]] = mapped_column(String, unique=True)
    type: Mapped[str] = mapped_column(String(8))
    token_address: Mapped[str] = mapped_column(String, index=True)
    token_symbol: Mapped[Optional[str]]
    token_name: Mapped[Optional[str]]
    amount: Mapped[Decimal] = mapped_column(DecimalText)
    sol_amount: Mapped[Decimal] = mapped_column(DecimalText)
    price: Mapped[Optional[Decimal]] = mapped_column(DecimalText)
    status: Mapped[str] = mapped_column(String(16), default="pending")
    slippage: Mapped[Optional[Decimal]] = mapped_column(DecimalText)
    fees: Mapped[Optional[Decimal]] = mapped_column(DecimalText)
    # "metadata" is reserved on declarative classes
    extra: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class TokenBalance(Base):
    __tablename__ = "token_balances"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    token_address: Mapped[str] = mapped_column(String, index=True)
    token_symbol: Mapped[Optional[str]]
    token_name: Mapped[Optional[str]]
    balance: Mapped[Decimal] = mapped_column(DecimalText)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "token_address", name="uq_user_token_balance"),
    )


class TradingSettings(Base):
    __tablename__ = "trading_settings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), unique=True)
    default_slippage: Mapped[Decimal] = mapped_column(DecimalText, default=Decimal("1"))
    max_transaction_amount: Mapped[Decimal] = mapped_column(DecimalText, default=Decimal("1"))
    auto_confirm: Mapped[bool] = mapped_column(Boolean, default=False)
    notifications: Mapped[bool] = mapped_column(Boolean, default=True)
