"""SQLAlchemy models representing careledger persistence tables."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base class for careledger ORM models."""


class SyncedTransactionORM(Base):
    """Bank transaction imported by sync, with its review decision."""

    __tablename__ = "synced_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    source_transaction_id: Mapped[str] = mapped_column(String(255), nullable=False)
    source_key: Mapped[str] = mapped_column(String(512), nullable=False, index=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    posted_date: Mapped[date] = mapped_column(Date, nullable=False)
    raw_description: Mapped[str] = mapped_column(Text, nullable=False)
    merchant_name_normalized: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    merchant_key: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    state: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    draft: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    expense_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("expenses.id", ondelete="SET NULL"), nullable=True
    )
    duplicate_of: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    synced_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        nullable=False,
    )
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "account_id",
            "source_transaction_id",
            name="uq_synced_transactions_source",
        ),
    )


class ExpenseORM(Base):
    """Canonical expense ledger row."""

    __tablename__ = "expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    vendor: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    category: Mapped[str] = mapped_column(String(128), nullable=False)
    subcategory: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    care_recipient_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    is_tax_deductible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source_type: Mapped[str] = mapped_column(String(16), nullable=False, default="manual")
    source_id: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index(
            "uq_expenses_source_ref",
            "user_id",
            "source_type",
            "source_id",
            unique=True,
            sqlite_where=text("source_type != 'manual'"),
        ),
    )


__all__ = ["Base", "SyncedTransactionORM", "ExpenseORM"]
