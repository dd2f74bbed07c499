"""SQLAlchemy model definitions."""
import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """SQLAlchemy Declarative Base."""


class PaycheckFrequency(str, Enum):
    """How often a paycheck is received."""

    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class Profile(Base):
    """PIN credentials and display preferences of a user."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    pin_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    theme: Mapped[str] = mapped_column(String(16), nullable=False, default="auto")
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class Category(Base):
    """Percentage weighted spending bucket."""

    __tablename__ = "categories"
    __table_args__ = (
        CheckConstraint(
            "percentage > 0 AND percentage <= 100", name="ck_category_percentage_range"
        ),
        Index("ix_categories_user_active", "user_id", "is_active"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default="#3B82F6")
    percentage: Mapped[Decimal] = mapped_column(Numeric(5, 1), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    allocations: Mapped[List["Allocation"]] = relationship(
        back_populates="category", passive_deletes=True
    )
    transactions: Mapped[List["Transaction"]] = relationship(back_populates="category")


class Paycheck(Base):
    """Income event that freezes the category percentages into allocations."""

    __tablename__ = "paychecks"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_paycheck_amount_positive"),
        Index("ix_paychecks_user_date", "user_id", "date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    frequency: Mapped[PaycheckFrequency] = mapped_column(
        SAEnum(
            PaycheckFrequency,
            name="paycheck_frequency",
            native_enum=False,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    allocations: Mapped[List["Allocation"]] = relationship(
        back_populates="paycheck",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Allocation.id",
    )


class Allocation(Base):
    """Frozen per-category budget of one paycheck.

    The category name, color and percentage are copied at creation time so
    later edits or deactivation of the category never change what the
    paycheck shows. Spend is derived from transactions on read.
    """

    __tablename__ = "allocations"
    __table_args__ = (
        CheckConstraint("budgeted_amount >= 0", name="ck_allocation_budget_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    paycheck_id: Mapped[int] = mapped_column(
        ForeignKey("paychecks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True
    )
    category_name: Mapped[str] = mapped_column(String(50), nullable=False)
    category_color: Mapped[str] = mapped_column(String(7), nullable=False)
    percentage: Mapped[Decimal] = mapped_column(Numeric(5, 1), nullable=False)
    budgeted_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    paycheck: Mapped[Paycheck] = relationship(back_populates="allocations")
    category: Mapped[Optional[Category]] = relationship(back_populates="allocations")


class Transaction(Base):
    """Expense recorded against a category."""

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transaction_amount_positive"),
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_user_category", "user_id", "category_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    category: Mapped[Category] = relationship(back_populates="transactions")
