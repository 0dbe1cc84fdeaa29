"""
SQLAlchemy ORM models for the remote ledger.

One row per (user, card). Rows exist only while quantity >= 1.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class UserCardDB(Base):
    """
    Individual card ownership record.

    Tracks how many copies of a specific card a user owns.
    """

    __tablename__ = "user_cards"
    __table_args__ = (UniqueConstraint("user_id", "card_key", name="uq_user_card"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    card_key: Mapped[str] = mapped_column(String(64), index=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<UserCardDB(user={self.user_id}, card={self.card_key}, qty={self.quantity})>"
