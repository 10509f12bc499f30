from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow_naive() -> datetime:
    # Naive UTC datetime (SQLite friendly)
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class Challenge(Base):
    """A pending one-time code for one phone number.

    Only the digest of the code is kept. Issuing again for the same subject
    replaces the row, so there is at most one live challenge per subject.
    """

    __tablename__ = "otp_challenges"

    subject: Mapped[str] = mapped_column(String(20), primary_key=True)
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    # naive UTC (SQLite safe)
    issued_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow_naive)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    channel: Mapped[str] = mapped_column(String(20), nullable=False, default="sms")  # sms/whatsapp

    __table_args__ = (Index("ix_otp_challenges_expires_at", "expires_at"),)

    def __repr__(self) -> str:
        # code_hash stays out of reprs and therefore out of logs and tracebacks
        return f"Challenge(subject=***{self.subject[-4:]}, expires_at={self.expires_at.isoformat()})"
