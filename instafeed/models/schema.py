"""SQLAlchemy ORM models for Instafeed."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, LargeBinary, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from instafeed.models.data_models import utc_now


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class KeychainItem(Base):
    """Encrypted value stored under a (service, key) pair."""

    __tablename__ = "keychain_items"
    __table_args__ = (UniqueConstraint("service", "key", name="uq_keychain_service_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Namespace and lookup key
    service: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    key: Mapped[str] = mapped_column(String(200), nullable=False)

    # Fernet token
    value: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    def __repr__(self) -> str:
        return f"<KeychainItem(service='{self.service}', key='{self.key}')>"
