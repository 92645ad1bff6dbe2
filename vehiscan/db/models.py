from datetime import datetime

from sqlalchemy import (
    String, DateTime, Boolean, Text, JSON, PrimaryKeyConstraint
)
from sqlalchemy.orm import Mapped, mapped_column

from vehiscan.db.base import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    first_name: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    code: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    # chassis numbers of existing vehicles the user added to "My Vehicles"
    added_vehicles: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class KeyValueEntry(Base):
    """
    Durable key-value pairs (rate-limit and lockout records)
    """
    __tablename__ = "kv_entries"

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class DocumentRecord(Base):
    """
    Schemaless documents addressed by (collection, id): vehicles, scannedVehicles
    """
    __tablename__ = "documents"
    __table_args__ = (
        PrimaryKeyConstraint("collection", "id", name="pk_documents"),
    )

    collection: Mapped[str] = mapped_column(String(100), index=True)
    id: Mapped[str] = mapped_column(String(64))

    data: Mapped[dict] = mapped_column(JSON, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
