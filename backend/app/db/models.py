from __future__ import annotations

import enum
import datetime as dt

from sqlalchemy import Date, DateTime, Enum, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class CalendarStatus(str, enum.Enum):
    PENDING = "Pending"
    SYNCED = "Synced"
    ERROR = "Error"


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Restaurant(Base):
    __tablename__ = "restaurants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str | None] = mapped_column(String(300), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class AdminUser(Base):
    __tablename__ = "admin_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(100), nullable=False)
    # Soft reference to restaurants.slug; existence is checked before insert.
    restaurant_slug: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class Reservation(Base):
    __tablename__ = "reservations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    guests: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    time: Mapped[str] = mapped_column(String(5), nullable=False)  # "HH:MM"
    reservation_code: Mapped[str] = mapped_column(String(6), unique=True, nullable=False)
    # Soft reference to restaurants.slug; existence is checked before writes.
    restaurant_slug: Mapped[str] = mapped_column("restaurant", String(64), nullable=False)
    calendar_status: Mapped[CalendarStatus] = mapped_column(
        Enum(
            CalendarStatus,
            name="calendar_status",
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
        default=CalendarStatus.PENDING,
    )
    calendar_event_id: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("ix_reservations_slot", "restaurant", "date", "time"),
    )
