"""
Database models for the charging backend.
"""

import uuid
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from chargeline.database import Base
from chargeline.utils import utc_now_naive


class StationStatus(str, Enum):
    """Manual status flag set by staff."""

    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"


class SessionStatus(str, Enum):
    BOOKED = "booked"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


def _new_id():
    return str(uuid.uuid4())


class Station(Base):
    """
    Represents a physical EV charging point.
    """

    __tablename__ = "charging_stations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    station_id: Mapped[str] = mapped_column(
        String(20), unique=True, index=True
    )  # Human-facing code, e.g. CS-02

    type: Mapped[str] = mapped_column(String(50))  # Connector family (AC, DC fast)
    power: Mapped[str] = mapped_column(String(20))  # Display string, e.g. 22 kW
    connector: Mapped[str] = mapped_column(String(50))  # Type 2, CCS2, CHAdeMO

    status: Mapped[str] = mapped_column(
        String(20), default=StationStatus.AVAILABLE.value
    )  # available, occupied, maintenance
    estimated_time: Mapped[Optional[str]] = mapped_column(
        String(50)
    )  # Free text shown to customers

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, onupdate=utc_now_naive
    )

    # Relationships
    sessions: Mapped[list["ChargingSession"]] = relationship(
        "ChargingSession", back_populates="station"
    )
    reservations: Mapped[list["ChargerReservation"]] = relationship(
        "ChargerReservation", back_populates="station"
    )


class ChargingSession(Base):
    """
    Represents a charging order from booking through completion or cancellation.
    """

    __tablename__ = "charging_orders"
    __table_args__ = (
        CheckConstraint(
            "expected_end_time IS NULL OR expected_end_time > start_time",
            name="ck_charging_orders_expected_end_after_start",
        ),
        CheckConstraint(
            "end_time IS NULL OR end_time >= start_time",
            name="ck_charging_orders_end_not_before_start",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    order_number: Mapped[str] = mapped_column(String(30), unique=True, index=True)

    # Customer details
    customer_name: Mapped[str] = mapped_column(String(100))
    customer_phone: Mapped[Optional[str]] = mapped_column(String(30))
    customer_email: Mapped[Optional[str]] = mapped_column(String(100))
    vehicle_number: Mapped[Optional[str]] = mapped_column(String(30))

    # Foreign key
    station_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("charging_stations.id", ondelete="RESTRICT"), index=True
    )

    # Timing
    start_time: Mapped[datetime] = mapped_column(DateTime)
    expected_end_time: Mapped[Optional[datetime]] = mapped_column(DateTime)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Status
    status: Mapped[str] = mapped_column(
        String(20), default=SessionStatus.BOOKED.value, index=True
    )  # booked, active, completed, cancelled
    payment_status: Mapped[str] = mapped_column(
        String(20), default=PaymentStatus.PENDING.value
    )  # pending, paid, failed
    payment_method: Mapped[Optional[str]] = mapped_column(String(20))
    total_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, onupdate=utc_now_naive
    )

    # Relationships
    station: Mapped["Station"] = relationship("Station", back_populates="sessions")


class ChargerReservation(Base):
    """
    Represents a fixed time-slot reservation of a charger.

    This ledger is independent of ChargingSession and is not consulted when
    resolving station availability.
    """

    __tablename__ = "charger_reservations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)

    # Customer details
    customer_name: Mapped[str] = mapped_column(String(100))
    customer_phone: Mapped[str] = mapped_column(String(30))
    customer_email: Mapped[Optional[str]] = mapped_column(String(100))

    # Foreign key
    station_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("charging_stations.id", ondelete="RESTRICT"), index=True
    )

    # Slot (wall-clock)
    reservation_date: Mapped[date] = mapped_column(Date)
    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)

    status: Mapped[str] = mapped_column(
        String(20), default=ReservationStatus.PENDING.value
    )  # pending, confirmed, cancelled, completed
    special_requests: Mapped[Optional[str]] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, onupdate=utc_now_naive
    )

    # Relationships
    station: Mapped["Station"] = relationship("Station", back_populates="reservations")


class ChargingSale(Base):
    """
    Represents a walk-in charging sale logged at the sales terminal.
    """

    __tablename__ = "pos_charging_sales"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    sale_number: Mapped[str] = mapped_column(String(30), unique=True, index=True)

    # Foreign key
    station_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("charging_stations.id", ondelete="RESTRICT")
    )

    # Customer details
    customer_name: Mapped[str] = mapped_column(String(100))
    customer_phone: Mapped[Optional[str]] = mapped_column(String(30))
    customer_email: Mapped[Optional[str]] = mapped_column(String(100))
    vehicle_number: Mapped[Optional[str]] = mapped_column(String(30))

    # Billing inputs
    start_percentage: Mapped[Optional[float]] = mapped_column(Float)
    end_percentage: Mapped[Optional[float]] = mapped_column(Float)
    rate_per_percentage_point: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    energy_consumed: Mapped[Optional[float]] = mapped_column(Float)  # kWh
    rate_per_energy_unit: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))

    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    payment_mode: Mapped[str] = mapped_column(String(20))  # Cash, Esewa, Fonepay, Card, Other

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive)

    # Relationships
    station: Mapped["Station"] = relationship("Station")
