"""
Database models package.
"""
from .schema import (
    Station,
    ChargingSession,
    ChargerReservation,
    ChargingSale,
    StationStatus,
    SessionStatus,
    PaymentStatus,
    ReservationStatus,
)

__all__ = [
    "Station",
    "ChargingSession",
    "ChargerReservation",
    "ChargingSale",
    "StationStatus",
    "SessionStatus",
    "PaymentStatus",
    "ReservationStatus",
]
