"""
REST API routes for the booking pages, admin back-office and POS terminal.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from chargeline.availability import get_station_availability
from chargeline.billing import BillingInput
from chargeline.database import AsyncSessionLocal
from chargeline.errors import InvalidTransitionError, NotFoundError, ValidationError
from chargeline.lifecycle import SessionLifecycleController
from chargeline import reservations, sales, stations


# Pydantic models for API requests/responses
class StationCreate(BaseModel):
    station_id: str
    type: str
    power: str
    connector: str
    status: str = "available"
    estimated_time: Optional[str] = None


class StationStatusUpdate(BaseModel):
    status: str


class StationResponse(BaseModel):
    id: str
    station_id: str
    type: str
    power: str
    connector: str
    status: str
    estimated_time: Optional[str]

    class Config:
        from_attributes = True


class StationAvailabilityResponse(StationResponse):
    availability: str
    available_at: Optional[datetime]
    overrun: bool


class BillingRequest(BaseModel):
    start_percentage: Optional[float] = None
    end_percentage: Optional[float] = None
    rate_per_percentage_point: Optional[float] = None
    energy_consumed: Optional[float] = None
    rate_per_energy_unit: Optional[float] = None

    def to_input(self) -> BillingInput:
        return BillingInput(**self.model_dump())


class BillingResponse(BaseModel):
    percentage_amount: Decimal
    energy_amount: Decimal
    total_amount: Decimal


class BookingRequest(BaseModel):
    customer_name: str
    customer_phone: str
    station_id: str
    start_time: Optional[datetime] = None
    customer_email: Optional[str] = None
    vehicle_number: Optional[str] = None


class StartRequest(BaseModel):
    expected_end_time: Optional[datetime] = None


class CompleteRequest(BaseModel):
    billing: Optional[BillingRequest] = None
    paid: bool = False
    payment_method: Optional[str] = None


class PaymentRequest(BaseModel):
    payment_status: str
    payment_method: Optional[str] = None


class SessionResponse(BaseModel):
    id: str
    order_number: str
    customer_name: str
    customer_phone: Optional[str]
    customer_email: Optional[str]
    vehicle_number: Optional[str]
    station_id: str
    start_time: datetime
    expected_end_time: Optional[datetime]
    end_time: Optional[datetime]
    status: str
    payment_status: str
    payment_method: Optional[str]
    total_amount: Optional[Decimal]
    created_at: datetime

    class Config:
        from_attributes = True


class SaleRequest(BillingRequest):
    station_id: str
    payment_mode: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    vehicle_number: Optional[str] = None

    def to_input(self) -> BillingInput:
        return BillingInput(
            start_percentage=self.start_percentage,
            end_percentage=self.end_percentage,
            rate_per_percentage_point=self.rate_per_percentage_point,
            energy_consumed=self.energy_consumed,
            rate_per_energy_unit=self.rate_per_energy_unit,
        )


class SaleResponse(BaseModel):
    id: str
    sale_number: str
    station_id: str
    customer_name: str
    vehicle_number: Optional[str]
    total_amount: Decimal
    payment_mode: str
    created_at: datetime

    class Config:
        from_attributes = True


class ReservationCreate(BaseModel):
    customer_name: str
    customer_phone: str
    station_id: str
    reservation_date: date
    start_time: time
    end_time: time
    customer_email: Optional[str] = None
    special_requests: Optional[str] = None


class ReservationStatusUpdate(BaseModel):
    status: str


class ReservationResponse(BaseModel):
    id: str
    customer_name: str
    customer_phone: str
    customer_email: Optional[str]
    station_id: str
    reservation_date: date
    start_time: time
    end_time: time
    status: str
    special_requests: Optional[str]

    class Config:
        from_attributes = True


# Dependency to get database session
async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


_controller = SessionLifecycleController()


def get_controller() -> SessionLifecycleController:
    return _controller


def _http_error(e: Exception, action: str) -> HTTPException:
    """Translate service errors into HTTP errors."""
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidTransitionError):
        return HTTPException(
            status_code=409,
            detail={"message": str(e), "current_status": e.current_status},
        )
    return HTTPException(status_code=500, detail=f"Failed to {action}: {str(e)}")


# Create router
router = APIRouter(prefix="/api", tags=["chargeline-api"])


# Stations


@router.get("/stations", response_model=List[StationAvailabilityResponse])
async def get_stations(
    station_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    controller: SessionLifecycleController = Depends(get_controller),
):
    """Get all stations annotated with their current availability."""
    try:
        resolved = await get_station_availability(db, station_id, controller.clock)
        return [
            StationAvailabilityResponse(
                **StationResponse.model_validate(entry.station).model_dump(),
                availability=entry.availability.value,
                available_at=entry.available_at,
                overrun=entry.overrun,
            )
            for entry in resolved
        ]
    except Exception as e:
        raise _http_error(e, "fetch stations")


@router.post("/stations", response_model=StationResponse)
async def create_station(request: StationCreate, db: AsyncSession = Depends(get_db)):
    """Register a new charging station."""
    try:
        return await stations.create_station(db, **request.model_dump())
    except Exception as e:
        raise _http_error(e, "create station")


@router.patch("/stations/{station_id}/status", response_model=StationResponse)
async def update_station_status(
    station_id: str, request: StationStatusUpdate, db: AsyncSession = Depends(get_db)
):
    """Set the manual status of a station."""
    try:
        return await stations.set_station_status(db, station_id, request.status)
    except Exception as e:
        raise _http_error(e, "update station status")


@router.delete("/stations/{station_id}")
async def delete_station(station_id: str, db: AsyncSession = Depends(get_db)):
    """Delete a station that nothing refers to."""
    try:
        await stations.delete_station(db, station_id)
        return {"success": True}
    except Exception as e:
        raise _http_error(e, "delete station")


# Charging orders


@router.post("/sessions", response_model=SessionResponse)
async def book_session(
    request: BookingRequest,
    db: AsyncSession = Depends(get_db),
    controller: SessionLifecycleController = Depends(get_controller),
):
    """Book a charging session."""
    try:
        return await controller.book(db, **request.model_dump())
    except Exception as e:
        raise _http_error(e, "book charging session")


@router.get("/sessions", response_model=List[SessionResponse])
async def get_sessions(
    limit: int = 50,
    status: Optional[str] = None,
    station_id: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    controller: SessionLifecycleController = Depends(get_controller),
):
    """Get recent charging orders."""
    try:
        return await controller.list_sessions(db, status, station_id, limit)
    except Exception as e:
        raise _http_error(e, "fetch sessions")


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    controller: SessionLifecycleController = Depends(get_controller),
):
    """Get a charging order by id or order number."""
    try:
        return await controller.get_session(db, session_id)
    except Exception as e:
        raise _http_error(e, "fetch session")


@router.post("/sessions/{session_id}/start", response_model=SessionResponse)
async def start_session(
    session_id: str,
    request: StartRequest,
    db: AsyncSession = Depends(get_db),
    controller: SessionLifecycleController = Depends(get_controller),
):
    """Start charging a booked order."""
    try:
        return await controller.start(db, session_id, request.expected_end_time)
    except Exception as e:
        raise _http_error(e, "start session")


@router.post("/sessions/{session_id}/complete", response_model=SessionResponse)
async def complete_session(
    session_id: str,
    request: CompleteRequest,
    db: AsyncSession = Depends(get_db),
    controller: SessionLifecycleController = Depends(get_controller),
):
    """Complete an active order, optionally billing it."""
    try:
        return await controller.complete(
            db,
            session_id,
            billing=request.billing.to_input() if request.billing else None,
            paid=request.paid,
            payment_method=request.payment_method,
        )
    except Exception as e:
        raise _http_error(e, "complete session")


@router.post("/sessions/{session_id}/cancel", response_model=SessionResponse)
async def cancel_session(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    controller: SessionLifecycleController = Depends(get_controller),
):
    """Cancel a booked or active order."""
    try:
        return await controller.cancel(db, session_id)
    except Exception as e:
        raise _http_error(e, "cancel session")


@router.post("/sessions/{session_id}/payment", response_model=SessionResponse)
async def record_payment(
    session_id: str,
    request: PaymentRequest,
    db: AsyncSession = Depends(get_db),
    controller: SessionLifecycleController = Depends(get_controller),
):
    """Record the payment outcome of a completed order."""
    try:
        return await controller.record_payment(
            db, session_id, request.payment_status, request.payment_method
        )
    except Exception as e:
        raise _http_error(e, "record payment")


@router.post("/sessions/{session_id}/notify")
async def notify_session(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    controller: SessionLifecycleController = Depends(get_controller),
):
    """Send the customer a confirmation for an order."""
    try:
        sent = await controller.notify(db, session_id)
        return {"success": sent}
    except Exception as e:
        raise _http_error(e, "send notification")


@router.delete("/sessions/{session_id}")
async def delete_session(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    controller: SessionLifecycleController = Depends(get_controller),
):
    """Delete a completed or cancelled order."""
    try:
        await controller.delete(db, session_id)
        return {"success": True}
    except Exception as e:
        raise _http_error(e, "delete session")


# Billing and sales terminal


@router.post("/billing/preview", response_model=BillingResponse)
async def preview_billing(request: BillingRequest):
    """Price billing inputs without recording anything."""
    try:
        breakdown = sales.preview_total(request.to_input())
        return BillingResponse(
            percentage_amount=breakdown.percentage_amount,
            energy_amount=breakdown.energy_amount,
            total_amount=breakdown.total_amount,
        )
    except Exception as e:
        raise _http_error(e, "preview billing")


@router.post("/sales", response_model=SaleResponse)
async def log_sale(
    request: SaleRequest,
    db: AsyncSession = Depends(get_db),
    controller: SessionLifecycleController = Depends(get_controller),
):
    """Record a walk-in charging sale."""
    try:
        return await sales.log_sale(
            db,
            station_id=request.station_id,
            billing=request.to_input(),
            payment_mode=request.payment_mode,
            customer_name=request.customer_name,
            customer_phone=request.customer_phone,
            customer_email=request.customer_email,
            vehicle_number=request.vehicle_number,
            clock=controller.clock,
        )
    except Exception as e:
        raise _http_error(e, "record sale")


@router.get("/sales", response_model=List[SaleResponse])
async def get_sales(limit: int = 50, db: AsyncSession = Depends(get_db)):
    """Get recent sales terminal transactions."""
    try:
        return await sales.list_sales(db, limit)
    except Exception as e:
        raise _http_error(e, "fetch sales")


# Charger reservations


@router.post("/reservations", response_model=ReservationResponse)
async def create_reservation(
    request: ReservationCreate,
    db: AsyncSession = Depends(get_db),
    controller: SessionLifecycleController = Depends(get_controller),
):
    """Submit a fixed-slot charger reservation."""
    try:
        return await reservations.create_reservation(
            db, **request.model_dump(), clock=controller.clock
        )
    except Exception as e:
        raise _http_error(e, "create reservation")


@router.get("/reservations", response_model=List[ReservationResponse])
async def get_reservations(
    limit: int = 50, status: Optional[str] = None, db: AsyncSession = Depends(get_db)
):
    """Get recent charger reservations."""
    try:
        return await reservations.list_reservations(db, status, limit)
    except Exception as e:
        raise _http_error(e, "fetch reservations")


@router.patch("/reservations/{reservation_id}/status", response_model=ReservationResponse)
async def update_reservation_status(
    reservation_id: str,
    request: ReservationStatusUpdate,
    db: AsyncSession = Depends(get_db),
    controller: SessionLifecycleController = Depends(get_controller),
):
    """Confirm, complete or cancel a reservation."""
    try:
        return await reservations.update_reservation_status(
            db, reservation_id, request.status, clock=controller.clock
        )
    except Exception as e:
        raise _http_error(e, "update reservation")


@router.delete("/reservations/{reservation_id}")
async def delete_reservation(reservation_id: str, db: AsyncSession = Depends(get_db)):
    """Delete a charger reservation."""
    try:
        await reservations.delete_reservation(db, reservation_id)
        return {"success": True}
    except Exception as e:
        raise _http_error(e, "delete reservation")
