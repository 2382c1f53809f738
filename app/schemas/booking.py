from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict

from app.models.booking import BookingSource, BookingStatus, PaymentMethod


class Seat(BaseModel):
    row: str
    number: int


class BookingUser(BaseModel):
    user_id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None


class BookingBase(BaseModel):
    seats: Optional[List[Seat]] = None
    user: Optional[BookingUser] = None
    payment_method: Optional[PaymentMethod] = None
    source: Optional[BookingSource] = None
    status: Optional[BookingStatus] = None
    price_total: Optional[float] = None
    currency: Optional[str] = None


class BookingCreate(BookingBase):
    id: str
    showtime_id: Optional[str] = None
    movie_id: Optional[str] = None
    cinema_id: Optional[str] = None
    sala_id: Optional[str] = None
    sala_number: Optional[int] = None
    created_at: Optional[str] = None


class BookingResponse(BookingCreate):
    created_at_dt: Optional[datetime] = None
    created_at_pe: Optional[str] = None
    email_norm: Optional[str] = None
    seat_count: Optional[int] = None

    model_config = ConfigDict(extra="allow")


class BookingListResponse(BaseModel):
    page: int
    limit: int
    count: int
    data: List[BookingResponse]


class ErrorResponse(BaseModel):
    error: str
    fields: Optional[List[str]] = None
    detail: Optional[str] = None
    key: Optional[Any] = None


class HealthResponse(BaseModel):
    ok: bool
    error: Optional[str] = None


BOOKING_EXAMPLE = {
    "id": "b-001",
    "showtime_id": "s-100",
    "movie_id": "m-100",
    "cinema_id": "c-200",
    "sala_id": "room-7",
    "sala_number": 7,
    "seats": [{"row": "A", "number": 10}, {"row": "A", "number": 11}],
    "user": {"user_id": "u-123", "name": "Luciana", "email": "l@x.com"},
    "payment_method": "yape",
    "source": "web",
    "status": "CONFIRMED",
    "price_total": 32.5,
    "currency": "PEN",
}
