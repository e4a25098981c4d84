from datetime import date
from pydantic import BaseModel, Field
from typing import Optional

from app.models.booking import Booking


class BookingCreate(BaseModel):
    carId: str
    pickupDate: date
    returnDate: date
    pickupLocation: str = Field(min_length=1, max_length=100)
    returnLocation: Optional[str] = Field(default=None, max_length=100)
    specialRequests: Optional[str] = Field(default=None, max_length=500)


class BookingUpdate(BaseModel):
    returnLocation: Optional[str] = Field(default=None, max_length=100)
    specialRequests: Optional[str] = Field(default=None, max_length=500)
    bookingStatus: Optional[str] = None  # admin only
    refundAmount: Optional[int] = None


class PaymentSimulation(BaseModel):
    paymentMethod: Optional[str] = None
    succeeded: Optional[bool] = None  # omitted = successful


class BookingOut(BaseModel):
    id: int
    userId: Optional[str] = None
    carId: str
    pickupDate: str
    returnDate: str
    numberOfDays: int
    pickupLocation: str
    returnLocation: Optional[str] = None
    specialRequests: Optional[str] = None
    dailyPrice: int
    totalPrice: int
    bookingStatus: str
    paymentStatus: str
    paymentMethod: Optional[str] = None
    paymentReference: Optional[str] = None
    paymentSimulatedAt: Optional[str] = None
    paymentExpiresAt: Optional[str] = None
    adminNotifiedAt: Optional[str] = None
    adminNotificationRead: bool = False
    adminNotificationReadAt: Optional[str] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class BookingStatsOut(BaseModel):
    total: int
    pendingPayment: int
    adminNotified: int
    confirmed: int
    active: int
    completed: int
    cancelled: int
    expired: int
    rejected: int
    overdue: int


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def booking_out(b: Booking) -> BookingOut:
    return BookingOut(
        id=b.id,
        userId=b.user_id,
        carId=b.car_id,
        pickupDate=b.pickup_date.isoformat(),
        returnDate=b.return_date.isoformat(),
        numberOfDays=b.number_of_days,
        pickupLocation=b.pickup_location,
        returnLocation=b.return_location,
        specialRequests=b.special_requests,
        dailyPrice=b.daily_price,
        totalPrice=b.total_price,
        bookingStatus=b.status.value,
        paymentStatus=b.payment_status.value,
        paymentMethod=b.payment_method,
        paymentReference=b.payment_reference,
        paymentSimulatedAt=_iso(b.payment_simulated_at),
        paymentExpiresAt=_iso(b.payment_expires_at),
        adminNotifiedAt=_iso(b.admin_notified_at),
        adminNotificationRead=bool(b.admin_notification_read),
        adminNotificationReadAt=_iso(b.admin_notification_read_at),
        createdAt=_iso(b.created_at),
        updatedAt=_iso(b.updated_at),
    )
