from typing import Optional
from fastapi import APIRouter, Depends

from app.api.deps import get_actor, get_booking_service
from app.core.identity import Actor
from app.schemas.booking import BookingCreate, BookingOut, BookingUpdate, PaymentSimulation, booking_out
from app.services.booking_service import BookingService

router = APIRouter(tags=["bookings"])


@router.post("/bookings", response_model=BookingOut, status_code=201)
def create_booking(body: BookingCreate,
                   actor: Actor = Depends(get_actor),
                   svc: BookingService = Depends(get_booking_service)):
    b = svc.create_booking(
        actor,
        car_id=body.carId,
        pickup_date=body.pickupDate,
        return_date=body.returnDate,
        pickup_location=body.pickupLocation,
        return_location=body.returnLocation,
        special_requests=body.specialRequests,
    )
    return booking_out(b)


@router.get("/bookings/mine", response_model=list[BookingOut])
def my_bookings(actor: Actor = Depends(get_actor), svc: BookingService = Depends(get_booking_service)):
    return [booking_out(b) for b in svc.list_customer_bookings(actor)]


@router.get("/bookings/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: int, actor: Actor = Depends(get_actor), svc: BookingService = Depends(get_booking_service)):
    return booking_out(svc.get_booking(actor, booking_id))


@router.patch("/bookings/{booking_id}", response_model=BookingOut)
def update_booking(booking_id: int, body: BookingUpdate,
                   actor: Actor = Depends(get_actor),
                   svc: BookingService = Depends(get_booking_service)):
    b = svc.update_booking(
        actor,
        booking_id,
        return_location=body.returnLocation,
        special_requests=body.specialRequests,
        status=body.bookingStatus,
        refund_amount=body.refundAmount,
    )
    return booking_out(b)


@router.post("/bookings/{booking_id}/simulate-payment", response_model=BookingOut)
def simulate_payment(booking_id: int, body: PaymentSimulation | None = None,
                     actor: Actor = Depends(get_actor),
                     svc: BookingService = Depends(get_booking_service)):
    body = body or PaymentSimulation()
    b = svc.simulate_payment(actor, booking_id, payment_method=body.paymentMethod, succeeded=body.succeeded)
    return booking_out(b)


@router.delete("/bookings/{booking_id}", response_model=BookingOut)
def cancel_booking(booking_id: int, reason: Optional[str] = None,
                   actor: Actor = Depends(get_actor),
                   svc: BookingService = Depends(get_booking_service)):
    return booking_out(svc.cancel_booking(actor, booking_id, reason=reason))
