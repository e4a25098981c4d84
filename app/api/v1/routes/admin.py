from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_booking_service, get_clock, require_roles
from app.core.clock import Clock
from app.models.user import User
from app.schemas.booking import BookingOut, BookingStatsOut, booking_out
from app.services import notification_service
from app.services.booking_service import BookingService
from app.services.stats_service import booking_stats

router = APIRouter(tags=["admin"])


@router.get("/admin/bookings", response_model=list[BookingOut])
def list_bookings(status: str | None = None,
                  svc: BookingService = Depends(get_booking_service),
                  me: User = Depends(require_roles("admin"))):
    return [booking_out(b) for b in svc.list_bookings(status)]


@router.get("/admin/cars/{car_id}/bookings", response_model=list[BookingOut])
def list_car_bookings(car_id: str,
                      svc: BookingService = Depends(get_booking_service),
                      me: User = Depends(require_roles("admin"))):
    return [booking_out(b) for b in svc.list_car_bookings(car_id)]


@router.get("/admin/bookings/stats", response_model=BookingStatsOut)
def stats(db: Session = Depends(get_db),
          clock: Clock = Depends(get_clock),
          me: User = Depends(require_roles("admin"))):
    s = booking_stats(db, clock.today())
    return BookingStatsOut(
        total=s.total,
        pendingPayment=s.pending_payment,
        adminNotified=s.admin_notified,
        confirmed=s.confirmed,
        active=s.active,
        completed=s.completed,
        cancelled=s.cancelled,
        expired=s.expired,
        rejected=s.rejected,
        overdue=s.overdue,
    )


@router.post("/admin/bookings/expire")
def expire_now(svc: BookingService = Depends(get_booking_service),
               me: User = Depends(require_roles("admin"))):
    return {"expired": svc.expire_pending_payment_bookings()}


@router.get("/admin/notifications", response_model=list[BookingOut])
def notifications(includeRead: bool = False,
                  db: Session = Depends(get_db),
                  me: User = Depends(require_roles("admin"))):
    items = notification_service.list_all(db) if includeRead else notification_service.list_unread(db)
    return [booking_out(b) for b in items]


@router.patch("/admin/notifications/{booking_id}/read", response_model=BookingOut)
def mark_notification_read(booking_id: int,
                           db: Session = Depends(get_db),
                           clock: Clock = Depends(get_clock),
                           me: User = Depends(require_roles("admin"))):
    return booking_out(notification_service.mark_read(db, booking_id, clock))
