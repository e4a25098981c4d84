from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.clock import Clock, SystemClock
from app.core.identity import Actor
from app.core.security import decode_token
from app.models.user import User
from app.services.booking_service import BookingService

bearer = HTTPBearer(auto_error=False)

def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    if not creds:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_token(creds.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    user_id = payload.get("sub")
    user = db.get(User, user_id) if user_id else None
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return user

def require_roles(*roles: str):
    def _guard(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail="Forbidden")
        return user
    return _guard

def get_actor(user: User = Depends(get_current_user)) -> Actor:
    return Actor(id=user.id, role=user.role)

def get_clock() -> Clock:
    return SystemClock()

def get_booking_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> BookingService:
    return BookingService(db, clock=clock)
