from fastapi import APIRouter
from app.api.v1.routes.cars import router as cars_router
from app.api.v1.routes.bookings import router as bookings_router
from app.api.v1.routes.admin import router as admin_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(cars_router)
api_router.include_router(bookings_router)
api_router.include_router(admin_router)
