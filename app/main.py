import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from app.core.config import settings
from app.core.exceptions import BookingError
from app.api.v1.api import api_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

# CORS: use CORS_ORIGINS from env in production; default to localhost for dev
_default_origins = [
    "http://127.0.0.1:3000", "http://localhost:3000",
    "http://127.0.0.1:5173", "http://localhost:5173",
]
_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()] if settings.CORS_ORIGINS else _default_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_body(request: Request, status: int, error: str, code: str, message: str, details: dict | None = None) -> dict:
    body = {
        "status": status,
        "error": error,
        "code": code,
        "message": message,
        "path": request.url.path,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if details:
        body["details"] = details
    return body


@app.exception_handler(BookingError)
def booking_error_handler(request: Request, exc: BookingError):
    status = exc.http_status
    error = {400: "Bad Request", 403: "Forbidden", 404: "Not Found", 409: "Conflict"}.get(status, "Error")
    return JSONResponse(status_code=status, content=_error_body(request, status, error, exc.code, exc.message, exc.details))


@app.exception_handler(IntegrityError)
def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("Database constraint rejected request to %s: %s", request.url.path, exc.orig)
    return JSONResponse(
        status_code=409,
        content=_error_body(request, 409, "Conflict", "DATA_CONFLICT",
                            "The request conflicts with existing data. Please refresh and try again."),
    )


@app.exception_handler(Exception)
def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unexpected error while handling %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content=_error_body(request, 500, "Internal Server Error", "INTERNAL_ERROR",
                            "Unable to process booking request right now. Please try again."),
    )


app.include_router(api_router)


@app.get("/health")
def health():
    return {"status": "ok"}
