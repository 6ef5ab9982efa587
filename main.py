import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from exceptions import (
    CalculationUnavailable,
    InvalidInputFormat,
    LocationNotFound,
)
from routers import router
from settings import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Natal chart calculation API: location and time zone resolution, "
                "Swiss Ephemeris positions, chart normalization and aspects",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for development
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, error: str, message: str, detail=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "detail": detail
        }
    )


# Exception Handlers
@app.exception_handler(InvalidInputFormat)
async def invalid_input_handler(request: Request, exc: InvalidInputFormat):
    """Handle date, time and location strings that fail their pattern."""
    return _error_response(422, "InvalidInputFormat", str(exc))


@app.exception_handler(LocationNotFound)
async def location_not_found_handler(request: Request, exc: LocationNotFound):
    """Handle locations unknown to every lookup source."""
    return _error_response(404, "LocationNotFound", str(exc))


@app.exception_handler(CalculationUnavailable)
async def calculation_unavailable_handler(request: Request, exc: CalculationUnavailable):
    """Handle raw results that cannot become a chart."""
    return _error_response(422, "CalculationUnavailable", str(exc))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors."""
    return _error_response(422, "ValidationError", "Request validation failed",
                           jsonable_encoder(exc.errors()))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other unexpected exceptions."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, "InternalServerError", "An unexpected error occurred")


# Include API router
app.include_router(router, prefix="/api/v1", tags=["API"])


# Root endpoints
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}
