import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from receivables.core.config import settings
from receivables.core.errors import SettlementError, SettlementSystemError, ValidationError
from receivables.core.logging import setup_logging
from receivables.routers import invoices, payments

logger = logging.getLogger(__name__)

setup_logging(settings.LOG_LEVEL)

OPENAPI_TAGS = [
    {"name": "Invoices", "description": "Query invoices awaiting payment and their allocations."},
    {"name": "Payments", "description": "Record customer payments and allocate them to invoices."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    debug=settings.DEBUG,
    description=(
        "Customer payment allocation and invoice settlement API. "
        "Records payments, distributes them across outstanding invoices and "
        "keeps invoice paid/due amounts and statuses consistent."
    ),
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Idempotency-Replayed"],
)


@app.exception_handler(SettlementError)
async def settlement_exception_handler(request: Request, exc: SettlementError) -> JSONResponse:
    """Render settlement errors as ``{kind, category, message, details}``."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed bodies in the same shape as payment validation errors."""
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    error = ValidationError(errors, message="Invalid request")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    error = SettlementSystemError("Internal server error")
    return JSONResponse(status_code=500, content=error.to_dict())


app.include_router(invoices.router, prefix="/v1/invoices", tags=["Invoices"])
app.include_router(payments.router, prefix="/v1/payments", tags=["Payments"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "status": "running",
    }
