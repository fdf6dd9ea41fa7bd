import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from bambora_service.database import init_db
from bambora_service.exceptions import (
    HardDecline,
    InvalidPaymentState,
    InvalidRequestException,
    PaymentGatewayException,
)
from bambora_service.routes import router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Bambora Payment Microservice")

app.include_router(router)

init_db()


def _status_for(exc):
    if isinstance(exc, HardDecline):
        return 402
    if isinstance(exc, InvalidPaymentState):
        return 409
    if isinstance(exc, InvalidRequestException):
        return 400
    return 502


@app.exception_handler(PaymentGatewayException)
async def payment_gateway_exception_handler(request: Request, exc: PaymentGatewayException):
    status_code = _status_for(exc)
    logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.user_message or exc.message, "code": exc.code},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})
