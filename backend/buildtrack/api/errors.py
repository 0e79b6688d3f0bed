from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from buildtrack.core.logging import logger
from buildtrack.services.financials.errors import (
    FinancialsError,
    NotFound,
    ValidationError,
    AggregationFailure,
    ConcurrencyConflict,
)

STATUS_CODES = {
    NotFound: 404,
    ValidationError: 400,
    ConcurrencyConflict: 409,
    AggregationFailure: 503,
}


def status_code_for(exc: FinancialsError) -> int:
    for cls, code in STATUS_CODES.items():
        if isinstance(exc, cls):
            return code
    return 500


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(FinancialsError)
    async def _financials_error(request: Request, exc: FinancialsError):
        code = status_code_for(exc)
        if code >= 500:
            logger.error("request_failed", path=request.url.path, error=str(exc), status=code)
        return JSONResponse(status_code=code, content={"detail": str(exc)})
