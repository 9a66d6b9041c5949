import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from torquetrack.errors import InsufficientStockError, InvalidStateError, NotFoundError, ShopError, ValidationError
from torquetrack.schemas import ErrorOut

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = {
    NotFoundError: 404,
    InvalidStateError: 409,
    InsufficientStockError: 409,
    ValidationError: 422,
}


def status_for(exc: ShopError) -> int:
    for error_type, status_code in STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status_code
    return 400


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ShopError)
    async def handle_shop_error(request: Request, exc: ShopError):
        status_code = status_for(exc)
        logger.info('%s %s rejected with %s: %s', request.method, request.url.path, exc.code, exc)
        return JSONResponse(
            status_code=status_code,
            content=ErrorOut(error=exc.code, detail=str(exc)).model_dump(),
        )
