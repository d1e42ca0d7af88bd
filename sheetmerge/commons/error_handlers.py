from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from sheetmerge.commons.exceptions import BaseError, ValidationError
from sheetmerge.libs.log import get_logger


logger = get_logger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(BaseError)
    async def handle_base_error(request: Request, exc: BaseError):
        if exc.status_code >= 500:
            logger.error(f"{exc.error_code} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        # errors() may hold exception objects in "ctx", keep only the plain fields
        errors = [
            {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
            for err in exc.errors()
        ]
        error = ValidationError(error_data={"errors": errors})
        return JSONResponse(status_code=error.status_code, content=error.to_response())

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={
                "error_code": "internal_server_error",
                "error_message": "Internal Server Error",
                "error_data": {},
            },
        )
