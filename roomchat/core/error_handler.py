
from fastapi import Request, status
from fastapi.responses import JSONResponse

from roomchat.core.exceptions import BaseAPIException, InternalServerErrorException
from roomchat.core.log_config import logger


def error_body(exc: BaseAPIException) -> dict:
    body = {"message": exc.detail, "code": exc.code}
    reason = getattr(exc, "reason", None)
    if reason is not None:
        body["reason"] = reason.value
    return body

async def custom_exception_handler(request: Request, exc: BaseAPIException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc),
        headers=exc.headers,
    )

async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(InternalServerErrorException()),
    )
