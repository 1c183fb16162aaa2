"""
Exception handlers mapping the error taxonomy to HTTP responses. Call
`add_exception_handlers` on the app at startup, lest every service error
become a 500.
"""

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from structlog import get_logger

from studygroup.core.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    PermissionDeniedError,
    StudyGroupError,
    ValidationError,
)

STATUS_CODES: dict[type[StudyGroupError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    ConflictError: status.HTTP_400_BAD_REQUEST,
    InternalError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_code_for(exc: StudyGroupError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in STATUS_CODES:
            return STATUS_CODES[error_type]

    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def study_group_error_handler(
    request: Request, exc: StudyGroupError
) -> JSONResponse:
    status_code = status_code_for(exc)

    log = get_logger()
    log = log.bind(
        url=str(request.url),
        error=exc.__class__.__name__,
        status_code=status_code,
    )

    if status_code >= 500:
        await log.aerror("api.error", detail=exc.message)
    else:
        await log.ainfo("api.rejected", detail=exc.message)

    return JSONResponse(status_code=status_code, content={"detail": exc.message})


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Malformed bodies are reported as 400, like every other invalid input.
    """
    log = get_logger()
    await log.ainfo("api.invalid_request", url=str(request.url))

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


def add_exception_handlers(app: FastAPI) -> FastAPI:
    app.add_exception_handler(StudyGroupError, study_group_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    return app
