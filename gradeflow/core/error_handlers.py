import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from gradeflow.core.exceptions import PartialBatchFailure, RemoteOperationError, ValidationError

logger = logging.getLogger(__name__)


def add_error_handlers(app: FastAPI):
    """Map workflow errors to HTTP responses at the operation boundary."""

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": str(exc)},
        )

    @app.exception_handler(RemoteOperationError)
    async def remote_error_handler(request: Request, exc: RemoteOperationError):
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": str(exc)},
        )

    @app.exception_handler(PartialBatchFailure)
    async def partial_failure_handler(request: Request, exc: PartialBatchFailure):
        return JSONResponse(
            status_code=status.HTTP_207_MULTI_STATUS,
            content={"detail": str(exc), "result": exc.result.model_dump(mode="json")},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )
