"""Application exception types."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from token_strategies.schemas.error import ErrorResponse


class ApiError(Exception):
    """Structured API error that maps directly to contract error payloads."""

    def __init__(self, status_code: int, code: str, message: str, details: dict | None = None) -> None:
        self.status_code = status_code
        self.payload = ErrorResponse(code=code, message=message, details=details)
        super().__init__(message)


def register_error_handler(app: FastAPI) -> None:
    """Render ``ApiError`` as its JSON payload on ``app``."""

    @app.exception_handler(ApiError)
    async def handle_api_error(_: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.payload.model_dump(mode="json", exclude_none=True),
        )


__all__ = ["ApiError", "register_error_handler"]
