from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from wakeup.base_microservice import BaseMicroservice, MCPResponse
from wakeup.auth.errors import AuthServiceError

error_service = BaseMicroservice("errors")


def _error_response(status_code: int, message: str, payload=None) -> MCPResponse:
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return MCPResponse(
        message=message,
        status="error",
        payload=payload,
        status_code=status_code,
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as the ``{status: "error", message}`` envelope."""

    @app.exception_handler(AuthServiceError)
    async def handle_auth_error(request: Request, exc: AuthServiceError):
        details = {
            "path": request.url.path,
            "error": exc.__class__.__name__,
            "status_code": exc.status_code,
            "reason": exc.reason,
        }
        if exc.status_code >= 500:
            error_service.log_error(exc, context=f"{request.method} {request.url.path}")
        else:
            error_service.log_warning("request.rejected", details)
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        fields = [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()]
        error_service.log_warning("request.invalid", {"path": request.url.path, "fields": fields})
        return _error_response(400, "Invalid request data", {"fields": fields})

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return _error_response(exc.status_code, str(exc.detail))
