from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse


class BaseAppException(HTTPException):
    """HTTP error carrying a stable, machine-readable error kind"""
    error_code = "APP_ERROR"

    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)

class ValidationError(BaseAppException):
    error_code = "VALIDATION_ERROR"

    def __init__(self, detail: str = "Validation error"):
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)

class NotFoundError(BaseAppException):
    error_code = "NOT_FOUND"

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)

class InvalidTransitionError(BaseAppException):
    error_code = "INVALID_TRANSITION"

    def __init__(self, detail: str = "Operation not allowed in the current state"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)

class AuthorizationError(BaseAppException):
    error_code = "AUTHORIZATION_ERROR"

    def __init__(self, detail: str = "Not allowed to perform this action"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)

class AuthenticationError(BaseAppException):
    error_code = "AUTHENTICATION_ERROR"

    def __init__(self, detail: str = "Invalid authentication credentials"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)
        self.headers = {"WWW-Authenticate": "Bearer"}


async def app_exception_handler(request: Request, exc: BaseAppException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error_code, "message": exc.detail, "detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )
