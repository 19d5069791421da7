# vetclinic/errors.py
"""Domain errors and their HTTP translation.

Every operation fails with one of the exceptions below; the handlers
registered by :func:`register_exception_handlers` turn them into JSON
responses so routers never have to build ``HTTPException`` objects for
domain failures.
"""
import logging
from typing import Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class VetClinicError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be processed."

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def to_body(self) -> dict:
        return {"detail": self.detail}


class ValidationError(VetClinicError):
    """Field-level validation failure. ``errors`` maps field name to message."""

    status_code = 422
    default_detail = "Validation failed."

    def __init__(self, errors: Dict[str, str], detail: Optional[str] = None):
        self.errors = dict(errors)
        if detail is None:
            detail = "Invalid fields: " + ", ".join(sorted(self.errors))
        super().__init__(detail)

    def to_body(self) -> dict:
        return {"detail": self.detail, "errors": self.errors}


class ProfileIncomplete(VetClinicError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Complete your profile (name, registration number and phone) before issuing documents."

    def __init__(self, missing_fields: List[str]):
        self.missing_fields = list(missing_fields)
        super().__init__()

    def to_body(self) -> dict:
        return {"detail": self.detail, "missing_fields": self.missing_fields}


class NotFound(VetClinicError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "The requested resource could not be found."

    def __init__(self, resource: str = "Resource", detail: Optional[str] = None):
        self.resource = resource
        super().__init__(detail or f"{resource} not found.")


class Conflict(VetClinicError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The request conflicts with the current state of the resource."


class Unauthenticated(VetClinicError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Could not validate credentials"


class RenderError(VetClinicError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "The document could not be rendered."


async def vetclinic_error_handler(request: Request, exc: VetClinicError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.detail}")
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.detail}")
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(VetClinicError, vetclinic_error_handler)
