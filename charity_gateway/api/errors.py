"""Translate domain errors into HTTP responses"""

import logging

from fastapi import HTTPException

from charity_gateway.domain.exceptions import (
    AuthenticationError,
    DomainException,
    NotFoundError,
    PermissionDeniedError,
    StoreError,
    ValidationError,
)

STATUS_BY_ERROR = (
    (ValidationError, 400),
    (AuthenticationError, 401),
    (PermissionDeniedError, 403),
    (NotFoundError, 404),
)


def http_error(exc: Exception, request_id: str) -> HTTPException:
    """Map an exception raised by a service call to the HTTPException to raise"""
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            logging.warning(f"{error_type.__name__}: {exc}", extra={"request_id": request_id})
            return HTTPException(status_code=status_code, detail=str(exc))

    if isinstance(exc, StoreError):
        logging.error(f"Store error: {exc}", extra={"request_id": request_id})
        return HTTPException(status_code=500, detail="Failed to persist changes")

    if isinstance(exc, DomainException):
        logging.error(f"Unhandled domain error: {exc}", extra={"request_id": request_id})
    else:
        logging.error(f"Unexpected error: {exc}", extra={"request_id": request_id})
    return HTTPException(status_code=500, detail="Internal server error")
