# pagecraft/core/errors.py
# Errores de servicio: cada uno lleva el status HTTP con el que se expone.
from __future__ import annotations


class ServiceError(Exception):
    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(ServiceError):
    """Page, version or section does not exist."""

    status_code = 404


class BadRequestError(ServiceError):
    status_code = 400


class InvalidStateError(ServiceError):
    """Operation is not allowed in the current lifecycle state (e.g. deleting the published version)."""

    status_code = 409
