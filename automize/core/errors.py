# automize/core/errors.py
from __future__ import annotations

from automize.core.enums import ErrorKind


class WatchtowerError(Exception):
    """Error esperado de la capa de servicios; el router lo traduce a envelope."""

    kind: ErrorKind = ErrorKind.UPSTREAM
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(WatchtowerError):
    kind = ErrorKind.VALIDATION
    status_code = 400


class NotFoundError(WatchtowerError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404


class ConflictError(WatchtowerError):
    kind = ErrorKind.CONFLICT
    status_code = 409


class NotificationError(Exception):
    """Fallo al enviar por Discord/WhatsApp. Se registra y se descarta."""
