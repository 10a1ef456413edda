# services/errors.py
from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """
    Business-rule failure surfaced to the caller as
    {"detail": {"error": <code>, "message": <human readable>}}.
    """

    status_code = 400

    def __init__(self, code: str, message: Optional[str] = None, *, status_code: Optional[int] = None):
        super().__init__(message or code)
        self.code = code
        self.message = message or code
        if status_code is not None:
            self.status_code = status_code

    def to_detail(self) -> dict:
        return {"error": self.code, "message": self.message}


class NotFound(DomainError):
    status_code = 404


class Forbidden(DomainError):
    status_code = 403


class Conflict(DomainError):
    status_code = 409


class UpstreamError(DomainError):
    status_code = 502
