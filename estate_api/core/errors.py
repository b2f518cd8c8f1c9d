"""
Failure taxonomy for the messaging core.

Each class is an ``HTTPException`` so services can raise it directly and
FastAPI renders it without extra handlers. ``NotFound`` maps to 204 with no
body so a missing thread, property or recipient is indistinguishable from an
empty answer.
"""

from __future__ import annotations

from fastapi import HTTPException, status


class Unauthenticated(HTTPException):
    def __init__(self, detail: str = "Authentication required"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class Forbidden(HTTPException):
    def __init__(self, detail: str = "Access denied"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class NotFound(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_204_NO_CONTENT, detail=detail)


class BadRequest(HTTPException):
    def __init__(self, detail: str = "Bad request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
