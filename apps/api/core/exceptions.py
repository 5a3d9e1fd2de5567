"""
Custom exception classes and error handling.

Domain errors raised by the services, and the HTTP exceptions the routers
translate them into.
"""
from fastapi import HTTPException, status
from typing import Any, Dict, Optional, Sequence


def format_statement(statement: str, params: Sequence[Any] = ()) -> str:
    """Render a positional-parameter statement with its values inlined, for error context."""
    rendered = str(statement)
    for value in params:
        rendered = rendered.replace("?", f'"{value}"', 1)
    return rendered


class RepsError(Exception):
    """Base class for reporting-engine errors."""


class TeamNotFoundError(RepsError):
    """A referenced team does not exist and creating it was not allowed."""

    def __init__(self, team_name: str):
        super().__init__(f"team not found: {team_name!r}")
        self.team_name = team_name


class StoreFailure(RepsError):
    """A store round trip failed for a reason other than "no rows"."""

    def __init__(self, statement: str, params: Sequence[Any] = ()):
        self.statement = statement
        self.params = tuple(params)
        super().__init__(format_statement(statement, self.params))


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {identifier}",
            error_code="NOT_FOUND"
        )


class ValidationError(APIException):
    """Validation error."""

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code
        )


class StoreUnavailableError(APIException):
    """A mutation could not be written to the store."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            error_code="STORE_FAILURE"
        )
