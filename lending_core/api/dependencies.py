"""
Shared API dependencies: the lending system instance, the caller identity
and error translation.
"""

from typing import Optional

from fastapi import Header, HTTPException, status

from ..system import LendingSystem
from ..exceptions import LendingError, ValidationError, Unauthorized, LendingArithmeticError


# Global lending system instance, created on first use
lending_system: Optional[LendingSystem] = None


def get_lending_system() -> LendingSystem:
    global lending_system
    if lending_system is None:
        lending_system = LendingSystem()
    return lending_system


def get_caller(x_caller: str = Header(..., alias="X-Caller")) -> str:
    """Identity of the caller, taken from the X-Caller header"""
    return x_caller


def to_http_exception(error: LendingError) -> HTTPException:
    """Map a lending error to an HTTP error carrying its code"""
    if isinstance(error, ValidationError):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(error, Unauthorized):
        status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(error, LendingArithmeticError):
        status_code = 422
    elif error.code.endswith("NOT_EXIST"):
        status_code = status.HTTP_404_NOT_FOUND
    else:
        status_code = status.HTTP_409_CONFLICT
    return HTTPException(status_code=status_code, detail={"code": error.code, "message": str(error)})
