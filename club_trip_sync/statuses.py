"""
Closed status types for trips and sign-up requests.

Each type has one parse routine. Officer input goes through the strict
``parse_*_input`` functions; values read back from the spreadsheet go
through ``read_*_from_row``, which raises ``DataIntegrityError`` instead of
``ValidationError`` because a bad stored value is our fault, not the
caller's.
"""

from enum import Enum
from typing import Any, Optional, Type, TypeVar

from .errors import DataIntegrityError, ValidationError

E = TypeVar("E", bound="_ClosedStatus")


class _ClosedStatus(str, Enum):

    @classmethod
    def parse(cls: Type[E], value: Any) -> Optional[E]:
        """Upper-case and trim ``value``; None if it is not a member."""
        text = str(value if value is not None else "").strip().upper()
        try:
            return cls(text)
        except ValueError:
            return None

    def __str__(self) -> str:
        return self.value


class SignupStatus(_ClosedStatus):
    """Trip-level gate on member sign-up requests."""
    REQUEST_OPEN = "REQUEST_OPEN"
    MEETING_ONLY = "MEETING_ONLY"
    FULL = "FULL"

    @property
    def accepts_requests(self) -> bool:
        return self is SignupStatus.REQUEST_OPEN


class RequestStatus(_ClosedStatus):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"


def _describe(value: Any) -> str:
    text = str(value if value is not None else "").strip().upper()
    return text or "(missing)"


def parse_signup_status_input(value: Any, field_name: str = "signupStatus") -> SignupStatus:
    """
    Strictly parse officer input. Empty input is rejected.

    Raises:
        ValidationError: If the value is not a known signup status
    """
    status = SignupStatus.parse(value)
    if status is None:
        raise ValidationError(f"Invalid {field_name}: {_describe(value)}")
    return status


def read_signup_status_from_row(value: Any, context: str = "signupStatus") -> SignupStatus:
    """
    Leniently read a stored signup status.

    Rows written before the column existed have no value; those trips stay
    open for requests until an officer edits them.

    Raises:
        DataIntegrityError: If a non-empty value is not a known status
    """
    if not str(value if value is not None else "").strip():
        return SignupStatus.REQUEST_OPEN
    status = SignupStatus.parse(value)
    if status is None:
        raise DataIntegrityError(f"Invalid {context}: {_describe(value)}")
    return status


def parse_request_status_input(value: Any) -> RequestStatus:
    status = RequestStatus.parse(value)
    if status is None:
        raise ValidationError("Invalid status")
    return status


def read_request_status_from_row(value: Any, context: str = "status") -> RequestStatus:
    """Stored request statuses have no legacy default; empty is corrupt."""
    status = RequestStatus.parse(value)
    if status is None:
        raise DataIntegrityError(f"Invalid {context}: {_describe(value)}")
    return status
