"""
Officer passcode checks with per-client lockout.

Failed attempts are counted per client address in process memory. The
table is lost when the process is recycled.
"""

import hmac
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .errors import AuthorizationError, RateLimitError, ValidationError

MAX_ATTEMPTS = 5
LOCKOUT_SECONDS = 60

RATE_LIMITED_MESSAGE = "Too many attempts. Please wait a minute."
NOT_AUTHORIZED_MESSAGE = "Not authorized"


@dataclass
class AccessAttempt:
    count: int
    last_attempt: float


class AttemptStore:
    """
    Failed-attempt counters keyed by client address.

    A record whose last failure is more than ``window`` seconds old is
    forgotten, both when checking and when recording the next failure.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        max_attempts: int = MAX_ATTEMPTS,
        window: float = LOCKOUT_SECONDS,
    ):
        self._clock = clock
        self.max_attempts = max_attempts
        self.window = window
        self._records: Dict[str, AccessAttempt] = {}
        self._lock = threading.Lock()

    def _current(self, client_address: str) -> Optional[AccessAttempt]:
        record = self._records.get(client_address)
        if record and self._clock() - record.last_attempt > self.window:
            del self._records[client_address]
            return None
        return record

    def is_rate_limited(self, client_address: str) -> bool:
        with self._lock:
            record = self._current(client_address)
            return record is not None and record.count >= self.max_attempts

    def record_failed_attempt(self, client_address: str) -> int:
        """Count one failure and return the running total."""
        with self._lock:
            record = self._current(client_address)
            now = self._clock()
            if record is None:
                record = AccessAttempt(count=1, last_attempt=now)
                self._records[client_address] = record
            else:
                record.count += 1
                record.last_attempt = now
            return record.count

    def clear_failed_attempts(self, client_address: str) -> None:
        with self._lock:
            self._records.pop(client_address, None)

    def failed_attempts(self, client_address: str) -> int:
        with self._lock:
            record = self._current(client_address)
            return record.count if record else 0


def _passcodes_match(supplied: str, expected: str) -> bool:
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


class OfficerGate:
    """
    Guards officer-only operations behind the shared passcode.

    Attributes:
        attempts: Failure table shared by every gated operation
    """

    def __init__(self, passcode: str, attempts: Optional[AttemptStore] = None, logger=None):
        self._passcode = passcode
        self.attempts = attempts or AttemptStore()
        self._logger = logger

    def authorize(self, secret, client_address: str) -> None:
        """
        Check ``secret`` for a client.

        The lockout is checked before the passcode is compared, so a
        locked-out client learns nothing about its guess.

        Args:
            secret: Passcode supplied by the caller, may be None
            client_address: Caller's address, the lockout key

        Raises:
            RateLimitError: If the client has too many recent failures
            AuthorizationError: If the passcode is wrong or missing
        """
        if self.attempts.is_rate_limited(client_address):
            raise RateLimitError(RATE_LIMITED_MESSAGE)

        supplied = str(secret if secret is not None else "").strip()
        if not self._passcode or not _passcodes_match(supplied, self._passcode):
            count = self.attempts.record_failed_attempt(client_address)
            if self._logger:
                self._logger.warn(f"Failed officer passcode from {client_address} ({count})")
            raise AuthorizationError(NOT_AUTHORIZED_MESSAGE)

        self.attempts.clear_failed_attempts(client_address)


def verify_officer(ctx, body: dict, client_address: str) -> dict:
    """
    Check an officer passcode on its own, for the officer login form.

    Raises:
        RateLimitError: If the client is locked out
        ValidationError: If no passcode was supplied
        AuthorizationError: If the passcode is wrong
    """
    gate = ctx.officer_gate
    if gate.attempts.is_rate_limited(client_address):
        raise RateLimitError(RATE_LIMITED_MESSAGE)
    if not str(body.get("officerSecret") or "").strip():
        raise ValidationError("Passcode is required")
    gate.authorize(body.get("officerSecret"), client_address)
    return {}
