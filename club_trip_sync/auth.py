"""
Service-account authentication for the Sheets and Calendar APIs.

A signed JWT assertion is exchanged at Google's OAuth endpoint for a
short-lived bearer token. See
https://developers.google.com/identity/protocols/oauth2/service-account#httprest
"""

import threading
import time
from typing import Callable, Optional, Tuple

import requests
from google.auth import crypt, jwt

from .errors import AuthError

TOKEN_URI = "https://oauth2.googleapis.com/token"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/calendar",
]

# Lifetime requested for each assertion, in seconds.
ASSERTION_LIFETIME = 3600

# Cached tokens are dropped this many seconds before they expire.
EXPIRY_MARGIN = 60

REQUEST_TIMEOUT = 30


def normalize_private_key(private_key: str) -> str:
    """Expand literal ``\\n`` sequences, as stored in environment variables."""
    return str(private_key or "").replace("\\n", "\n").strip()


def create_assertion(
    service_account_email: str,
    private_key_pem: str,
    now: Optional[int] = None,
) -> Tuple[str, int]:
    """
    Build and sign the RS256 JWT assertion.

    Args:
        service_account_email: Issuer of the assertion
        private_key_pem: PKCS#8 PEM private key of the service account
        now: Issue time in epoch seconds, defaults to the current time

    Returns:
        The encoded assertion and its expiry time in epoch seconds

    Raises:
        AuthError: If the private key cannot be loaded
    """
    issued_at = int(time.time()) if now is None else int(now)
    expires_at = issued_at + ASSERTION_LIFETIME
    payload = {
        "iss": service_account_email,
        "scope": " ".join(SCOPES),
        "aud": TOKEN_URI,
        "iat": issued_at,
        "exp": expires_at,
    }
    try:
        signer = crypt.RSASigner.from_string(normalize_private_key(private_key_pem))
    except (ValueError, TypeError, IndexError) as e:
        raise AuthError(f"Invalid service account private key: {e}") from e

    assertion = jwt.encode(signer, payload, header={"alg": "RS256", "typ": "JWT"})
    if isinstance(assertion, bytes):
        assertion = assertion.decode("ascii")
    return assertion, expires_at


def exchange_assertion(assertion: str) -> str:
    """
    Exchange a signed assertion for an access token.

    Raises:
        AuthError: If the endpoint rejects the assertion or is unreachable
    """
    try:
        response = requests.post(
            TOKEN_URI,
            data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=REQUEST_TIMEOUT,
        )
    except requests.exceptions.RequestException as e:
        raise AuthError(f"Failed to get access token: {e}") from e

    if not response.ok:
        raise AuthError(
            "Failed to get access token",
            upstream_status=response.status_code,
            upstream_body=response.text,
        )

    try:
        token = response.json().get("access_token")
    except ValueError:
        token = None
    if not token:
        raise AuthError(
            "Token response did not include an access_token",
            upstream_status=response.status_code,
            upstream_body=response.text,
        )
    return token


def get_access_token(service_account_email: str, private_key_pem: str) -> str:
    """Mint a fresh bearer token for the Sheets and Calendar scopes."""
    assertion, _ = create_assertion(service_account_email, private_key_pem)
    return exchange_assertion(assertion)


class TokenProvider:
    """
    Hands out bearer tokens, re-minting only when the cached one is close
    to expiry.

    Attributes:
        service_account_email: Service account issuing the assertions
        private_key_pem: PEM key used to sign them
    """

    def __init__(
        self,
        service_account_email: str,
        private_key_pem: str,
        clock: Callable[[], float] = time.time,
    ):
        self.service_account_email = service_account_email
        self.private_key_pem = private_key_pem
        self._clock = clock
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._expires_at = 0

    def get_token(self) -> str:
        with self._lock:
            now = int(self._clock())
            if self._token and now < self._expires_at - EXPIRY_MARGIN:
                return self._token
            assertion, expires_at = create_assertion(
                self.service_account_email, self.private_key_pem, now=now
            )
            self._token = exchange_assertion(assertion)
            self._expires_at = expires_at
            return self._token

    def invalidate(self) -> None:
        """Forget the cached token, e.g. after the upstream rejected it."""
        with self._lock:
            self._token = None
            self._expires_at = 0
