"""
Helpers for building Google API clients from a bare bearer token.
"""

from typing import Any, Callable, Optional, Tuple

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

# Builds an API resource from an access token. Tests substitute their own.
ServiceFactory = Callable[[str], Any]


def build_service(name: str, version: str, token: str) -> Any:
    """
    Build a discovery-based client that sends ``token`` as its bearer
    credential. The static discovery documents shipped with the client are
    used, so no network call happens here.
    """
    return build(
        name,
        version,
        credentials=Credentials(token=token),
        cache_discovery=False,
    )


def service_factory_for(name: str, version: str) -> ServiceFactory:
    def factory(token: str) -> Any:
        return build_service(name, version, token)
    return factory


def http_error_details(error: HttpError) -> Tuple[Optional[int], str]:
    """Upstream status code and body text of an ``HttpError``."""
    status = getattr(error.resp, "status", None)
    try:
        status = int(status) if status is not None else None
    except (TypeError, ValueError):
        status = None
    content = error.content
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    return status, content or ""
