"""
Lambda proxy responses in the ``{"ok": ..., "data"|"error": ...}`` envelope.
"""

import functools
import json
from typing import Any, Callable, Dict

from .errors import TripSyncError

INTERNAL_ERROR_MESSAGE = "Internal error"


def cors_headers(allowed_origin: str) -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": allowed_origin,
        "Access-Control-Allow-Methods": "GET, POST, PATCH, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
        "Access-Control-Max-Age": "86400",
        "Content-Type": "application/json",
    }


def success(data: Any, allowed_origin: str = "*", status: int = 200) -> Dict[str, Any]:
    return {
        "statusCode": status,
        "headers": cors_headers(allowed_origin),
        "body": json.dumps({"ok": True, "data": data}),
    }


def error(message: str, status: int = 400, allowed_origin: str = "*") -> Dict[str, Any]:
    return {
        "statusCode": status,
        "headers": cors_headers(allowed_origin),
        "body": json.dumps({"ok": False, "error": message}),
    }


def handle_errors(handler: Callable[..., Any]) -> Callable[..., Dict[str, Any]]:
    """
    Wrap a ``handler(ctx, ...)`` that returns response data.

    The data becomes a 200 success. A ``TripSyncError`` becomes an error
    response with its own status; anything else is logged with its
    traceback and reported as a 500.
    """

    @functools.wraps(handler)
    def wrapper(ctx, *args, **kwargs) -> Dict[str, Any]:
        origin = ctx.config.allowed_origin
        try:
            data = handler(ctx, *args, **kwargs)
        except TripSyncError as e:
            if e.status >= 500:
                ctx.logger.error(f"{handler.__name__} failed: {e.message}")
            else:
                ctx.logger.debug(f"{handler.__name__} rejected: {e.message}")
            return error(e.message, e.status, origin)
        except Exception as e:
            ctx.logger.error(f"{handler.__name__} failed: {e}", exc_info=True)
            return error(INTERNAL_ERROR_MESSAGE, 500, origin)
        return success(data, origin)

    return wrapper
