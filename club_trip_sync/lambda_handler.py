"""
AWS Lambda handler for Club Trip Sync.

Serves the site's API through API Gateway proxy events and runs the
calendar sync when invoked by an EventBridge schedule.
"""

import base64
import json
import re
from typing import Any, Callable, Dict, List, Optional, Pattern, Tuple

from .config import Config
from .context import AppContext
from .errors import ConfigError, TripSyncError, ValidationError
from .log import configure_logging
from .officer import verify_officer
from .responses import cors_headers, error, handle_errors
from .site_settings import get_site_settings, update_site_settings
from .suggestions import submit_suggestion
from .sync import sync_trips_with_calendar
from .trip_requests import create_request, list_requests_by_trip, update_request_status

UNKNOWN_CLIENT = "unknown"

_context: Optional[AppContext] = None


def get_context() -> AppContext:
    """Build the context on first use and reuse it while the container lives."""
    global _context
    if _context is None:
        config = Config.from_env()
        _context = AppContext.from_config(config, configure_logging(config.log_level))
    return _context


def set_context(ctx: Optional[AppContext]) -> None:
    global _context
    _context = ctx


def parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Decode the JSON request body. An absent body is an empty object.

    Raises:
        ValidationError: If the body is not a JSON object
    """
    raw = event.get("body")
    if raw is None or raw == "":
        return {}
    if event.get("isBase64Encoded"):
        try:
            raw = base64.b64decode(raw).decode("utf-8")
        except (ValueError, UnicodeDecodeError) as e:
            raise ValidationError("Invalid JSON body") from e
    try:
        body = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError("Invalid JSON body") from e
    if not isinstance(body, dict):
        raise ValidationError("Invalid JSON body")
    return body


def client_address(event: Dict[str, Any]) -> str:
    request_context = event.get("requestContext") or {}
    identity = request_context.get("identity") or {}
    http = request_context.get("http") or {}
    return identity.get("sourceIp") or http.get("sourceIp") or UNKNOWN_CLIENT


def request_method(event: Dict[str, Any]) -> str:
    method = event.get("httpMethod")
    if not method:
        method = ((event.get("requestContext") or {}).get("http") or {}).get("method", "")
    return str(method).upper()


def request_path(event: Dict[str, Any]) -> str:
    path = event.get("path") or event.get("rawPath") or "/"
    if len(path) > 1:
        path = path.rstrip("/")
    return path


@handle_errors
def _create_request(ctx, event, match):
    return create_request(ctx, parse_body(event))


@handle_errors
def _list_requests(ctx, event, match):
    return list_requests_by_trip(ctx, parse_body(event), client_address(event))


@handle_errors
def _update_request_status(ctx, event, match):
    return update_request_status(ctx, match.group(1), parse_body(event), client_address(event))


@handle_errors
def _get_site_settings(ctx, event, match):
    return get_site_settings(ctx)


@handle_errors
def _update_site_settings(ctx, event, match):
    return update_site_settings(ctx, parse_body(event), client_address(event))


@handle_errors
def _submit_suggestion(ctx, event, match):
    return submit_suggestion(ctx, parse_body(event))


@handle_errors
def _verify_officer(ctx, event, match):
    return verify_officer(ctx, parse_body(event), client_address(event))


@handle_errors
def _run_sync(ctx, event, match):
    """
    Run the sync inline, or hand it to the background worker when the body
    asks for it. Lambda freezes that worker once the response is sent, so a
    background run may wait for the next invocation or be lost with the
    container; the scheduled EventBridge sync is the backstop.
    """
    body = parse_body(event)
    ctx.officer_gate.authorize(body.get("officerSecret"), client_address(event))
    if body.get("background"):
        ctx.background_sync.schedule()
        return {"scheduled": True}
    return sync_trips_with_calendar(ctx).to_dict()


@handle_errors
def _health(ctx, event, match):
    return {"status": "ok"}


Route = Tuple[str, Pattern, Callable[..., Dict[str, Any]]]

ROUTES: List[Route] = [
    ("POST", re.compile(r"^/api/requests$"), _create_request),
    ("POST", re.compile(r"^/api/requests/by-trip$"), _list_requests),
    ("PATCH", re.compile(r"^/api/requests/([^/]+)/status$"), _update_request_status),
    ("GET", re.compile(r"^/api/site-settings$"), _get_site_settings),
    ("POST", re.compile(r"^/api/site-settings$"), _update_site_settings),
    ("POST", re.compile(r"^/api/suggest$"), _submit_suggestion),
    ("POST", re.compile(r"^/api/officer/verify$"), _verify_officer),
    ("POST", re.compile(r"^/api/sync$"), _run_sync),
    ("GET", re.compile(r"^/health$"), _health),
]


def route(ctx: AppContext, event: Dict[str, Any]) -> Dict[str, Any]:
    """Dispatch one API Gateway proxy event."""
    method = request_method(event)
    path = request_path(event)
    origin = ctx.config.allowed_origin

    if method == "OPTIONS":
        return {"statusCode": 204, "headers": cors_headers(origin), "body": ""}

    path_matched = False
    for route_method, pattern, handler in ROUTES:
        match = pattern.match(path)
        if not match:
            continue
        path_matched = True
        if route_method == method:
            return handler(ctx, event, match)

    if path_matched:
        return error("Method not allowed", 405, origin)
    return error("Not found", 404, origin)


def run_scheduled_sync(ctx: AppContext) -> Dict[str, Any]:
    try:
        report = sync_trips_with_calendar(ctx)
    except TripSyncError as e:
        ctx.logger.error(f"Scheduled calendar sync failed: {e.message}")
        return {"statusCode": e.status, "body": json.dumps({"error": e.message})}
    except Exception as e:
        ctx.logger.error(f"Scheduled calendar sync failed: {e}", exc_info=True)
        return {"statusCode": 500, "body": json.dumps({"error": f"An error occurred: {e}"})}
    return {
        "statusCode": 200,
        "body": json.dumps({
            "message": "Calendar sync completed successfully",
            "report": report.to_dict(),
        }),
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    AWS Lambda entry point.

    Args:
        event: API Gateway proxy event, or an EventBridge scheduled event
        context: Lambda context

    Returns:
        Lambda proxy response
    """
    try:
        ctx = get_context()
    except ConfigError as e:
        return error(e.message, e.status)

    if event.get("source") == "aws.events":
        return run_scheduled_sync(ctx)
    return route(ctx, event)
