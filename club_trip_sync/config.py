"""
Runtime configuration.

Values come from environment variables. In AWS Lambda, ``CONFIG_SECRET_NAME``
may name a Secrets Manager secret holding a JSON object with the same keys;
environment variables still win over the secret.
"""

import json
import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .auth import normalize_private_key
from .errors import ConfigError
from .log import LogLevel, parse_log_level
from .timezones import DEFAULT_TIMEZONE

REQUIRED_KEYS = (
    "GOOGLE_SERVICE_ACCOUNT_EMAIL",
    "GOOGLE_PRIVATE_KEY",
    "SHEET_ID",
    "CALENDAR_ID",
    "OFFICER_PASSCODE",
)

DEFAULT_ALLOWED_ORIGIN = "*"


def get_secret(secret_name: str) -> str:
    """
    Fetch a secret string from AWS Secrets Manager.

    Raises:
        ConfigError: If the secret cannot be read
    """
    region_name = os.environ.get("AWS_REGION", "us-east-1")
    session = boto3.session.Session()
    client = session.client(
        service_name="secretsmanager",
        region_name=region_name,
    )
    try:
        response = client.get_secret_value(SecretId=secret_name)
    except (BotoCoreError, ClientError) as e:
        raise ConfigError(f"Unable to fetch secret {secret_name}: {e}") from e
    return response["SecretString"]


def is_running_locally(environ: Optional[Mapping[str, str]] = None) -> bool:
    """AWS_LAMBDA_FUNCTION_NAME is always set inside Lambda."""
    environ = os.environ if environ is None else environ
    return not environ.get("AWS_LAMBDA_FUNCTION_NAME")


def _load_secret_values(secret_name: str) -> Dict[str, str]:
    try:
        values = json.loads(get_secret(secret_name))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Secret {secret_name} is not valid JSON: {e}") from e
    if not isinstance(values, dict):
        raise ConfigError(f"Secret {secret_name} must hold a JSON object")
    return {str(k): str(v) for k, v in values.items() if v is not None}


@dataclass
class Config:
    """
    Settings for one process.

    Attributes:
        service_account_email: Service account used for Sheets and Calendar
        private_key: PEM private key of the service account
        sheet_id: Spreadsheet holding trips, requests and settings
        calendar_id: Calendar that mirrors the trips
        officer_passcode: Shared officer secret
        allowed_origin: Value for Access-Control-Allow-Origin
        site_base_url: Public site root, without a trailing slash
        time_zone: Zone trip times are entered in
        log_level: Verbosity of the package logger
    """
    service_account_email: str
    private_key: str
    sheet_id: str
    calendar_id: str
    officer_passcode: str
    allowed_origin: str = DEFAULT_ALLOWED_ORIGIN
    site_base_url: str = ""
    time_zone: str = DEFAULT_TIMEZONE
    log_level: LogLevel = LogLevel.NORMAL

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """
        Build the configuration from the environment.

        Raises:
            ConfigError: If a required key is missing
        """
        environ = dict(os.environ if environ is None else environ)

        secret_name = environ.get("CONFIG_SECRET_NAME", "").strip()
        if secret_name and not is_running_locally(environ):
            values = _load_secret_values(secret_name)
            values.update({k: v for k, v in environ.items() if v})
        else:
            values = environ

        missing = [key for key in REQUIRED_KEYS if not str(values.get(key) or "").strip()]
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

        return cls(
            service_account_email=values["GOOGLE_SERVICE_ACCOUNT_EMAIL"].strip(),
            private_key=normalize_private_key(values["GOOGLE_PRIVATE_KEY"]),
            sheet_id=values["SHEET_ID"].strip(),
            calendar_id=values["CALENDAR_ID"].strip(),
            officer_passcode=values["OFFICER_PASSCODE"].strip(),
            allowed_origin=values.get("ALLOWED_ORIGIN") or DEFAULT_ALLOWED_ORIGIN,
            site_base_url=(values.get("SITE_BASE_URL") or "").strip().rstrip("/"),
            time_zone=values.get("TIMEZONE") or DEFAULT_TIMEZONE,
            log_level=parse_log_level(values.get("LOG_LEVEL")),
        )
