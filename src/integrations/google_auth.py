"""
Google API credentials and service construction

Loads an already-authorized user token (token.json) and refreshes it when
expired. Running the OAuth consent flow is left to the user.
"""

import logging
from pathlib import Path
from typing import Any, List

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

TASKS_SCOPE = 'https://www.googleapis.com/auth/tasks'
DRIVE_SCOPE = 'https://www.googleapis.com/auth/drive'
SHEETS_SCOPE = 'https://www.googleapis.com/auth/spreadsheets'

REPORT_SCOPES = [DRIVE_SCOPE, SHEETS_SCOPE]
SYNC_SCOPES = [TASKS_SCOPE]

# Everything a discovery client call can raise: API errors plus transport
# (socket, httplib2) and credential refresh failures
GOOGLE_API_ERRORS = (HttpError, httplib2.HttpLib2Error, GoogleAuthError, OSError)

logger = logging.getLogger("TaskRelay.GoogleAuth")


class GoogleCredentialsError(Exception):
    """Raised when no usable Google token is available"""


def load_credentials(token_file: str, scopes: List[str]) -> Credentials:
    """
    Load authorized-user credentials, refreshing them if needed

    Args:
        token_file: Path to the authorized-user JSON token
        scopes: Scopes the token must carry

    Returns:
        Valid credentials

    Raises:
        GoogleCredentialsError: token missing, unreadable or not refreshable
    """
    token_path = Path(token_file).expanduser()
    if not token_path.exists():
        raise GoogleCredentialsError(f"Google token file not found: {token_path}")

    try:
        creds = Credentials.from_authorized_user_file(str(token_path), scopes)
    except ValueError as e:
        raise GoogleCredentialsError(f"Invalid Google token file {token_path}: {e}") from e

    if creds.valid:
        return creds

    if not (creds.expired and creds.refresh_token):
        raise GoogleCredentialsError(
            f"Google token in {token_path} is invalid and cannot be refreshed"
        )

    logger.info("Refreshing expired Google token...")
    try:
        creds.refresh(Request())
    except GoogleAuthError as e:
        raise GoogleCredentialsError(f"Failed to refresh Google token: {e}") from e

    try:
        token_path.write_text(creds.to_json())
    except OSError as e:
        logger.warning(f"⚠️  Could not save refreshed Google token to {token_path}: {e}")
    return creds


def build_service(name: str, version: str, credentials: Credentials) -> Any:
    """Build a discovery-based API client"""
    return build(name, version, credentials=credentials, cache_discovery=False)
