"""Google Calendar OAuth.

The desktop OAuth client secret (``credentials.json``, downloaded from the
Google Cloud Console) and the authorized user token (``tokens.json``) both
live in the app directory.

## Flow

1. ``connpass-watcher auth`` runs the installed-app flow: a browser window
   opens, a local server on port 3000 receives the callback, and the token
   is written to ``tokens.json``
2. Scans load the saved token and refresh it when expired

Only the ``calendar.events`` scope is requested.
"""

from __future__ import annotations

import logging
from pathlib import Path

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar.events"]
CREDENTIALS_FILENAME = "credentials.json"
TOKEN_FILENAME = "tokens.json"
OAUTH_CALLBACK_PORT = 3000


class CalendarAuthError(Exception):
    """Raised when calendar credentials are missing or unusable."""


def credentials_path(app_dir: Path) -> Path:
    return app_dir / CREDENTIALS_FILENAME


def token_path(app_dir: Path) -> Path:
    return app_dir / TOKEN_FILENAME


def save_credentials(creds: Credentials, app_dir: Path) -> None:
    """Write the authorized user token to the app directory."""
    path = token_path(app_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(creds.to_json(), encoding="utf-8")
    logger.debug(f"Saved calendar token to {path}")


def load_credentials(app_dir: Path) -> Credentials:
    """Load the saved token, refreshing it if expired.

    Raises:
        CalendarAuthError: If no usable token exists
    """
    path = token_path(app_dir)
    if not path.exists():
        raise CalendarAuthError(
            f"No calendar token at {path}. Run 'connpass-watcher auth' first."
        )

    try:
        creds = Credentials.from_authorized_user_file(str(path), SCOPES)
    except ValueError as e:
        raise CalendarAuthError(f"Invalid calendar token file {path}: {e}") from e

    if creds.valid:
        return creds

    if not creds.refresh_token:
        raise CalendarAuthError("Calendar token has no refresh token. Re-run 'auth'.")

    try:
        creds.refresh(Request())
    except GoogleAuthError as e:
        raise CalendarAuthError(f"Failed to refresh calendar token: {e}") from e

    save_credentials(creds, app_dir)
    return creds


def authenticate(app_dir: Path, port: int = OAUTH_CALLBACK_PORT) -> Credentials:
    """Run the browser-based installed-app flow and store the token.

    Raises:
        CalendarAuthError: If the client secret file is missing
    """
    secrets = credentials_path(app_dir)
    if not secrets.exists():
        raise CalendarAuthError(
            "Credentials file not found. Download the OAuth client secret from "
            f"the Google Cloud Console and save it to: {secrets}"
        )

    flow = InstalledAppFlow.from_client_secrets_file(str(secrets), SCOPES)
    creds = flow.run_local_server(port=port, access_type="offline", prompt="consent")
    save_credentials(creds, app_dir)

    logger.info("Google Calendar authentication completed")
    return creds
