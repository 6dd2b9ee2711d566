"""Authentication helpers for the Gmail API."""

import logging

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build, Resource
from googleapiclient.errors import HttpError

from gmail_filer.constants import CONFIG_DIR, CREDENTIALS_PATH, SCOPES, TOKEN_PATH

logger = logging.getLogger(__name__)


def _load_credentials() -> Credentials | None:
    if not TOKEN_PATH.exists():
        return None
    return Credentials.from_authorized_user_file(str(TOKEN_PATH), SCOPES)


def get_gmail_service() -> Resource:
    """Return an authenticated Gmail API service object.

    The cached token at TOKEN_PATH is reused and refreshed when expired.
    Without a usable token, the installed-app OAuth flow runs in the browser
    using the client secrets at CREDENTIALS_PATH.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    creds = _load_credentials()

    if creds and creds.expired and creds.refresh_token:
        logger.debug("Refreshing expired Gmail token")
        creds.refresh(Request())
    elif not creds or not creds.valid:
        if not CREDENTIALS_PATH.exists():
            raise FileNotFoundError(
                f"Credentials file not found at {CREDENTIALS_PATH}.\n"
                "Create an OAuth desktop client in the Google Cloud Console "
                "and save its JSON as:\n"
                f"  {CREDENTIALS_PATH}"
            )
        flow = InstalledAppFlow.from_client_secrets_file(str(CREDENTIALS_PATH), SCOPES)
        creds = flow.run_local_server(port=0)

    TOKEN_PATH.write_text(creds.to_json())

    return build("gmail", "v1", credentials=creds)


def check_auth() -> str | None:
    """Return the authenticated mailbox address, or None when authentication fails."""
    try:
        service = get_gmail_service()
        profile = service.users().getProfile(userId="me").execute()
    except (GoogleAuthError, HttpError, FileNotFoundError) as exc:
        logger.error("Authentication failed: %s", exc)
        return None
    return profile["emailAddress"]


def logout() -> bool:
    """Delete the cached token. Returns True if one existed."""
    if TOKEN_PATH.exists():
        TOKEN_PATH.unlink()
        return True
    return False
