"""
OAuth2 for the Google account that owns the conference spreadsheet.

One installed-app consent covers Sheets, Calendar, Forms and Gmail. The
resulting token lives in ``<config dir>/token.json`` (mode 600) together
with the account's email address, and is refreshed in place when it
expires so unattended ``watch`` runs never need a browser.
"""

import json
import logging
import os
from pathlib import Path

import requests
from google.auth.exceptions import RefreshError
from google.auth.transport.requests import AuthorizedSession, Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from session_signup.utils.paths import CONFIG_DIR_ENV_VAR, DEFAULT_CONFIG_DIR

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/forms.body",
    "https://www.googleapis.com/auth/forms.responses.readonly",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/userinfo.email",
    "openid",  # Google adds it whenever userinfo.email is requested
]

CLIENT_SECRETS_FILE = "credentials.json"
TOKEN_FILE = "token.json"

USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

DEFAULT_AUTH_TIMEOUT = 10

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """The OAuth flow failed."""


class GoogleAuth:
    """
    Loads, refreshes and stores the automation account's credentials.

    Usage:
        auth = GoogleAuth(config_dir)
        creds = auth.get_credentials()   # None until `session-signup auth`
        creds = auth.authenticate()      # browser consent when needed
    """

    def __init__(
        self,
        config_dir: Path | None = None,
        auth_timeout: int = DEFAULT_AUTH_TIMEOUT,
    ):
        if config_dir is None:
            env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
            config_dir = Path(env_dir) if env_dir else DEFAULT_CONFIG_DIR
        self.config_dir = Path(config_dir)
        self.credentials_path = self.config_dir / CLIENT_SECRETS_FILE
        self.token_path = self.config_dir / TOKEN_FILE
        self.auth_timeout = auth_timeout

    # Token file

    def _read_token_data(self) -> dict | None:
        try:
            data = json.loads(self.token_path.read_text())
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, OSError) as e:
            logger.debug(f"Unreadable token file {self.token_path}: {e}")
            return None
        return data if isinstance(data, dict) else None

    def _stored_email(self) -> str | None:
        data = self._read_token_data()
        return data.get("email") if data else None

    def _save_credentials(self, creds: Credentials, email: str | None = None) -> None:
        """Write the token, keeping the account email next to it."""
        self.config_dir.mkdir(parents=True, mode=0o700, exist_ok=True)

        data = json.loads(creds.to_json())
        if email:
            data["email"] = email

        self.token_path.write_text(json.dumps(data))
        self.token_path.chmod(0o600)
        logger.debug(f"Saved credentials to {self.token_path}")

    def _load_credentials(self) -> Credentials | None:
        if not self.token_path.exists():
            return None
        try:
            return Credentials.from_authorized_user_file(str(self.token_path), SCOPES)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Ignoring invalid token file {self.token_path}: {e}")
            return None

    # Google

    def _refresh(self, creds: Credentials) -> bool:
        try:
            creds.refresh(Request())
        except RefreshError as e:
            logger.warning(f"Could not refresh credentials: {e}")
            return False
        logger.debug("Refreshed credentials")
        return True

    def _fetch_user_email(self, creds: Credentials) -> str | None:
        """The account's address from the userinfo endpoint, or None."""
        session = AuthorizedSession(creds)
        try:
            response = session.get(USERINFO_URL, timeout=self.auth_timeout)
            response.raise_for_status()
            return response.json().get("email")
        except (requests.RequestException, ValueError) as e:
            logger.debug(f"Could not fetch account email: {e}")
            return None
        finally:
            session.close()

    # Public API

    def get_credentials(self) -> Credentials | None:
        """
        Valid stored credentials, refreshed if they had expired.

        Never opens a browser. Returns None when the account has to run
        ``session-signup auth`` first.
        """
        creds = self._load_credentials()
        if creds is None:
            return None
        if creds.valid:
            return creds

        if creds.expired and creds.refresh_token and self._refresh(creds):
            self._save_credentials(creds, email=self._stored_email())
            return creds
        return None

    def authenticate(self, force_reauth: bool = False) -> Credentials:
        """
        Return usable credentials, running the browser consent if needed.

        Raises:
            FileNotFoundError: If the OAuth client file is missing
            AuthenticationError: If the consent flow fails
        """
        if not force_reauth:
            creds = self.get_credentials()
            if creds is not None:
                logger.info("Using existing credentials")
                return creds

        if not self.credentials_path.exists():
            raise FileNotFoundError(
                f"OAuth credentials file not found: {self.credentials_path}\n"
                "Create an OAuth client (Desktop app) in Google Cloud Console, "
                "download its JSON and save it to this location."
            )

        logger.info("Starting OAuth flow")
        try:
            flow = InstalledAppFlow.from_client_secrets_file(
                str(self.credentials_path), SCOPES
            )
            creds = flow.run_local_server(port=0)
        except Exception as e:
            logger.error(f"Authentication failed: {e}")
            raise AuthenticationError(f"Failed to authenticate: {e}") from e

        self._save_credentials(creds, email=self._fetch_user_email(creds))
        logger.info("Successfully authenticated")
        return creds

    def is_authenticated(self) -> bool:
        return self.get_credentials() is not None

    def clear_credentials(self) -> bool:
        """Delete the stored token. False if there was none."""
        try:
            self.token_path.unlink()
        except FileNotFoundError:
            return False
        logger.info("Cleared stored credentials")
        return True

    def get_auth_status(self) -> dict[str, object]:
        return {
            "authenticated": self.is_authenticated(),
            "token_path": str(self.token_path),
            "token_exists": self.token_path.exists(),
            "credentials_path": str(self.credentials_path),
            "credentials_exist": self.credentials_path.exists(),
            "config_dir": str(self.config_dir),
        }

    def get_account_email(self) -> str | None:
        """
        The authenticated account's address.

        Tokens saved before the address was known get it looked up once and
        written back.
        """
        email = self._stored_email()
        if email or not self.token_path.exists():
            return email

        creds = self.get_credentials()
        if creds is None:
            return None

        email = self._fetch_user_email(creds)
        if email:
            self._save_credentials(creds, email=email)
        return email
