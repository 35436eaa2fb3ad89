import logging
import os
from typing import Optional

import google.auth
from google.auth.exceptions import DefaultCredentialsError, GoogleAuthError
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

TESTLAB_OAUTH_SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


def load_credentials(key_file_path: Optional[str] = None):
    """Load a service account key file, or fall back to application default credentials."""
    if key_file_path:
        path = os.path.expanduser(key_file_path)
        if not os.path.exists(path):
            raise ConfigurationError(f"Key file not found at path '{path}'")
        logger.info(f"Using service account key file {path}")
        try:
            return service_account.Credentials.from_service_account_file(path, scopes=TESTLAB_OAUTH_SCOPES)
        except (ValueError, KeyError, GoogleAuthError) as e:
            raise ConfigurationError(f"Invalid service account key file '{path}': {e}") from e

    try:
        credentials, _ = google.auth.default(scopes=TESTLAB_OAUTH_SCOPES)
    except DefaultCredentialsError as e:
        raise ConfigurationError(f"No Google credentials available: {e}")
    logger.info("Using application default credentials")
    return credentials


def authorized_session(key_file_path: Optional[str] = None) -> AuthorizedSession:
    return AuthorizedSession(load_credentials(key_file_path))
