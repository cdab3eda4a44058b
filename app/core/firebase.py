"""Firebase Admin SDK initialization for push delivery."""

import json
import os

import firebase_admin
from firebase_admin import credentials
from structlog import get_logger

logger = get_logger(__name__)

_firebase_app: firebase_admin.App | None = None


def initialize_firebase(
    firebase_credentials_path: str | None = None, firebase_config_json: str | None = None
) -> bool:
    """
    Initialize Firebase Admin SDK.

    Args:
        firebase_credentials_path: Optional path to service account JSON file.
        firebase_config_json: Optional raw JSON string of service account.

    Returns:
        True when an app is available for messaging, False when no
        credentials are configured. Push delivery is then skipped and
        notifications are only recorded.
    """
    global _firebase_app

    if _firebase_app is not None:
        logger.info("firebase_already_initialized")
        return True

    cred = None

    if firebase_config_json:
        logger.info("firebase_init_from_json")
        cred = credentials.Certificate(json.loads(firebase_config_json))
    elif firebase_credentials_path and os.path.exists(firebase_credentials_path):
        logger.info("firebase_init_from_file", path=firebase_credentials_path)
        cred = credentials.Certificate(firebase_credentials_path)

    if cred is None:
        logger.warning("firebase_credentials_missing")
        return False

    _firebase_app = firebase_admin.initialize_app(cred)
    return True


def is_firebase_initialized() -> bool:
    """Check whether push delivery is configured."""
    return _firebase_app is not None
