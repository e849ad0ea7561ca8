"""
Firebase Authentication Service

Handles Firebase Admin SDK initialization and ID token verification.
"""
import json
import logging
from typing import Optional
from pathlib import Path

import firebase_admin
from firebase_admin import credentials, auth
from firebase_admin.auth import InvalidIdTokenError, ExpiredIdTokenError, RevokedIdTokenError
from firebase_admin.exceptions import FirebaseError

from habitcoin.config import settings
from habitcoin.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class FirebaseService:
    """
    Firebase Admin SDK wrapper for token verification.
    """

    _initialized: bool = False

    @classmethod
    def _load_credentials(cls) -> Optional[credentials.Certificate]:
        """
        Find service account credentials.

        Looks in FIREBASE_CREDENTIALS_JSON, then FIREBASE_CREDENTIALS_PATH.

        Raises:
            ConfigurationError: If FIREBASE_CREDENTIALS_JSON is set but unreadable.
        """
        if settings.FIREBASE_CREDENTIALS_JSON:
            try:
                return credentials.Certificate(json.loads(settings.FIREBASE_CREDENTIALS_JSON))
            except (json.JSONDecodeError, ValueError) as e:
                raise ConfigurationError(
                    "FIREBASE_CREDENTIALS_JSON is not a valid service account",
                    operation="firebase_init",
                    cause=e,
                )

        cred_path = settings.FIREBASE_CREDENTIALS_PATH
        if cred_path:
            if not Path(cred_path).exists():
                raise ConfigurationError(
                    f"FIREBASE_CREDENTIALS_PATH points to a missing file: {cred_path}",
                    operation="firebase_init",
                )
            return credentials.Certificate(cred_path)

        return None

    @classmethod
    def initialize(cls) -> bool:
        """
        Initialize Firebase Admin SDK.

        Returns:
            True if initialized, False if no credentials are configured.

        Raises:
            ConfigurationError: If credentials are configured but broken,
                or REQUIRE_FIREBASE is set and none are found.
        """
        if cls._initialized:
            return True

        cred = cls._load_credentials()
        if cred is None:
            if settings.REQUIRE_FIREBASE:
                raise ConfigurationError(
                    "Firebase credentials are required but not configured",
                    operation="firebase_init",
                )
            logger.warning("No Firebase credentials found. Auth will fail.")
            return False

        firebase_admin.initialize_app(cred)
        cls._initialized = True
        logger.info("Firebase initialized")
        return True

    @classmethod
    def verify_token(cls, id_token: str) -> Optional[dict]:
        """
        Verify a Firebase ID token.

        Args:
            id_token: The Firebase ID token from the client.

        Returns:
            Decoded token dict with user info, or None if invalid.
        """
        if not cls._initialized:
            logger.error("Firebase not initialized, cannot verify token")
            return None

        try:
            return auth.verify_id_token(id_token)

        except ExpiredIdTokenError as e:
            logger.warning(f"Expired Firebase token: {e}")
            return None

        except RevokedIdTokenError as e:
            logger.warning(f"Revoked Firebase token: {e}")
            return None

        except InvalidIdTokenError as e:
            logger.warning(f"Invalid Firebase token: {e}")
            return None

        except (FirebaseError, ValueError) as e:
            logger.error(f"Firebase token verification failed: {e}")
            return None

    @classmethod
    def get_user_info(cls, id_token: str) -> Optional[dict]:
        """
        Get user info from a Firebase ID token.

        Returns:
            Dict with uid, email, display_name, or None if invalid.
        """
        decoded = cls.verify_token(id_token)
        if not decoded:
            return None

        return {
            "uid": decoded.get("uid"),
            "email": decoded.get("email"),
            "display_name": decoded.get("name"),
        }


# Singleton instance for convenience
firebase_service = FirebaseService()
