"""Tesla credential lifecycle.

The settings store is the system of record for the token triple. Each run
loads it, reuses the access token while it is valid, and otherwise trades the
refresh token for a new triple that is persisted before it is used.

Two overlapping runs can both refresh the same refresh token; the later write
wins and the earlier run's token may be revoked mid-run. The service loop runs
reconciliations one at a time, so this only matters when the CLI ``reconcile``
command is started while the service is refreshing.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from .errors import AuthError
from .models import Credential
from .settings import ReserveSettings
from .tesla_api import TeslaApiClient

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Where the stored credential sits in its lifecycle."""
    NO_CREDENTIAL = "no_credential"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"
    UNRECOVERABLE = "unrecoverable"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialManager:
    """Decides between token reuse, refresh and interactive login.

    Args:
        settings: Typed settings holding the token triple
        client: Tesla API client the session is attached to
        clock: Returns the current aware UTC time (injectable for tests)
    """

    def __init__(
        self,
        settings: ReserveSettings,
        client: TeslaApiClient,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.settings = settings
        self.client = client
        self.clock = clock

    def state(self, now: Optional[datetime] = None) -> SessionState:
        """Classify the stored credential without touching the network."""
        credential = self.settings.credential()
        if credential is None:
            return SessionState.NO_CREDENTIAL
        if credential.is_valid(now or self.clock()):
            return SessionState.AUTHENTICATED
        if credential.refresh_token:
            return SessionState.EXPIRED
        return SessionState.UNRECOVERABLE

    def ensure_session(self) -> TeslaApiClient:
        """Return the client with a usable access token attached.

        Raises:
            AuthError: If no refresh token is stored or Tesla rejects it
            UpstreamError: If the token endpoint cannot be reached
        """
        credential = self.settings.credential()
        now = self.clock()

        if credential is not None and credential.is_valid(now):
            logger.debug("Reusing stored access token (valid until %s)", credential.expires_at)
            self.client.set_access_token(credential.access_token)
            return self.client

        logger.info("No access token or it is expired, getting a new one with the refresh token")
        if credential is None or not credential.refresh_token:
            raise AuthError("Unable to get new access token, no refresh token (run the login command)")

        refreshed = self.client.refresh(credential.refresh_token)
        if not refreshed.refresh_token:
            # Tesla may omit a rotated refresh token; keep using the current one
            refreshed = Credential(
                refresh_token=credential.refresh_token,
                access_token=refreshed.access_token,
                expires_at=refreshed.expires_at,
            )

        self.settings.save_credential(refreshed)
        logger.info("Access token refreshed, valid until %s", refreshed.expires_at)

        self.client.set_access_token(refreshed.access_token)
        return self.client

    def login(self, username: str, password: str, mfa_code: Optional[str] = None) -> Credential:
        """Interactive login; persists and returns the new credential.

        Raises:
            AuthError: With a hint to check the inputs when Tesla rejects them
        """
        try:
            credential = self.client.login(username, password, mfa_code)
        except AuthError as e:
            raise AuthError(
                f"Error getting a refresh token, check your username, password or MFA code "
                f"and try again: {e}"
            ) from e

        self.settings.save_credential(credential)
        self.client.set_access_token(credential.access_token)
        return credential

    def seed_refresh_token(self, refresh_token: str) -> bool:
        """Store a refresh token from configuration when none is stored yet.

        Returns:
            True if the token was stored
        """
        existing = self.settings.credential()
        if existing is not None and existing.refresh_token:
            return False
        self.settings.save_credential(
            Credential(refresh_token=refresh_token, access_token=None, expires_at=None)
        )
        logger.info("Stored refresh token from configuration")
        return True
