"""Session handling for the Bluesky client: createSession, refreshSession, headers."""

import os
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger("social_clients.bluesky.auth")

CREATE_SESSION = "/xrpc/com.atproto.server.createSession"
REFRESH_SESSION = "/xrpc/com.atproto.server.refreshSession"


@dataclass(frozen=True)
class Session:
    """Identity and tokens of the account whose notifications are read."""

    did: str
    handle: str
    access_jwt: str
    refresh_jwt: Optional[str] = None

    @classmethod
    def from_payload(
        cls, data: Dict[str, Any], previous: Optional["Session"] = None
    ) -> "Session":
        """
        Build a session from a createSession/refreshSession response.

        Fields the PDS leaves out are carried over from ``previous``.
        """
        access = data.get("accessJwt")
        if not access:
            raise ValueError("session response has no accessJwt")
        return cls(
            did=data.get("did") or (previous.did if previous else ""),
            handle=data.get("handle") or (previous.handle if previous else ""),
            access_jwt=access,
            refresh_jwt=data.get("refreshJwt") or (previous.refresh_jwt if previous else None),
        )


class AuthMixin:
    """
    Keeps one app-password session alive for the read-only endpoints.

    Credentials come from the constructor or from BLUESKY_USERNAME and
    BLUESKY_PASSWORD at login time.
    """

    def __init__(self, username: Optional[str] = None, password: Optional[str] = None):
        self.username = username
        self.password = password
        self.session: Optional[Session] = None

    @property
    def did(self) -> Optional[str]:
        return self.session.did if self.session else None

    @property
    def handle(self) -> Optional[str]:
        return self.session.handle if self.session else None

    @property
    def access_jwt(self) -> Optional[str]:
        return self.session.access_jwt if self.session else None

    async def authenticate(self) -> bool:
        """Log in with the app password. Returns False rather than raising."""
        identifier = self.username or os.getenv("BLUESKY_USERNAME")
        password = self.password or os.getenv("BLUESKY_PASSWORD")
        if not identifier or not password:
            logger.error("No Bluesky credentials; set BLUESKY_USERNAME and BLUESKY_PASSWORD")
            return False

        ok = await self._open_session(
            CREATE_SESSION, json_body={"identifier": identifier, "password": password}
        )
        if ok and not self.session.handle:
            self.session = replace(self.session, handle=identifier)
        return ok

    async def refresh_session(self) -> bool:
        """Trade the refresh token for new tokens, logging in again if that fails."""
        if self.session and self.session.refresh_jwt:
            if await self._open_session(
                REFRESH_SESSION,
                headers={"Authorization": f"Bearer {self.session.refresh_jwt}"},
            ):
                return True
        logger.warning("Cannot refresh Bluesky session, logging in again")
        return await self.authenticate()

    async def _open_session(
        self,
        path: str,
        headers: Optional[Dict[str, str]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> bool:
        try:
            resp = await self._request(
                "POST",
                path,
                headers=headers,
                json_body=json_body,
                timeout=30.0,
                _auth_retry=False,
            )
            self.session = Session.from_payload(resp.json(), previous=self.session)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Bluesky session request {path} failed: {e}")
            return False

        logger.info(f"Bluesky session ready for {self.session.handle} ({self.session.did})")
        return True

    async def _auth_headers(self) -> Dict[str, str]:
        """Bearer header for the current session, logging in first if needed."""
        if self.session is None and not await self.authenticate():
            raise RuntimeError("Bluesky authentication failed")
        return {"Authorization": f"Bearer {self.session.access_jwt}"}
