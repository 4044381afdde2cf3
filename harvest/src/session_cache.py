"""
SEMS session credential cache with a freshness TTL.

ensure_credential() returns the newest stored credential while it is younger
than the TTL and otherwise logs in again, appending the new credential as a
fresh row. Login failures raise AuthError and write nothing.

Concurrent callers may both decide to refresh; that only costs an extra
login because credentials are append-only and readers take the newest row.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from harvest.src.models import Credential
from harvest.src.services.credentials import latest_credential, save_credential

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from harvest.src.clients.sems import SemsClient

logger = logging.getLogger(__name__)

DEFAULT_CREDENTIAL_TTL_S: int = 300
"""Credentials older than this many seconds are replaced by a new login."""


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(tz=UTC)


class SessionCache:
    """Store-backed cache for the SEMS session credential.

    Args:
        sems: SEMS client used for the login exchange.
        session_factory: Factory for database sessions.
        ttl_s: Freshness threshold in seconds.
        clock: Callable returning the current aware UTC time.
    """

    def __init__(
        self,
        sems: SemsClient,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        ttl_s: int = DEFAULT_CREDENTIAL_TTL_S,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._sems = sems
        self._session_factory = session_factory
        self._ttl = timedelta(seconds=ttl_s)
        self._clock = clock

    async def ensure_credential(self) -> Credential:
        """Return a fresh credential, logging in only when needed.

        Returns:
            The cached credential unchanged when it is within the TTL,
            otherwise a newly issued and persisted credential.

        Raises:
            AuthError: If the login exchange fails (nothing is written).
            StoreError: If reading or writing the credential table fails.
        """
        async with self._session_factory() as db:
            current = await latest_credential(db)

        now = self._clock()
        if current is not None:
            age = now - current.issued_at
            if age <= self._ttl:
                logger.info(
                    "Using cached SEMS credential (age %.0fs)", age.total_seconds()
                )
                return current
            logger.info(
                "Cached SEMS credential is stale (age %.0fs), logging in",
                age.total_seconds(),
            )
        else:
            logger.info("No cached SEMS credential, logging in")

        token_blob = await self._sems.login()
        credential = Credential(token_blob=token_blob, issued_at=self._clock())

        async with self._session_factory() as db:
            await save_credential(db, credential)

        return credential
