"""
Credential persistence for the SEMS session cache.

Credentials are appended as single-row inserts and the newest row is always
the current one, so a concurrent refresh can at worst leave a slightly
older credential in use, never a corrupt one.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-003)

TODO:
- None
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from harvest.src.db.models import CachedCredential
from harvest.src.db.session import as_utc
from harvest.src.errors import StoreError
from harvest.src.models import Credential

logger = logging.getLogger(__name__)


async def latest_credential(db: AsyncSession) -> Credential | None:
    """Return the most recently issued credential, or None if none exists.

    Raises:
        StoreError: If the query fails.
    """
    stmt = (
        select(CachedCredential)
        .order_by(CachedCredential.issued_at.desc(), CachedCredential.id.desc())
        .limit(1)
    )
    try:
        result = await db.execute(stmt)
    except (SQLAlchemyError, OSError) as exc:
        raise StoreError("Failed to read cached credential") from exc

    row = result.scalar_one_or_none()
    if row is None:
        return None
    return Credential(token_blob=row.token_blob, issued_at=as_utc(row.issued_at))


async def save_credential(db: AsyncSession, credential: Credential) -> None:
    """Append *credential* as a new row and commit.

    Raises:
        StoreError: If the insert or commit fails.
    """
    db.add(
        CachedCredential(
            token_blob=credential.token_blob,
            issued_at=as_utc(credential.issued_at),
        )
    )
    try:
        await db.commit()
    except (SQLAlchemyError, OSError) as exc:
        await db.rollback()
        raise StoreError("Failed to save credential") from exc
    logger.info("Saved new SEMS credential issued at %s", credential.issued_at)
