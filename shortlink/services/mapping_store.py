"""
Mapping Store

Durable code -> target relation with a read-through cache in front of it.

Design Decisions:
- reserve() is a single INSERT backed by the unique index on short_links.code:
  the check-for-existing and the insert are one indivisible operation, so
  concurrent reservations of the same code cannot both succeed and unrelated
  codes never contend on an application lock
- lookup() is the hot path: cache first, database on miss, cache populated
- delete() and sweep_expired() invalidate cache entries in this process;
  other processes converge within the cache TTL
- Removal listeners let the click ledger purge analytics of removed codes
"""

import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from shortlink.core.clock import to_utc_naive, utcnow
from shortlink.core.exceptions import (
    CodeTakenError,
    DatabaseError,
    NotOwnerError,
    ShortCodeNotFoundError,
)
from shortlink.db.models import ShortLink
from shortlink.db.session import Database
from shortlink.services.cache import CacheBackend, InMemoryCache

logger = logging.getLogger(__name__)

RemovalListener = Callable[[list[str]], Awaitable[None]]


class MappingStore:
    """
    Persistence of ShortLink rows.

    Every public method opens its own session, so one store instance is shared
    by all concurrent request handlers.
    """

    def __init__(self, database: Database, cache: Optional[CacheBackend] = None):
        """
        Initialize the mapping store.

        Args:
            database: Database handle (engine + session factory)
            cache: Read-through cache keyed by code (default: in-memory LRU/TTL)
        """
        self.database = database
        self.cache = cache if cache is not None else InMemoryCache()
        self._removal_listeners: list[RemovalListener] = []

    def add_removal_listener(self, listener: RemovalListener) -> None:
        """Register a coroutine called with the codes removed by delete/sweep."""
        self._removal_listeners.append(listener)

    async def reserve(
        self,
        code: str,
        target: str,
        owner: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        custom: bool = False
    ) -> ShortLink:
        """
        Atomically create the link for code.

        Returns:
            The persisted ShortLink

        Raises:
            CodeTakenError: If a link with this code already exists
            DatabaseError: If the insert fails for another reason
        """
        link = ShortLink(
            code=code,
            target=target,
            owner=owner,
            custom=custom,
            expires_at=to_utc_naive(expires_at),
            created_at=utcnow(),
        )

        try:
            async with self.database.session() as session:
                session.add(link)
                await session.flush()
        except IntegrityError as e:
            if not await self.is_available(code):
                logger.info(f"Reservation lost for code {code}: already taken")
                raise CodeTakenError(code) from e
            raise DatabaseError(
                f"Failed to reserve code '{code}': database constraint violation",
                original_error=e
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to reserve code {code}: {e}", exc_info=True)
            raise DatabaseError(f"Failed to reserve code '{code}': {e}", original_error=e)

        self.cache.set(code, link)
        logger.debug(f"Reserved code {code} (custom={custom}, owner={owner})")
        return link

    async def _fetch(self, code: str) -> Optional[ShortLink]:
        async with self.database.session() as session:
            result = await session.execute(select(ShortLink).where(ShortLink.code == code))
            return result.scalar_one_or_none()

    async def lookup(self, code: str) -> ShortLink:
        """
        Retrieve the link for a code, consulting the cache first.

        Raises:
            ShortCodeNotFoundError: If no link has this code
        """
        cached = self.cache.get(code)
        if cached is not None:
            return cached

        link = await self._fetch(code)
        if link is None:
            raise ShortCodeNotFoundError(code)

        self.cache.set(code, link)
        return link

    async def is_available(self, code: str) -> bool:
        """True if no link currently uses the code."""
        if self.cache.get(code) is not None:
            return False
        return await self._fetch(code) is None

    async def delete(self, code: str, owner: Optional[str]) -> None:
        """
        Delete a link on behalf of its owner.

        Raises:
            ShortCodeNotFoundError: If no link has this code
            NotOwnerError: If owner does not own the link (anonymous links
                have no owner and cannot be deleted through this call)
        """
        async with self.database.session() as session:
            result = await session.execute(select(ShortLink).where(ShortLink.code == code))
            link = result.scalar_one_or_none()
            if link is None:
                raise ShortCodeNotFoundError(code)
            if link.owner is None or link.owner != owner:
                raise NotOwnerError(code, owner)
            await session.delete(link)

        self.cache.invalidate(code)
        logger.info(f"Deleted code {code} (owner={owner})")
        await self._notify_removed([code])

    async def update_expiry(
        self,
        code: str,
        owner: Optional[str],
        expires_at: Optional[datetime]
    ) -> ShortLink:
        """
        Change (or clear, with None) the expiry of an owned link.

        Raises:
            ShortCodeNotFoundError: If no link has this code
            NotOwnerError: If owner does not own the link
        """
        async with self.database.session() as session:
            result = await session.execute(select(ShortLink).where(ShortLink.code == code))
            link = result.scalar_one_or_none()
            if link is None:
                raise ShortCodeNotFoundError(code)
            if link.owner is None or link.owner != owner:
                raise NotOwnerError(code, owner)
            link.expires_at = to_utc_naive(expires_at)
            session.add(link)

        self.cache.invalidate(code)
        return link

    async def links_for_owner(self, owner: str) -> list[ShortLink]:
        """All links created by owner, newest first."""
        statement = (
            select(ShortLink)
            .where(ShortLink.owner == owner)
            .order_by(ShortLink.created_at.desc(), ShortLink.id.desc())
        )
        async with self.database.session() as session:
            result = await session.execute(statement)
            return list(result.scalars().all())

    async def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """
        Delete every link whose expiry has passed.

        Invoked periodically by the sweeper task, never per request.

        Returns:
            Number of links removed
        """
        now = to_utc_naive(now) or utcnow()

        # expiry is checked by the DELETE itself so a concurrent update_expiry
        # that extends or clears the expiry keeps its row
        async with self.database.session() as session:
            result = await session.execute(
                delete(ShortLink)
                .where(
                    ShortLink.expires_at.is_not(None),
                    ShortLink.expires_at <= now
                )
                .returning(ShortLink.code)
                .execution_options(synchronize_session=False)
            )
            codes = list(result.scalars().all())

        for code in codes:
            self.cache.invalidate(code)

        if codes:
            logger.info(f"Expiry sweep removed {len(codes)} links")
            await self._notify_removed(codes)
        return len(codes)

    async def _notify_removed(self, codes: list[str]) -> None:
        for listener in self._removal_listeners:
            try:
                await listener(codes)
            except Exception as e:
                logger.error(f"Removal listener failed for {len(codes)} codes: {e}", exc_info=True)
