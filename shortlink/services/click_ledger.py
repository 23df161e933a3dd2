"""
Click Ledger

Records redirect events off the request path and aggregates them on demand.

Design Decisions:
- record() is synchronous and never awaits: the event goes into a bounded
  asyncio.Queue or is dropped. Redirects never wait on analytics I/O
- A background worker flushes the buffer every flush_interval seconds, or
  earlier once a full batch is waiting. A failed batch is retried with
  exponential backoff and dropped after max_attempts
- At most the buffered events plus one in-flight batch are lost on a crash
- Raw events are kept for retention_days, then compact() folds them into
  click_aggregates / click_daily_counts and deletes them
- aggregate_for() merges compacted and live rows and caches the result;
  flush, compaction and purge invalidate the cached value for the codes they
  touch, and a result computed across one of those is not cached
- purge() also discards buffered events of the purged codes
- Failures inside the ledger are logged and counted, never raised to the
  redirect path
"""

import asyncio
import hashlib
import hmac
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import delete, func, select

from shortlink.api.schemas import ClickAggregate, DailyClicks
from shortlink.core.clock import to_utc_naive, utcnow
from shortlink.db.models import ClickDailyCount, ClickEvent, ClickTotal
from shortlink.db.session import Database
from shortlink.services.cache import CacheBackend, InMemoryCache

logger = logging.getLogger(__name__)

MAX_REFERRER_LENGTH = 500
COMPACTION_CHUNK_SIZE = 5000


def hash_client(secret: str, client_ip: Optional[str], user_agent: Optional[str] = None) -> str:
    """
    Derive a stable, non-reversible visitor identifier.

    HMAC-SHA256 keyed with a server secret, so the raw address cannot be
    recovered by brute-forcing the IPv4 space without the key.
    """
    message = f"{client_ip or 'unknown'}|{user_agent or ''}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def _as_date(value) -> date:
    # func.date() yields a string on SQLite and a date on PostgreSQL
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


class ClickLedger:
    """
    Buffered, best-effort store of ClickEvents.

    Lifecycle: start() launches the flush worker, shutdown() stops accepting
    events, lets the in-flight batch finish and drains the rest.
    """

    def __init__(
        self,
        database: Database,
        buffer_size: int = 10000,
        batch_size: int = 500,
        flush_interval: float = 2.0,
        max_attempts: int = 5,
        backoff: float = 0.5,
        retention_days: int = 30,
        histogram_days: int = 90,
        aggregate_cache: Optional[CacheBackend] = None
    ):
        self.database = database
        self.batch_size = batch_size
        self.flush_interval = flush_interval
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.retention_days = retention_days
        self.histogram_days = histogram_days
        self.aggregate_cache = (
            aggregate_cache if aggregate_cache is not None
            else InMemoryCache(maxsize=10000, ttl=30.0)
        )

        self._queue: asyncio.Queue[ClickEvent] = asyncio.Queue(maxsize=buffer_size)
        self._flush_lock = asyncio.Lock()
        self._wakeup = asyncio.Event()
        self._stopping = asyncio.Event()
        self._worker: Optional[asyncio.Task] = None
        self._accepting = True
        self._invalidations = 0

        self._total_recorded = 0
        self._total_written = 0
        self._total_dropped = 0

    # Ingestion

    def record(self, event: ClickEvent) -> bool:
        """
        Enqueue an event without blocking.

        Returns:
            True if buffered, False if dropped (buffer full or shut down)
        """
        if not self._accepting:
            self._total_dropped += 1
            return False

        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._total_dropped += 1
            logger.warning(f"Click buffer full, dropping event for {event.code}")
            return False

        self._total_recorded += 1
        if self._queue.qsize() >= self.batch_size:
            self._wakeup.set()
        return True

    def record_click(
        self,
        code: str,
        client_hash: str,
        referrer: Optional[str] = None,
        clicked_at: Optional[datetime] = None
    ) -> bool:
        """Build a ClickEvent and record it."""
        event = ClickEvent(
            code=code,
            clicked_at=to_utc_naive(clicked_at) or utcnow(),
            referrer=referrer[:MAX_REFERRER_LENGTH] if referrer else None,
            client_hash=client_hash,
        )
        return self.record(event)

    # Flushing

    async def flush(self) -> int:
        """
        Write every buffered event now.

        Returns:
            Number of events persisted
        """
        written = 0
        async with self._flush_lock:
            while not self._queue.empty():
                batch = []
                while len(batch) < self.batch_size and not self._queue.empty():
                    batch.append(self._queue.get_nowait())
                if await self._write_batch(batch):
                    written += len(batch)
        return written

    async def _write_batch(self, batch: list[ClickEvent]) -> bool:
        for attempt in range(1, self.max_attempts + 1):
            # fresh rows each attempt; a failed session leaves its objects unusable
            rows = [
                ClickEvent(
                    code=event.code,
                    clicked_at=event.clicked_at,
                    referrer=event.referrer,
                    client_hash=event.client_hash,
                )
                for event in batch
            ]
            try:
                async with self.database.session() as session:
                    session.add_all(rows)
            except Exception as e:
                if attempt == self.max_attempts:
                    self._total_dropped += len(batch)
                    logger.error(
                        f"Dropping {len(batch)} click events after {attempt} failed attempts: {e}",
                        exc_info=True
                    )
                    return False
                delay = self.backoff * (2 ** (attempt - 1))
                logger.warning(
                    f"Click batch write failed (attempt {attempt}/{self.max_attempts}), "
                    f"retrying in {delay:.2f}s: {e}"
                )
                await asyncio.sleep(delay)
            else:
                self._total_written += len(batch)
                self._invalidate_aggregates({event.code for event in batch})
                logger.debug(f"Flushed {len(batch)} click events")
                return True
        return False

    async def _run(self) -> None:
        logger.info("Click flush worker started")
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.flush_interval)
            except asyncio.TimeoutError:
                pass
            self._wakeup.clear()
            await self.flush()
        logger.info("Click flush worker stopped")

    def start(self) -> None:
        """Launch the background flush worker."""
        if self._worker is not None and not self._worker.done():
            logger.warning("Click flush worker already running")
            return
        self._accepting = True
        self._stopping.clear()
        self._worker = asyncio.create_task(self._run(), name="click-ledger-flush")

    async def shutdown(self) -> None:
        """Stop accepting events, finish the current batch, drain the buffer."""
        self._accepting = False
        self._stopping.set()
        self._wakeup.set()
        if self._worker is not None:
            await self._worker
            self._worker = None
        remaining = await self.flush()
        logger.info(f"Click ledger shut down ({remaining} events drained)")

    # Aggregation

    async def aggregate_for(self, code: str, now: Optional[datetime] = None) -> ClickAggregate:
        """
        Click summary for one code: compacted counters plus live events.

        The histogram covers the last histogram_days UTC days (today included)
        and omits days without clicks.
        """
        cached = self.aggregate_cache.get(code)
        if cached is not None:
            return cached
        invalidations = self._invalidations

        now = to_utc_naive(now) or utcnow()
        first_day = now.date() - timedelta(days=self.histogram_days - 1)
        first_instant = datetime.combine(first_day, datetime.min.time())
        live_day = func.date(ClickEvent.clicked_at)

        async with self.database.session() as session:
            compacted = await session.get(ClickTotal, code)

            live_result = await session.execute(
                select(func.count(ClickEvent.id), func.max(ClickEvent.clicked_at))
                .where(ClickEvent.code == code)
            )
            live_count, live_last = live_result.one()

            daily_result = await session.execute(
                select(ClickDailyCount.day, ClickDailyCount.clicks)
                .where(ClickDailyCount.code == code, ClickDailyCount.day >= first_day)
            )
            compacted_days = daily_result.all()

            live_days_result = await session.execute(
                select(live_day, func.count(ClickEvent.id))
                .where(ClickEvent.code == code, ClickEvent.clicked_at >= first_instant)
                .group_by(live_day)
            )
            live_days = live_days_result.all()

        per_day: dict[date, int] = defaultdict(int)
        for day, clicks in compacted_days:
            per_day[_as_date(day)] += clicks
        for day, clicks in live_days:
            per_day[_as_date(day)] += clicks

        total = (compacted.total_clicks if compacted else 0) + (live_count or 0)
        last_candidates = [
            value for value in (compacted.last_clicked_at if compacted else None, live_last)
            if value is not None
        ]

        aggregate = ClickAggregate(
            code=code,
            total_clicks=total,
            last_clicked_at=max(last_candidates) if last_candidates else None,
            daily=[DailyClicks(day=day, clicks=per_day[day]) for day in sorted(per_day)],
        )
        # a flush or purge that landed during the queries makes this result stale
        if invalidations == self._invalidations:
            self.aggregate_cache.set(code, aggregate)
        return aggregate

    def _invalidate_aggregates(self, codes) -> None:
        self._invalidations += 1
        for code in codes:
            self.aggregate_cache.invalidate(code)

    async def compact(self, now: Optional[datetime] = None) -> int:
        """
        Fold events older than the retention window into aggregates.

        Also prunes day buckets that fell out of the histogram window.

        Returns:
            Number of raw events compacted (and deleted)
        """
        now = to_utc_naive(now) or utcnow()
        cutoff = now - timedelta(days=self.retention_days)
        oldest_day = now.date() - timedelta(days=self.histogram_days - 1)
        compacted = 0
        touched: set[str] = set()

        while True:
            async with self.database.session() as session:
                result = await session.execute(
                    select(ClickEvent)
                    .where(ClickEvent.clicked_at < cutoff)
                    .order_by(ClickEvent.id)
                    .limit(COMPACTION_CHUNK_SIZE)
                )
                events = list(result.scalars().all())
                if not events:
                    break

                totals: dict[str, int] = defaultdict(int)
                last_seen: dict[str, datetime] = {}
                day_counts: dict[tuple[str, date], int] = defaultdict(int)
                for event in events:
                    totals[event.code] += 1
                    if event.code not in last_seen or event.clicked_at > last_seen[event.code]:
                        last_seen[event.code] = event.clicked_at
                    if event.clicked_at.date() >= oldest_day:
                        day_counts[(event.code, event.clicked_at.date())] += 1

                for code, count in totals.items():
                    total = await session.get(ClickTotal, code)
                    if total is None:
                        total = ClickTotal(code=code, total_clicks=0)
                    total.total_clicks += count
                    if total.last_clicked_at is None or last_seen[code] > total.last_clicked_at:
                        total.last_clicked_at = last_seen[code]
                    session.add(total)

                for (code, day), count in day_counts.items():
                    bucket = await session.get(ClickDailyCount, (code, day))
                    if bucket is None:
                        bucket = ClickDailyCount(code=code, day=day, clicks=0)
                    bucket.clicks += count
                    session.add(bucket)

                await session.execute(
                    delete(ClickEvent).where(ClickEvent.id.in_([event.id for event in events]))
                )

            compacted += len(events)
            touched.update(totals)
            if len(events) < COMPACTION_CHUNK_SIZE:
                break

        async with self.database.session() as session:
            pruned = await session.execute(
                delete(ClickDailyCount).where(ClickDailyCount.day < oldest_day)
            )

        self._invalidate_aggregates(touched)

        if compacted or pruned.rowcount:
            logger.info(
                f"Compacted {compacted} click events for {len(touched)} codes, "
                f"pruned {pruned.rowcount} day buckets"
            )
        return compacted

    async def purge(self, codes: list[str]) -> None:
        """
        Remove every click for codes (used when links are removed).

        Buffered events for those codes are discarded too, so a link that later
        reuses one of the codes starts from zero. Holding the flush lock means
        no batch for them is in flight while the stored rows are deleted.
        """
        if not codes:
            return
        purged = sorted(set(codes))
        async with self._flush_lock:
            discarded = self._discard_buffered(set(purged))
            async with self.database.session() as session:
                await session.execute(delete(ClickEvent).where(ClickEvent.code.in_(purged)))
                await session.execute(delete(ClickTotal).where(ClickTotal.code.in_(purged)))
                await session.execute(
                    delete(ClickDailyCount).where(ClickDailyCount.code.in_(purged))
                )
        self._invalidate_aggregates(purged)
        if discarded:
            logger.debug(f"Discarded {discarded} buffered click events of removed links")

    def _discard_buffered(self, codes: set[str]) -> int:
        kept = []
        discarded = 0
        while not self._queue.empty():
            event = self._queue.get_nowait()
            if event.code in codes:
                discarded += 1
            else:
                kept.append(event)
        for event in kept:
            self._queue.put_nowait(event)
        return discarded

    def get_stats(self) -> dict:
        """
        Get ledger statistics for monitoring.

        Returns:
            Dictionary with buffer and throughput counters
        """
        return {
            "buffered": self._queue.qsize(),
            "recorded": self._total_recorded,
            "written": self._total_written,
            "dropped": self._total_dropped,
            "accepting": self._accepting,
            "worker_running": self._worker is not None and not self._worker.done(),
        }
