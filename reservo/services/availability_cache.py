from datetime import date
from typing import Optional

import structlog

from reservo.core.config import settings
from reservo.core.redis import RedisClient, redis_client

logger = structlog.get_logger(__name__)

# Set when a generation bump fails; shared by every cache instance in the process
_invalidation_failed = False


def reset_invalidation_failure() -> None:
    global _invalidation_failed
    _invalidation_failed = False


class AvailabilityCache:
    """Optional Redis cache of computed slot lists.

    Entries are keyed under a per-business generation number. Every commit,
    cancellation, reschedule and work-window change bumps the generation
    before the request returns, so readers never see slots computed before
    that change. A reader that computed slots under an older generation
    stores them under the old key, where nobody looks any more.

    Once a bump fails the cache stays off for the rest of the process, since
    no instance can tell which entries predate the lost bump.
    """

    def __init__(
        self,
        client: Optional[RedisClient] = None,
        ttl_seconds: Optional[int] = None,
        enabled: Optional[bool] = None,
    ):
        self.client = client or redis_client
        self.ttl_seconds = (
            settings.AVAILABILITY_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        )
        self._enabled = (
            settings.availability_cache_enabled if enabled is None else enabled
        )

    @property
    def enabled(self) -> bool:
        return self._enabled and not _invalidation_failed

    @staticmethod
    def _generation_key(business_id: int) -> str:
        return f"availability:gen:{business_id}"

    @staticmethod
    def _slots_key(
        business_id: int,
        generation: int,
        service_id: int,
        target_date: date,
        staff_id: Optional[int],
    ) -> str:
        staff_part = staff_id if staff_id is not None else "any"
        return (
            f"availability:{business_id}:g{generation}:"
            f"{service_id}:{target_date.isoformat()}:{staff_part}"
        )

    async def lookup(
        self,
        business_id: int,
        service_id: int,
        target_date: date,
        staff_id: Optional[int] = None,
    ) -> tuple[Optional[list[str]], Optional[int]]:
        """Cached ``HH:MM`` slots (or ``None``) and the generation they belong to.

        The generation is ``None`` when it could not be read; callers must not
        store slots in that case.
        """
        if not self.enabled:
            return None, 0

        generation_key = self._generation_key(business_id)
        generation = await self.client.get(generation_key)
        if generation is None:
            # Missing and unreadable look alike; seeding with INCR settles both
            generation = await self.client.incr(generation_key)
            if generation is None:
                return None, None
        generation = int(generation)
        cached = await self.client.get(
            self._slots_key(business_id, generation, service_id, target_date, staff_id)
        )
        if cached is not None:
            logger.debug(
                "Availability cache hit",
                business_id=business_id,
                service_id=service_id,
                date=str(target_date),
                generation=generation,
            )
        return cached, generation

    async def store(
        self,
        business_id: int,
        service_id: int,
        target_date: date,
        staff_id: Optional[int],
        generation: Optional[int],
        slots: list[str],
    ) -> None:
        if not self.enabled or generation is None:
            return
        await self.client.set(
            self._slots_key(business_id, generation, service_id, target_date, staff_id),
            slots,
            expire=self.ttl_seconds,
        )

    async def invalidate(self, business_id: int) -> None:
        """Bump the business generation; call after the change is committed."""
        global _invalidation_failed

        if not self.enabled:
            return
        generation = await self.client.incr(self._generation_key(business_id))
        if generation is None:
            logger.error(
                "Availability cache invalidation failed; disabling cache for this process",
                business_id=business_id,
            )
            _invalidation_failed = True
            return
        logger.debug(
            "Availability cache invalidated", business_id=business_id, generation=generation
        )
