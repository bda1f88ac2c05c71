from datetime import date
from uuid import UUID

from loguru import logger
from pydantic import TypeAdapter
from pydantic import ValidationError as PayloadError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from guide_bookings.schemas import TimeSlot
from guide_bookings.settings import REDIS_URL, SLOTS_CACHE_TTL

_redis: Redis | None = None

_slot_list = TypeAdapter(list[TimeSlot])


def get_redis() -> Redis:
    global _redis
    if _redis is None:
        _redis = Redis.from_url(REDIS_URL, decode_responses=True)
    return _redis


class SlotsCache:
    """
    Free slots of one guide on one date, kept in Redis for `ttl` seconds.

    Every method degrades to "no cache" when Redis misbehaves; the caller then
    reads from the database.
    """

    def __init__(self, prefix: str = "slots", ttl: int = SLOTS_CACHE_TTL) -> None:
        self.prefix = prefix
        self.ttl = ttl

    def key(self, guide_id: UUID, on: date) -> str:
        return f"{self.prefix}:{guide_id}:{on.isoformat()}"

    async def get(self, guide_id: UUID, on: date) -> list[TimeSlot] | None:
        try:
            raw = await get_redis().get(self.key(guide_id, on))
        except RedisError:
            logger.opt(exception=True).warning("Slots cache read failed for guide_id={}", guide_id)
            return None
        if raw is None:
            return None
        try:
            return _slot_list.validate_json(raw)
        except PayloadError:
            logger.warning("Discarding malformed slots cache entry {}", self.key(guide_id, on))
            return None

    async def set(self, guide_id: UUID, on: date, slots: list[TimeSlot]) -> None:
        try:
            await get_redis().setex(self.key(guide_id, on), self.ttl, _slot_list.dump_json(slots))
        except RedisError:
            logger.opt(exception=True).warning("Slots cache write failed for guide_id={}", guide_id)

    async def invalidate(self, guide_id: UUID, on: date) -> None:
        try:
            await get_redis().delete(self.key(guide_id, on))
        except RedisError:
            logger.opt(exception=True).warning(
                "Slots cache invalidation failed for guide_id={}", guide_id
            )


slots_cache = SlotsCache()
