from typing import Any, Dict, Optional

from redis.asyncio import Redis

from pulse_hub.domain.models import SessionRecord, SessionStart
from shared.constants import RedisKeys
from shared.schemas.realtime import epoch_ms


def _encode(record: SessionRecord) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in record.model_dump(exclude_none=True).items():
        out[k] = int(v) if isinstance(v, bool) else v
    return out


class RedisSessionRepository:
    """Session store on Redis.

    Notes:
        - Each session is a hash at ``session:{id}`` with a rolling TTL.
        - ``sessions:active`` is a sorted set scored by last activity (ms),
          so the active-user count is a single ZCOUNT.
        - Ended sessions leave the sorted set but keep their hash until TTL.
    """

    def __init__(self, redis: Redis, session_ttl_seconds: int):
        # Expects a client created with decode_responses=True.
        self.r = redis
        self.session_ttl = session_ttl_seconds

    async def upsert_session(self, start: SessionStart) -> SessionRecord:
        key = RedisKeys.session_key(start.session_id)
        if await self.r.exists(key):
            pipe = self.r.pipeline(transaction=True)
            pipe.hset(
                key, mapping={"last_activity": start.started_at, "is_active": 1}
            )
            pipe.hdel(key, "end_time", "duration")
            pipe.expire(key, self.session_ttl)
            pipe.zadd(RedisKeys.ACTIVE_SESSION_SET, {start.session_id: start.started_at})
            await pipe.execute()
            record = await self.get_session(start.session_id)
            return record or SessionRecord.from_start(start)

        record = SessionRecord.from_start(start)
        pipe = self.r.pipeline(transaction=True)
        pipe.hset(key, mapping=_encode(record))  # type: ignore[arg-type]
        pipe.expire(key, self.session_ttl)
        pipe.zadd(RedisKeys.ACTIVE_SESSION_SET, {record.session_id: record.last_activity})
        await pipe.execute()
        return record

    async def touch_session(self, session_id: str, is_page_view: bool = False) -> None:
        key = RedisKeys.session_key(session_id)
        if await self.r.hget(key, "is_active") != "1":
            return
        now = epoch_ms()
        pipe = self.r.pipeline(transaction=True)
        pipe.hset(key, "last_activity", now)
        if is_page_view:
            pipe.hincrby(key, "page_views", 1)
        pipe.expire(key, self.session_ttl)
        pipe.zadd(RedisKeys.ACTIVE_SESSION_SET, {session_id: now})
        await pipe.execute()

    async def end_session(
        self, session_id: str, exit_page: Optional[str] = None
    ) -> Optional[SessionRecord]:
        record = await self.get_session(session_id)
        if record is None:
            return None
        ended = record.ended(exit_page, epoch_ms())
        key = RedisKeys.session_key(session_id)
        pipe = self.r.pipeline(transaction=True)
        pipe.hset(key, mapping=_encode(ended))  # type: ignore[arg-type]
        pipe.expire(key, self.session_ttl)
        pipe.zrem(RedisKeys.ACTIVE_SESSION_SET, session_id)
        await pipe.execute()
        return ended

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        data = await self.r.hgetall(RedisKeys.session_key(session_id))
        if not data:
            return None
        return SessionRecord.model_validate(data)

    async def count_active_sessions(self, since_ms: int) -> int:
        # Entries older than the hash TTL can never be counted again.
        horizon = epoch_ms() - self.session_ttl * 1000
        await self.r.zremrangebyscore(RedisKeys.ACTIVE_SESSION_SET, "-inf", horizon)
        return int(await self.r.zcount(RedisKeys.ACTIVE_SESSION_SET, since_ms, "+inf"))
