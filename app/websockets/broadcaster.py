"""
실시간 이벤트 브로드캐스터

도메인 이벤트를 채널 구독자에게 전달합니다.

- memory: 같은 프로세스의 ConnectionManager로 바로 전달
- redis : Redis pub/sub으로 발행하고, 각 프로세스의 리스너가 받아서
          로컬 ConnectionManager로 전달

전달은 best-effort, at-most-once 이며 저장/재전송하지 않습니다.
Redis 연결이 끊기면 리스너는 잠시 후 다시 구독하며, 그 사이의 이벤트는 유실됩니다.
"""

import asyncio
import json
from typing import Optional
from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError as RedisTimeoutError

from app.core.config import settings, redis_channel_name
from app.core.logging import get_logger, log_broadcast_event
from app.database.redis import get_redis
from app.domain.events import DomainEvent
from app.websockets.connection_manager import ConnectionManager, manager

logger = get_logger(__name__)

# 재구독 전 대기 시간(초)
RECONNECT_DELAY = 1.0

_CONNECTION_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError)


class Broadcaster:
    def __init__(
        self,
        connection_manager: ConnectionManager,
        backend: Optional[str] = None,
        reconnect_delay: float = RECONNECT_DELAY
    ):
        self.manager = connection_manager
        self.backend = backend or settings.broadcast_backend
        self.reconnect_delay = reconnect_delay
        self._pubsub = None
        self._listener_task: Optional[asyncio.Task] = None

    @property
    def uses_redis(self) -> bool:
        return self.backend == "redis"

    async def publish(self, event: DomainEvent) -> int:
        """이벤트 발행. 로컬로 전달된 세션 수를 반환 (redis 백엔드는 0)

        브로드캐스트 실패는 로그만 남기고 호출자에게 전파하지 않습니다.
        """
        channel = event.channel

        try:
            if self.uses_redis:
                client = await get_redis()
                await client.publish(redis_channel_name(channel), event.to_json())
                log_broadcast_event(logger, event.event_name, channel, backend="redis")
                return 0

            delivered = await self.manager.broadcast(channel, event.to_dict())
            log_broadcast_event(logger, event.event_name, channel, recipients=delivered)
            return delivered

        except Exception as e:
            logger.error(f"Failed to broadcast {event.event_name} on {channel}: {e}")
            return 0

    async def start(self):
        """redis 백엔드일 때 pub/sub 리스너 시작"""
        if not self.uses_redis or self._listener_task is not None:
            return

        await self._subscribe()
        self._listener_task = asyncio.create_task(self._listen())
        logger.info("Redis broadcast listener started")

    async def _subscribe(self):
        client = await get_redis()
        pubsub = client.pubsub()
        await pubsub.psubscribe(redis_channel_name("*"))
        self._pubsub = pubsub

    async def _close_pubsub(self):
        pubsub, self._pubsub = self._pubsub, None
        if pubsub is None:
            return
        try:
            await pubsub.aclose()
        except _CONNECTION_ERRORS as e:
            logger.debug(f"Ignoring error while closing pub/sub: {e}")

    async def _listen(self):
        while True:
            try:
                if self._pubsub is None:
                    await self._subscribe()
                    logger.info("Redis broadcast listener resubscribed")

                async for message in self._pubsub.listen():
                    await self._relay(message)
                return

            except _CONNECTION_ERRORS as e:
                logger.warning(f"Redis broadcast listener lost its connection, retrying in {self.reconnect_delay}s: {e}")
                await self._close_pubsub()
                await asyncio.sleep(self.reconnect_delay)

    async def _relay(self, message: dict):
        if message.get("type") != "pmessage":
            return
        try:
            frame = json.loads(message["data"])
            await self.manager.broadcast(frame["channel"], frame)
        except (ValueError, KeyError) as e:
            logger.warning(f"Dropped malformed broadcast frame: {e}")

    async def stop(self):
        task, self._listener_task = self._listener_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"Redis broadcast listener had stopped with an error: {e}")

        if self._pubsub is not None:
            await self._close_pubsub()
            logger.info("Redis broadcast listener stopped")


# 전역 브로드캐스터 인스턴스
broadcaster = Broadcaster(manager)
