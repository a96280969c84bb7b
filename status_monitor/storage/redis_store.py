"""Redis存储

快照保存在一个哈希中，批次元数据单独一个键，历史记录按目标保存为
以时间戳为分数的有序集合。批次通过 MULTI/EXEC 事务提交，
并在同一事务中发布到变更频道。
"""

import json
from datetime import datetime
from typing import Dict, List, Optional, Any, AsyncIterator

import redis.asyncio as redis
from redis.exceptions import RedisError

from .base import SnapshotStore, METADATA_KEY
from ..models.status import ServiceSnapshot, HistoryEntry, BatchMetadata
from ..utils.exceptions import StorageError, HistoryWriteError, ErrorCode

SNAPSHOT_HASH = 'status:snapshots'
METADATA_REDIS_KEY = f'status:{METADATA_KEY}'
HISTORY_KEY_PREFIX = 'status:history:'
UPDATES_CHANNEL = 'status:updates'


class RedisSnapshotStore(SnapshotStore):
    """Redis存储"""

    backend_name = 'redis'

    def __init__(self, url: str = 'redis://localhost:6379/0',
                 client: Optional[redis.Redis] = None):
        """
        初始化Redis存储

        Args:
            url: Redis连接URL
            client: 已创建的客户端（测试时注入）
        """
        super().__init__()
        self.url = url
        self._client = client

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(self.url, decode_responses=True)
        return self._client

    async def load_snapshots(self) -> Dict[str, ServiceSnapshot]:
        try:
            raw = await self.client.hgetall(SNAPSHOT_HASH)
        except RedisError as e:
            raise StorageError(f"读取快照失败: {e}", backend=self.backend_name, cause=e)

        return {target_id: ServiceSnapshot.from_dict(json.loads(value))
                for target_id, value in raw.items()}

    async def load_batch_metadata(self) -> Optional[BatchMetadata]:
        try:
            raw = await self.client.get(METADATA_REDIS_KEY)
        except RedisError as e:
            raise StorageError(f"读取批次元数据失败: {e}", backend=self.backend_name, cause=e)

        return BatchMetadata.from_dict(json.loads(raw)) if raw else None

    async def commit_batch(self, snapshots: List[ServiceSnapshot],
                           metadata: BatchMetadata) -> None:
        documents = {snapshot.target_id: snapshot.to_dict() for snapshot in snapshots}
        metadata_document = metadata.to_dict()
        payload = json.dumps({'snapshots': list(documents.values()),
                              'metadata': metadata_document}, ensure_ascii=False)

        try:
            async with self.client.pipeline(transaction=True) as pipe:
                if documents:
                    pipe.hset(SNAPSHOT_HASH, mapping={
                        target_id: json.dumps(document, ensure_ascii=False)
                        for target_id, document in documents.items()
                    })
                pipe.set(METADATA_REDIS_KEY, json.dumps(metadata_document, ensure_ascii=False))
                pipe.publish(UPDATES_CHANNEL, payload)
                await pipe.execute()
        except RedisError as e:
            raise StorageError(f"提交快照批次失败: {e}", ErrorCode.BATCH_COMMIT_FAILED,
                               backend=self.backend_name, cause=e)

        await self._notify(snapshots, metadata)

    async def append_history(self, entries: List[HistoryEntry]) -> None:
        try:
            async with self.client.pipeline(transaction=False) as pipe:
                for entry in entries:
                    pipe.zadd(f"{HISTORY_KEY_PREFIX}{entry.target_id}", {
                        json.dumps(entry.to_dict(), ensure_ascii=False): entry.timestamp.timestamp()
                    })
                await pipe.execute()
        except RedisError as e:
            raise HistoryWriteError(f"追加历史记录失败: {e}", backend=self.backend_name,
                                    cause=e)

    async def get_history(self, target_id: str, since: Optional[datetime] = None,
                          limit: Optional[int] = None) -> List[HistoryEntry]:
        minimum: Any = since.timestamp() if since else '-inf'
        try:
            raw = await self.client.zrangebyscore(f"{HISTORY_KEY_PREFIX}{target_id}",
                                                  minimum, '+inf')
        except RedisError as e:
            raise StorageError(f"读取历史记录失败: {e}", backend=self.backend_name, cause=e)

        entries = [HistoryEntry.from_dict(json.loads(item)) for item in raw]
        return self._select_history(entries, None, limit)

    async def listen(self) -> AsyncIterator[Dict[str, Any]]:
        """
        订阅变更频道，逐条产出已提交的批次

        Yields:
            {'snapshots': [...], 'metadata': {...}}
        """
        pubsub = self.client.pubsub()
        await pubsub.subscribe(UPDATES_CHANNEL)
        try:
            async for message in pubsub.listen():
                if message.get('type') != 'message':
                    continue
                yield json.loads(message['data'])
        finally:
            await pubsub.unsubscribe(UPDATES_CHANNEL)
            await pubsub.aclose()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
