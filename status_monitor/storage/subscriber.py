"""快照订阅者

读者侧的本地视图：接收已提交批次推送的文档，按 targetId 合并。
"""

from typing import Dict, List, Any, Optional, AsyncIterator, Callable

from .base import SnapshotStore
from ..models.status import ServiceSnapshot, BatchMetadata
from ..utils.log_manager import get_logger


class SnapshotSubscriber:
    """按 targetId 合并快照推送的订阅者"""

    def __init__(self):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.metadata: Optional[Dict[str, Any]] = None
        self.update_count = 0
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.logger = get_logger('storage.subscriber')

    async def attach(self, store: SnapshotStore) -> None:
        """载入存储中的当前快照并订阅之后的变更"""
        for target_id, snapshot in (await store.load_snapshots()).items():
            self.documents[target_id] = snapshot.to_dict()

        metadata = await store.load_batch_metadata()
        if metadata:
            self.metadata = metadata.to_dict()

        self._unsubscribe = store.subscribe(self.apply)

    def detach(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def apply(self, documents: List[Dict[str, Any]], metadata: Dict[str, Any]) -> None:
        """合并一次推送，未包含在本批次中的目标保持不变"""
        for document in documents:
            self.documents[document['targetId']] = document
        self.metadata = metadata
        self.update_count += 1
        self.logger.debug(f"收到 {len(documents)} 个快照更新")

    async def consume(self, messages: AsyncIterator[Dict[str, Any]]) -> None:
        """消费远程推送（例如 RedisSnapshotStore.listen()）"""
        async for message in messages:
            self.apply(message.get('snapshots', []), message.get('metadata') or {})

    def snapshots(self) -> Dict[str, ServiceSnapshot]:
        return {target_id: ServiceSnapshot.from_dict(document)
                for target_id, document in self.documents.items()}

    def batch_metadata(self) -> Optional[BatchMetadata]:
        return BatchMetadata.from_dict(self.metadata) if self.metadata else None
