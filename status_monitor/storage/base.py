"""快照存储基类"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Callable, Any

from ..models.status import ServiceSnapshot, HistoryEntry, BatchMetadata
from ..utils.log_manager import get_logger

METADATA_KEY = 'last_update'

# 监听器参数: (本批次更新的快照文档列表, 批次元数据文档)
SnapshotListener = Callable[[List[Dict[str, Any]], Dict[str, Any]], Any]


class SnapshotStore(ABC):
    """共享快照存储

    批次提交必须是原子的：读者要么看到整个批次，要么完全看不到。
    历史记录只追加，失败时抛出 HistoryWriteError。
    """

    backend_name = 'base'

    def __init__(self):
        self._listeners: List[SnapshotListener] = []
        self.logger = get_logger(f'storage.{self.backend_name}')

    @abstractmethod
    async def load_snapshots(self) -> Dict[str, ServiceSnapshot]:
        """读取所有已持久化的快照，按 targetId 索引"""
        pass

    @abstractmethod
    async def load_batch_metadata(self) -> Optional[BatchMetadata]:
        """读取最近一次批次元数据，没有时返回 None"""
        pass

    @abstractmethod
    async def commit_batch(self, snapshots: List[ServiceSnapshot],
                           metadata: BatchMetadata) -> None:
        """
        原子提交一个批次

        Raises:
            StorageError: 提交失败，存储内容保持不变
        """
        pass

    @abstractmethod
    async def append_history(self, entries: List[HistoryEntry]) -> None:
        """
        追加历史记录

        Raises:
            HistoryWriteError: 追加失败
        """
        pass

    @abstractmethod
    async def get_history(self, target_id: str, since: Optional[datetime] = None,
                          limit: Optional[int] = None) -> List[HistoryEntry]:
        """按时间升序返回目标的历史记录，limit 表示只保留最近的若干条"""
        pass

    async def close(self) -> None:
        """释放存储占用的资源"""
        return None

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """
        订阅快照变更

        Args:
            listener: 同步或异步回调，每次批次提交成功后调用

        Returns:
            取消订阅的函数
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _notify(self, snapshots: List[ServiceSnapshot], metadata: BatchMetadata) -> None:
        """把已提交的文档推送给订阅者"""
        if not self._listeners:
            return

        documents = [snapshot.to_dict() for snapshot in snapshots]
        metadata_document = metadata.to_dict()

        for listener in list(self._listeners):
            try:
                result = listener(documents, metadata_document)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                self.logger.error(f"快照订阅者回调执行失败: {e}")

    @staticmethod
    def _select_history(entries: List[HistoryEntry], since: Optional[datetime],
                        limit: Optional[int]) -> List[HistoryEntry]:
        if since is not None:
            entries = [entry for entry in entries if entry.timestamp >= since]
        entries = sorted(entries, key=lambda entry: entry.timestamp)
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries
