"""内存存储，用于测试和试运行"""

from datetime import datetime
from typing import Dict, List, Optional

from .base import SnapshotStore
from ..models.status import ServiceSnapshot, HistoryEntry, BatchMetadata


class MemorySnapshotStore(SnapshotStore):
    """进程内存储"""

    backend_name = 'memory'

    def __init__(self):
        super().__init__()
        self.snapshots: Dict[str, ServiceSnapshot] = {}
        self.metadata: Optional[BatchMetadata] = None
        self.history: Dict[str, List[HistoryEntry]] = {}
        self.commit_count = 0

    async def load_snapshots(self) -> Dict[str, ServiceSnapshot]:
        return dict(self.snapshots)

    async def load_batch_metadata(self) -> Optional[BatchMetadata]:
        return self.metadata

    async def commit_batch(self, snapshots: List[ServiceSnapshot],
                           metadata: BatchMetadata) -> None:
        # 先构造完整的新状态再一次性替换
        updated = dict(self.snapshots)
        for snapshot in snapshots:
            updated[snapshot.target_id] = snapshot

        self.snapshots = updated
        self.metadata = metadata
        self.commit_count += 1

        await self._notify(snapshots, metadata)

    async def append_history(self, entries: List[HistoryEntry]) -> None:
        for entry in entries:
            self.history.setdefault(entry.target_id, []).append(entry)

    async def get_history(self, target_id: str, since: Optional[datetime] = None,
                          limit: Optional[int] = None) -> List[HistoryEntry]:
        return self._select_history(self.history.get(target_id, []), since, limit)
