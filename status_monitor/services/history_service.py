"""历史记录查询服务"""

from datetime import datetime, timedelta
from typing import Callable, Dict, Any, List, Optional

from ..models.statistics import StatusStatistics
from ..models.status import HistoryEntry
from ..storage.base import SnapshotStore
from ..utils.exceptions import InvalidInputError

DEFAULT_HOURS = 24
MAX_HOURS = 24 * 90


class HistoryService:
    """读取目标的历史记录并计算可用性统计"""

    def __init__(self, store: SnapshotStore, clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.clock = clock

    async def get_recent_history(self, target_id: str, hours: float = DEFAULT_HOURS,
                                 limit: Optional[int] = None) -> List[HistoryEntry]:
        """
        获取最近若干小时内的历史记录

        Raises:
            InvalidInputError: hours 不在 (0, 2160] 范围内
        """
        if not target_id:
            raise InvalidInputError('target_id 不能为空', field='target_id')
        if hours <= 0 or hours > MAX_HOURS:
            raise InvalidInputError(f"hours 必须在 0 到 {MAX_HOURS} 之间", field='hours')

        since = self.clock() - timedelta(hours=hours)
        return await self.store.get_history(target_id, since=since, limit=limit)

    async def get_statistics(self, target_id: str,
                             hours: float = DEFAULT_HOURS) -> StatusStatistics:
        history = await self.get_recent_history(target_id, hours)
        return StatusStatistics.from_history(history, now=self.clock())

    async def get_report(self, target_id: str, hours: float = DEFAULT_HOURS) -> Dict[str, Any]:
        """历史记录和统计放在一起返回，供API使用"""
        history = await self.get_recent_history(target_id, hours)
        statistics = StatusStatistics.from_history(history, now=self.clock())
        return {
            'targetId': target_id,
            'hours': hours,
            'entries': [entry.to_dict() for entry in history],
            'statistics': statistics.to_dict(),
        }
