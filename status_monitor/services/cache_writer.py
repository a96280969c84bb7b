"""缓存写入器

对每个周期的快照做限流和变更检测，然后以一个原子批次写入共享存储，
并尽力追加历史记录。限流状态由写入器独占，重启时从存储恢复。
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from ..models.status import ServiceSnapshot, HistoryEntry, BatchMetadata
from ..storage.base import SnapshotStore
from ..utils.exceptions import StorageError, HistoryWriteError
from ..utils.log_manager import get_logger

QUOTA_WINDOW = timedelta(hours=1)

SKIP_QUOTA = 'quota_exceeded'
SKIP_SPACING = 'min_interval'
SKIP_UNCHANGED = 'unchanged'
SKIP_COMMIT_FAILED = 'commit_failed'


@dataclass
class RateLimiterState:
    """进程内的限流状态"""
    writes_this_window: int = 0
    window_started_at: Optional[datetime] = None
    last_batch_write_at: Optional[datetime] = None
    last_written_snapshot_by_target: Dict[str, ServiceSnapshot] = field(default_factory=dict)


@dataclass(frozen=True)
class BatchWriteResult:
    """一次批量写入的结果"""
    written: bool
    skipped_reason: Optional[str] = None
    written_ids: Tuple[str, ...] = ()


class CacheWriter:
    """缓存写入器"""

    def __init__(self, store: SnapshotStore, state: Optional[RateLimiterState] = None,
                 max_writes_per_hour: int = 120, min_write_interval: float = 30,
                 response_time_threshold: float = 0.1, stale_after: float = 30,
                 clock: Callable[[], datetime] = datetime.now):
        """
        初始化缓存写入器

        Args:
            store: 共享存储
            state: 限流状态，默认新建
            max_writes_per_hour: 每小时最多提交的批次数
            min_write_interval: 两次批次提交之间的最小间隔（秒）
            response_time_threshold: 响应时间相对变化超过该比例才视为变更
            stale_after: 距上次写入超过该秒数时无论是否变化都重新写入
            clock: 取当前时间的函数
        """
        self.store = store
        self.state = state or RateLimiterState()
        self.max_writes_per_hour = max_writes_per_hour
        self.min_write_interval = timedelta(seconds=min_write_interval)
        self.response_time_threshold = response_time_threshold
        self.stale_after = timedelta(seconds=stale_after)
        self.clock = clock
        self._commit_lock = asyncio.Lock()
        self.logger = get_logger('service.cache_writer')

    @classmethod
    def from_config(cls, store: SnapshotStore, cache_config: Optional[Dict] = None,
                    **kwargs) -> 'CacheWriter':
        cache_config = cache_config or {}
        return cls(
            store,
            max_writes_per_hour=cache_config.get('max_writes_per_hour', 120),
            min_write_interval=cache_config.get('min_write_interval', 30),
            response_time_threshold=cache_config.get('response_time_threshold', 0.1),
            stale_after=cache_config.get('stale_after', 30),
            **kwargs
        )

    async def rehydrate(self) -> None:
        """从存储恢复变更检测基线和配额窗口"""
        snapshots = await self.store.load_snapshots()
        metadata = await self.store.load_batch_metadata()

        self.state.last_written_snapshot_by_target = dict(snapshots)
        if metadata:
            self.state.last_batch_write_at = metadata.timestamp
            self.state.window_started_at = metadata.window_started_at or metadata.timestamp
            self.state.writes_this_window = metadata.writes_this_window

        self.logger.info(f"已恢复限流状态: 快照 {len(snapshots)} 个, "
                         f"本窗口已写入 {self.state.writes_this_window} 次")

    def _current_window(self, now: datetime) -> Tuple[datetime, int]:
        """返回 (窗口开始时间, 窗口内已写入次数)，窗口过期时视为新窗口"""
        started = self.state.window_started_at
        if started is None or now - started >= QUOTA_WINDOW:
            return now, 0
        return started, self.state.writes_this_window

    def has_changed(self, snapshot: ServiceSnapshot) -> bool:
        """判断快照相对上次写入的版本是否有实质变化"""
        last = self.state.last_written_snapshot_by_target.get(snapshot.target_id)
        if last is None:
            return True
        if last.state is not snapshot.state:
            return True
        if last.error_message != snapshot.error_message:
            return True

        mean = (last.elapsed_ms + snapshot.elapsed_ms) / 2
        if mean > 0 and abs(snapshot.elapsed_ms - last.elapsed_ms) / mean > self.response_time_threshold:
            return True

        return snapshot.checked_at - last.checked_at > self.stale_after

    async def write_batch(self, snapshots: List[ServiceSnapshot]) -> BatchWriteResult:
        """
        写入一个周期的快照

        配额用尽、间隔过短或没有变化时跳过批次（不抛异常）；
        历史记录无论批次是否写入都会追加。
        """
        # 配额检查到状态更新必须串行，否则重叠的周期会越过配额
        async with self._commit_lock:
            result = await self._commit(snapshots)
        await self.append_history(snapshots)
        return result

    async def _commit(self, snapshots: List[ServiceSnapshot]) -> BatchWriteResult:
        now = self.clock()
        window_started_at, used = self._current_window(now)

        if used >= self.max_writes_per_hour:
            self.logger.warning(f"已达到每小时写入上限 {self.max_writes_per_hour}，跳过本批次")
            return BatchWriteResult(written=False, skipped_reason=SKIP_QUOTA)

        last_write = self.state.last_batch_write_at
        if last_write is not None and now - last_write < self.min_write_interval:
            self.logger.debug(f"距上次写入不足 {self.min_write_interval.total_seconds():.0f} 秒，跳过本批次")
            return BatchWriteResult(written=False, skipped_reason=SKIP_SPACING)

        changed = [snapshot for snapshot in snapshots if self.has_changed(snapshot)]
        if not changed:
            self.logger.debug("快照没有变化，跳过写入")
            return BatchWriteResult(written=False, skipped_reason=SKIP_UNCHANGED)

        metadata = BatchMetadata(
            timestamp=now,
            total_targets=len(snapshots),
            written_count=len(changed),
            window_started_at=window_started_at,
            writes_this_window=used + 1,
        )

        try:
            await self.store.commit_batch(changed, metadata)
        except StorageError as e:
            self.logger.error(f"批次提交失败: {e.format_error()}")
            return BatchWriteResult(written=False, skipped_reason=SKIP_COMMIT_FAILED)

        # 只有提交成功后才更新限流状态
        self.state.window_started_at = window_started_at
        self.state.writes_this_window = used + 1
        self.state.last_batch_write_at = now
        for snapshot in changed:
            self.state.last_written_snapshot_by_target[snapshot.target_id] = snapshot

        written_ids = tuple(snapshot.target_id for snapshot in changed)
        self.logger.info(f"已写入 {len(changed)}/{len(snapshots)} 个快照 "
                         f"(本窗口第 {used + 1} 次)")
        return BatchWriteResult(written=True, written_ids=written_ids)

    async def append_history(self, snapshots: List[ServiceSnapshot]) -> bool:
        """尽力追加历史记录，失败只记录日志"""
        if not snapshots:
            return True

        entries = [HistoryEntry.from_snapshot(snapshot) for snapshot in snapshots]
        try:
            await self.store.append_history(entries)
        except HistoryWriteError as e:
            self.logger.warning(f"历史记录写入失败: {e.format_error()}")
            return False
        return True
