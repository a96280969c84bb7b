"""监控调度器模块

按固定间隔触发检查周期：并发检查所有目标、聚合状态，然后交给缓存写入器。
周期内任何未预期的异常都在周期边界被记录并吞掉，不影响下一个周期。
"""

import asyncio
from datetime import datetime
from typing import Dict, Any, Optional, Set, List

from .cache_writer import CacheWriter, BatchWriteResult
from .status_aggregator import StatusAggregator
from .target_pipeline import TargetPipeline
from .triple_check_validator import (TripleCheckValidator, DEFAULT_FIRST_DELAY,
                                     DEFAULT_SECOND_DELAY)
from ..checkers.base import DEFAULT_CONTEXT_RADIUS
from ..checkers.component_resolver import ComponentStatusResolver
from ..checkers.functional_checker import FunctionalChecker
from ..checkers.http_probe import HttpProbe
from ..models.status import ServiceSnapshot
from ..models.target import TargetDefinition
from ..storage.base import SnapshotStore
from ..utils.error_handler import ErrorHandler, handle_errors
from ..utils.exceptions import ConfigError
from ..utils.log_manager import get_logger

DEFAULT_CHECK_INTERVAL = 60
DEFAULT_MAX_CONCURRENT_CHECKS = 10


class MonitorScheduler:
    """监控调度器

    管理周期性的检查任务。周期之间允许重叠，由缓存写入器保证安全。
    """

    def __init__(self, validator: TripleCheckValidator, aggregator: StatusAggregator,
                 cache_writer: CacheWriter, store: SnapshotStore,
                 check_interval: float = DEFAULT_CHECK_INTERVAL):
        """初始化监控调度器

        Args:
            validator: 三重校验器
            aggregator: 状态聚合器
            cache_writer: 缓存写入器
            store: 共享存储（用于恢复上一次的快照）
            check_interval: 周期间隔（秒）
        """
        self.validator = validator
        self.aggregator = aggregator
        self.cache_writer = cache_writer
        self.store = store
        self.check_interval = check_interval

        self.targets: Dict[str, TargetDefinition] = {}
        self.latest_snapshots: Dict[str, ServiceSnapshot] = {}
        self.running_tasks: Set[asyncio.Task] = set()
        self.is_running = False
        self.initialized = False

        self.cycle_count = 0
        self.completed_cycles = 0
        self.last_cycle_at: Optional[datetime] = None
        self.last_write_result: Optional[BatchWriteResult] = None

        self.logger = get_logger('service.scheduler')
        self.error_handler = ErrorHandler('scheduler.cycle')
        self._guarded_cycle = handle_errors(self.error_handler, suppress_errors=True)(
            self._run_cycle)

    @classmethod
    def from_config(cls, config: Dict[str, Any], store: SnapshotStore) -> 'MonitorScheduler':
        """根据完整配置组装调度器及其依赖"""
        global_config = config.get('global', {})
        triple_check = global_config.get('triple_check', {})
        resolver_config = global_config.get('resolver', {})

        probe = HttpProbe.from_config(global_config.get('probe'))
        resolver = ComponentStatusResolver(
            FunctionalChecker(probe),
            context_radius=resolver_config.get('context_radius', DEFAULT_CONTEXT_RADIUS),
        )
        pipeline = TargetPipeline(
            probe, resolver,
            max_concurrent=global_config.get('max_concurrent_checks',
                                             DEFAULT_MAX_CONCURRENT_CHECKS),
        )
        validator = TripleCheckValidator(
            pipeline,
            first_delay=triple_check.get('first_delay', DEFAULT_FIRST_DELAY),
            second_delay=triple_check.get('second_delay', DEFAULT_SECOND_DELAY),
        )

        scheduler = cls(
            validator,
            StatusAggregator(),
            CacheWriter.from_config(store, global_config.get('cache')),
            store,
            check_interval=global_config.get('check_interval', DEFAULT_CHECK_INTERVAL),
        )
        scheduler.configure_targets(config.get('targets', {}))
        return scheduler

    def configure_targets(self, targets_config: Dict[str, Any]):
        """配置监控目标，可在两个周期之间重复调用

        Args:
            targets_config: 目标配置字典

        Raises:
            ConfigError: 目标配置错误
        """
        targets: Dict[str, TargetDefinition] = {}
        for target_id, target_config in targets_config.items():
            try:
                targets[target_id] = TargetDefinition.from_config(target_id, target_config)
            except (KeyError, ValueError, TypeError) as e:
                self.logger.error(f"配置目标 {target_id} 失败: {e}")
                raise ConfigError(f"目标 {target_id} 配置无效: {e}", cause=e)

            self.logger.info(f"配置目标 {target_id}: 组件 {len(target_config.get('components', []))} 个")

        # 整体替换，正在运行的周期继续使用旧的列表
        self.targets = targets

    async def initialize(self):
        """从存储恢复上一次的快照和限流状态"""
        self.latest_snapshots.update(await self.store.load_snapshots())
        await self.cache_writer.rehydrate()
        self.initialized = True

    async def start(self):
        """启动监控调度器"""
        if self.is_running:
            self.logger.warning("监控调度器已经在运行")
            return

        self.is_running = True
        self.logger.info(f"启动监控调度器，周期间隔: {self.check_interval}秒，"
                         f"目标数: {len(self.targets)}")

        try:
            await self._schedule_loop()
        except asyncio.CancelledError:
            self.logger.info("监控调度器被取消")
        finally:
            await self.stop()

    async def stop(self):
        """停止监控调度器"""
        if not self.is_running:
            return

        self.is_running = False
        self.logger.info("正在停止监控调度器...")

        for task in self.running_tasks:
            if not task.done():
                task.cancel()

        if self.running_tasks:
            await asyncio.gather(*self.running_tasks, return_exceptions=True)

        self.running_tasks.clear()
        self.logger.info("监控调度器已停止")

    async def _schedule_loop(self):
        """调度循环：不等待上一个周期结束就按间隔触发下一个"""
        while self.is_running:
            task = asyncio.create_task(self.run_cycle())
            self.running_tasks.add(task)
            task.add_done_callback(self.running_tasks.discard)

            await asyncio.sleep(self.check_interval)

    async def run_cycle(self) -> Optional[BatchWriteResult]:
        """立即执行一个检查周期

        Returns:
            本周期的写入结果；周期失败时返回 None（异常已记录）
        """
        return await self._guarded_cycle()

    async def _run_cycle(self) -> Optional[BatchWriteResult]:
        self.cycle_count += 1
        cycle_id = self.cycle_count

        if not self.initialized:
            await self.initialize()

        targets = list(self.targets.values())
        if not targets:
            self.logger.debug("没有配置监控目标，跳过本周期")
            return None

        self.logger.debug(f"周期 {cycle_id} 开始，目标数: {len(targets)}")
        snapshots = await asyncio.gather(*[self.check_target(target) for target in targets])

        result = await self.cache_writer.write_batch(list(snapshots))
        self.last_write_result = result
        self.last_cycle_at = datetime.now()
        self.completed_cycles += 1

        unhealthy = [s.target_id for s in snapshots if not s.state.is_operational]
        self.logger.info(
            f"周期 {cycle_id} 完成: 目标 {len(snapshots)} 个, 异常 {len(unhealthy)} 个, "
            f"写入={'是' if result.written else '否(' + str(result.skipped_reason) + ')'}"
        )
        return result

    async def check_target(self, target: TargetDefinition) -> ServiceSnapshot:
        """检查单个目标并聚合出新快照"""
        outcome = await self.validator.validate(target)
        prior = self.latest_snapshots.get(target.id)
        snapshot = self.aggregator.aggregate(target, outcome.verdict, outcome.components, prior)
        self.latest_snapshots[target.id] = snapshot
        return snapshot

    def get_snapshots(self) -> List[ServiceSnapshot]:
        return [self.latest_snapshots[t] for t in self.targets if t in self.latest_snapshots]

    def get_scheduler_stats(self) -> Dict[str, Any]:
        """获取调度器统计信息"""
        last_result = self.last_write_result
        return {
            'is_running': self.is_running,
            'total_targets': len(self.targets),
            'check_interval': self.check_interval,
            'cycle_count': self.cycle_count,
            'completed_cycles': self.completed_cycles,
            'failed_cycles': self.error_handler.total_errors(),
            'running_tasks_count': len(self.running_tasks),
            'suppressed_false_positives': self.validator.suppressed_count,
            'last_cycle_at': self.last_cycle_at.isoformat() if self.last_cycle_at else None,
            'last_write': {
                'written': last_result.written,
                'skipped_reason': last_result.skipped_reason,
                'written_ids': list(last_result.written_ids),
            } if last_result else None,
            'configured_targets': list(self.targets.keys()),
        }
