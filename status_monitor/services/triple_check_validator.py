"""三重校验器

首次判定不是 operational 时，按递增的延迟再检查两次：
任一次恢复正常即视为误报；三次都异常时报告最差的那一次。
健康的目标不会产生任何额外延迟。
"""

import asyncio
from typing import Awaitable, Callable, List

from .target_pipeline import AttemptOutcome, TargetPipeline
from ..models.target import TargetDefinition
from ..utils.log_manager import get_logger

DEFAULT_FIRST_DELAY = 1.0
DEFAULT_SECOND_DELAY = 2.0


class TripleCheckValidator:
    """三重校验器"""

    def __init__(self, pipeline: TargetPipeline,
                 first_delay: float = DEFAULT_FIRST_DELAY,
                 second_delay: float = DEFAULT_SECOND_DELAY,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        """
        初始化三重校验器

        Args:
            pipeline: 单次检查流水线
            first_delay: 第一次复查前的等待时间（秒）
            second_delay: 第二次复查前的等待时间（秒）
            sleep: 等待函数，测试时可替换
        """
        self.pipeline = pipeline
        self.delays = (first_delay, second_delay)
        self.sleep = sleep
        self.logger = get_logger('service.triple_check')
        self.suppressed_count = 0

    async def _attempt(self, target: TargetDefinition, attempt: int) -> AttemptOutcome:
        try:
            return await self.pipeline.run(target)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error(f"目标 {target.id} 第 {attempt} 次检查抛出异常: {e}")
            return AttemptOutcome.failed(target, f"检查异常: {e}")

    async def validate(self, target: TargetDefinition) -> AttemptOutcome:
        """
        检查目标并在必要时复查

        Args:
            target: 目标定义

        Returns:
            AttemptOutcome: 最终采用的那一次尝试
        """
        outcome = await self._attempt(target, 1)
        if outcome.is_operational:
            return outcome

        attempts: List[AttemptOutcome] = [outcome]
        self.logger.info(f"目标 {target.id} 首次检查结果为 {outcome.overall_state.value}，开始复查")

        for attempt, delay in enumerate(self.delays, start=2):
            await self.sleep(delay)
            outcome = await self._attempt(target, attempt)

            if outcome.is_operational:
                self.suppressed_count += 1
                self.logger.info(f"目标 {target.id} 第 {attempt} 次检查恢复正常，忽略此前的异常结果")
                return outcome

            attempts.append(outcome)

        # max 在并列时返回第一个
        worst = max(attempts, key=lambda a: a.overall_state.severity)
        self.logger.warning(f"目标 {target.id} 三次检查均异常，最终状态: {worst.overall_state.value}")
        return worst
