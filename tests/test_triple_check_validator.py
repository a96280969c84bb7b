"""三重校验器与单次检查流水线测试"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from status_monitor.checkers.component_resolver import ComponentStatusResolver
from status_monitor.checkers.functional_checker import FunctionalChecker
from status_monitor.models.status import (HealthState, CheckVerdict, ComponentStatus,
                                          ProbeResult, FailureKind)
from status_monitor.models.target import TargetDefinition, ContentSignature
from status_monitor.services.target_pipeline import AttemptOutcome, TargetPipeline
from status_monitor.services.triple_check_validator import TripleCheckValidator
from status_monitor.checkers.http_probe import TIMEOUT_MESSAGE

TARGET = TargetDefinition.from_config('crm', {
    'name': 'Infinitum CRM',
    'url': 'https://crm.example.com',
    'components': [{'id': 'api', 'name': 'API'}],
})


def outcome(state, message=None):
    return AttemptOutcome(
        verdict=CheckVerdict(state=state, status_code=200 if state.is_operational else 503,
                             elapsed_ms=100, error_message=message),
        components=[],
    )


class FakeSleep:
    """记录等待时间的假 sleep"""

    def __init__(self):
        self.calls = []

    async def __call__(self, delay):
        self.calls.append(delay)


def make_validator(*results):
    pipeline = MagicMock()
    pipeline.run = AsyncMock(side_effect=list(results))
    sleep = FakeSleep()
    return TripleCheckValidator(pipeline, first_delay=1.0, second_delay=2.0, sleep=sleep), \
        pipeline, sleep


class TestAttemptOutcome:
    """检查尝试结果测试"""

    def test_overall_state_includes_components(self):
        result = AttemptOutcome(
            verdict=CheckVerdict(state=HealthState.OPERATIONAL, status_code=200, elapsed_ms=1),
            components=[ComponentStatus(component_id='api', state=HealthState.DEGRADED)],
        )
        assert result.overall_state is HealthState.DEGRADED
        assert not result.is_operational

    def test_failed(self):
        result = AttemptOutcome.failed(TARGET, '检查异常: boom')
        assert result.verdict.state is HealthState.DOWN
        assert result.components[0].state is HealthState.DOWN
        assert result.components[0].error_message == '检查异常: boom'


class TestTripleCheckValidator:
    """三重校验器测试类"""

    @pytest.mark.asyncio
    async def test_healthy_target_has_no_delay(self):
        """测试健康目标只检查一次且不等待"""
        validator, pipeline, sleep = make_validator(outcome(HealthState.OPERATIONAL))

        result = await validator.validate(TARGET)

        assert result.is_operational
        assert pipeline.run.await_count == 1
        assert sleep.calls == []

    @pytest.mark.asyncio
    async def test_false_positive_suppressed_on_second_attempt(self):
        """测试第二次检查恢复时忽略首次异常"""
        validator, pipeline, sleep = make_validator(
            outcome(HealthState.DOWN, 'HTTP 503'), outcome(HealthState.OPERATIONAL))

        result = await validator.validate(TARGET)

        assert result.is_operational
        assert pipeline.run.await_count == 2
        assert sleep.calls == [1.0]
        assert validator.suppressed_count == 1

    @pytest.mark.asyncio
    async def test_false_positive_suppressed_on_third_attempt(self):
        validator, pipeline, sleep = make_validator(
            outcome(HealthState.DEGRADED), outcome(HealthState.DOWN),
            outcome(HealthState.OPERATIONAL))

        result = await validator.validate(TARGET)

        assert result.is_operational
        assert sleep.calls == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_three_failures_report_worst(self):
        """测试三次都异常时报告最差的一次"""
        validator, pipeline, sleep = make_validator(
            outcome(HealthState.DEGRADED, 'first'), outcome(HealthState.DOWN, 'second'),
            outcome(HealthState.PARTIAL_OUTAGE, 'third'))

        result = await validator.validate(TARGET)

        assert result.overall_state is HealthState.DOWN
        assert result.verdict.error_message == 'second'
        assert pipeline.run.await_count == 3
        assert validator.suppressed_count == 0

    @pytest.mark.asyncio
    async def test_tie_keeps_first_attempt(self):
        validator, _, _ = make_validator(
            outcome(HealthState.DOWN, 'first'), outcome(HealthState.DOWN, 'second'),
            outcome(HealthState.DOWN, 'third'))

        result = await validator.validate(TARGET)

        assert result.verdict.error_message == 'first'

    @pytest.mark.asyncio
    async def test_exception_counts_as_down(self):
        """测试检查抛出异常时按 down 处理并继续复查"""
        validator, pipeline, _ = make_validator(
            RuntimeError('boom'), RuntimeError('boom'), RuntimeError('boom'))

        result = await validator.validate(TARGET)

        assert result.overall_state is HealthState.DOWN
        assert result.verdict.error_message == '检查异常: boom'
        assert pipeline.run.await_count == 3

    @pytest.mark.asyncio
    async def test_all_timeouts_end_down(self):
        """测试三次都超时的端到端流程：最终 down，消息为超时"""
        timeout = ProbeResult(status_code=None, elapsed_ms=10000,
                              failure_kind=FailureKind.TIMEOUT, error_message=TIMEOUT_MESSAGE)
        probe = MagicMock()
        probe.probe = AsyncMock(return_value=timeout)
        pipeline = TargetPipeline(probe, ComponentStatusResolver(FunctionalChecker(probe)))
        sleep = FakeSleep()
        validator = TripleCheckValidator(pipeline, sleep=sleep)

        result = await validator.validate(TARGET)

        assert result.overall_state is HealthState.DOWN
        assert result.verdict.error_message == TIMEOUT_MESSAGE
        assert result.components[0].source == 'root'
        assert probe.probe.await_count == 3
        assert sleep.calls == [1.0, 2.0]


class TestTargetPipeline:
    """单次检查流水线测试"""

    @pytest.mark.asyncio
    async def test_signature_applied(self):
        target = TargetDefinition(
            id='view', name='Infinitum View', url='https://view.example.com',
            signatures=(ContentSignature(phrase='data feed issue',
                                         message='Data feed issue detected'),),
        )
        probe = MagicMock()
        probe.probe = AsyncMock(return_value=ProbeResult(
            status_code=200, elapsed_ms=80, body='<p>There is a data feed issue</p>'))
        pipeline = TargetPipeline(probe, ComponentStatusResolver(FunctionalChecker(probe)),
                                  max_concurrent=2)

        result = await pipeline.run(target)

        assert result.overall_state is HealthState.DEGRADED
        assert result.verdict.error_message == 'Data feed issue detected'
        probe.probe.assert_awaited_once_with('https://view.example.com', timeout=None)
