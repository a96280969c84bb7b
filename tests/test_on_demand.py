"""按需检查服务测试"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from status_monitor.models.status import ProbeResult, FailureKind, HealthState
from status_monitor.models.target import TargetDefinition, ContentSignature
from status_monitor.services.on_demand import OnDemandChecker
from status_monitor.utils.exceptions import InvalidInputError, ErrorCode

RESULTS = {
    'https://ok.example.com': ProbeResult(status_code=200, elapsed_ms=120, body='ok'),
    'https://auth.example.com': ProbeResult(status_code=400, elapsed_ms=90,
                                            failure_kind=FailureKind.CLIENT_ERROR,
                                            error_message='HTTP 400'),
    'https://down.example.com': ProbeResult(status_code=None, elapsed_ms=10000,
                                            failure_kind=FailureKind.TIMEOUT,
                                            error_message='连接超时'),
    'https://view.example.com': ProbeResult(
        status_code=200, elapsed_ms=150,
        body='<div class="banner">Stats may be delayed/inaccurate due to a data feed issue.</div>'),
}

VIEW = TargetDefinition(
    id='infinitum-view', name='Infinitum View', url='https://view.example.com',
    signatures=(ContentSignature(phrase='Stats may be delayed/inaccurate due to a data feed issue.',
                                 state=HealthState.DEGRADED,
                                 message='Data feed issue detected'),),
)


def make_checker(targets=None):
    probe = MagicMock()
    probe.probe = AsyncMock(side_effect=lambda url: RESULTS[url])
    return OnDemandChecker(probe, targets), probe


class TestOnDemandChecker:
    """按需检查服务测试类"""

    @pytest.mark.asyncio
    async def test_check_single(self):
        checker, probe = make_checker()

        result = await checker.check_single('view', 'https://ok.example.com')

        assert result == {'ok': True, 'state': 'operational', 'statusCode': 200,
                          'elapsedMs': 120, 'errorMessage': None}
        probe.probe.assert_awaited_once_with('https://ok.example.com')

    @pytest.mark.asyncio
    async def test_client_error_is_reachable(self):
        checker, _ = make_checker()
        result = await checker.check_single(None, 'https://auth.example.com')
        assert result['ok'] is True
        assert result['state'] == 'degraded'

    @pytest.mark.asyncio
    async def test_timeout(self):
        checker, _ = make_checker()
        result = await checker.check_single(None, '  https://down.example.com ')
        assert result['ok'] is False
        assert result['state'] == 'down'
        assert result['statusCode'] is None
        assert result['errorMessage'] == '连接超时'

    @pytest.mark.asyncio
    @pytest.mark.parametrize('url', [None, '', '   ', 42])
    async def test_missing_url_rejected_before_probe(self, url):
        """测试缺少url时在发出请求之前报错"""
        checker, probe = make_checker()

        with pytest.raises(InvalidInputError) as exc_info:
            await checker.check_single('view', url)

        assert exc_info.value.error_code is ErrorCode.INVALID_INPUT
        assert exc_info.value.details['field'] == 'url'
        probe.probe.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_check_batch_results_are_independent(self):
        """测试批量检查中单个目标失败不影响其他目标"""
        checker, _ = make_checker()

        response = await checker.check_batch([
            {'id': 'a', 'url': 'https://ok.example.com'},
            {'id': 'b', 'url': 'https://down.example.com'},
            {'id': 'c', 'url': 'https://auth.example.com'},
        ])

        assert response['ok'] is True
        assert [r['id'] for r in response['results']] == ['a', 'b', 'c']
        assert [r['ok'] for r in response['results']] == [True, False, True]

    @pytest.mark.asyncio
    @pytest.mark.parametrize('targets', [None, [], 'https://ok.example.com',
                                         [{'id': 'a'}], ['https://ok.example.com']])
    async def test_invalid_batch(self, targets):
        checker, probe = make_checker()

        with pytest.raises(InvalidInputError):
            await checker.check_batch(targets)

        probe.probe.assert_not_awaited()


class TestOnDemandContentSignatures:
    """按需检查应用已配置目标的内容特征规则"""

    @pytest.mark.asyncio
    async def test_single_check_applies_signature(self):
        """测试2xx页面命中特征文本时报告 degraded"""
        checker, _ = make_checker([VIEW])

        result = await checker.check_single('infinitum-view', 'https://view.example.com')

        assert result == {'ok': True, 'state': 'degraded', 'statusCode': 200,
                          'elapsedMs': 150, 'errorMessage': 'Data feed issue detected'}

    @pytest.mark.asyncio
    async def test_unknown_target_id_uses_http_result_only(self):
        checker, _ = make_checker([VIEW])

        result = await checker.check_single('other', 'https://view.example.com')

        assert result['state'] == 'operational'
        assert result['errorMessage'] is None

    @pytest.mark.asyncio
    async def test_batch_check_applies_signature_per_target(self):
        checker, _ = make_checker([VIEW])

        response = await checker.check_batch([
            {'id': 'infinitum-view', 'url': 'https://view.example.com'},
            {'id': 'mirror', 'url': 'https://view.example.com'},
            {'id': 'infinitum-view', 'url': 'https://down.example.com'},
        ])

        states = [(r['id'], r['state'], r['errorMessage']) for r in response['results']]
        assert states == [
            ('infinitum-view', 'degraded', 'Data feed issue detected'),
            ('mirror', 'operational', None),
            ('infinitum-view', 'down', '连接超时'),
        ]

    @pytest.mark.asyncio
    async def test_update_targets(self):
        """测试配置热更新后使用新的规则"""
        checker, _ = make_checker()
        before = await checker.check_single('infinitum-view', 'https://view.example.com')

        checker.update_targets([VIEW])
        after = await checker.check_single('infinitum-view', 'https://view.example.com')

        assert before['state'] == 'operational'
        assert after['state'] == 'degraded'
