"""测试数据模型"""

import pytest
from datetime import datetime, timedelta

from status_monitor.models import (HealthState, FailureKind, ProbeResult, CheckVerdict,
                                   ComponentStatus, ServiceSnapshot, HistoryEntry,
                                   BatchMetadata, StatusStatistics, TargetDefinition,
                                   TargetKind, ComponentType)


class TestHealthState:
    """测试HealthState全序"""

    def test_severity_order(self):
        """测试从好到差的顺序"""
        ordered = [HealthState.OPERATIONAL, HealthState.UNKNOWN, HealthState.MAINTENANCE,
                   HealthState.DEGRADED, HealthState.PARTIAL_OUTAGE, HealthState.MAJOR_OUTAGE,
                   HealthState.DOWN]
        severities = [state.severity for state in ordered]
        assert severities == sorted(severities)
        assert len(set(severities)) == len(ordered)

    def test_worst(self):
        """测试取最差状态"""
        assert HealthState.worst([HealthState.OPERATIONAL, HealthState.DEGRADED,
                                  HealthState.UNKNOWN]) is HealthState.DEGRADED
        assert HealthState.worst([HealthState.DOWN, HealthState.MAJOR_OUTAGE]) is HealthState.DOWN
        assert HealthState.worst([]) is HealthState.OPERATIONAL

    def test_from_value(self):
        """测试宽松解析状态字符串"""
        assert HealthState.from_value('partialOutage') is HealthState.PARTIAL_OUTAGE
        assert HealthState.from_value('partial_outage') is HealthState.PARTIAL_OUTAGE
        assert HealthState.from_value('DOWN') is HealthState.DOWN
        assert HealthState.from_value('something-else') is HealthState.UNKNOWN
        assert HealthState.from_value(None) is HealthState.UNKNOWN


class TestProbeResult:
    """测试ProbeResult"""

    def test_success(self):
        result = ProbeResult(status_code=200, elapsed_ms=120, body='ok')
        assert result.is_success
        assert not result.page_unavailable
        assert result.to_state() is HealthState.OPERATIONAL

    def test_client_error(self):
        result = ProbeResult(status_code=404, elapsed_ms=80,
                             failure_kind=FailureKind.CLIENT_ERROR, error_message='HTTP 404')
        assert not result.is_success
        assert not result.page_unavailable
        assert result.to_state() is HealthState.DEGRADED

    @pytest.mark.parametrize('kind', [FailureKind.SERVER_ERROR, FailureKind.TIMEOUT,
                                      FailureKind.UNREACHABLE])
    def test_page_unavailable(self, kind):
        result = ProbeResult(status_code=None, elapsed_ms=10000, failure_kind=kind)
        assert result.page_unavailable
        assert result.to_state() is HealthState.DOWN

    def test_verdict_from_probe(self):
        result = ProbeResult(status_code=503, elapsed_ms=40,
                             failure_kind=FailureKind.SERVER_ERROR, error_message='HTTP 503')
        verdict = CheckVerdict.from_probe(result)
        assert verdict.state is HealthState.DOWN
        assert verdict.status_code == 503
        assert verdict.error_message == 'HTTP 503'


class TestServiceSnapshot:
    """测试ServiceSnapshot的持久化格式"""

    def test_to_dict_uses_camel_case(self):
        """测试字段名与持久化格式一致"""
        now = datetime(2025, 1, 27, 12, 0, 0)
        snapshot = ServiceSnapshot(
            target_id='infinitum-view',
            state=HealthState.DEGRADED,
            status_code=200,
            elapsed_ms=321,
            error_message='Data feed issue detected',
            checked_at=now,
            last_healthy_at=now - timedelta(minutes=5),
            consecutive_failures=2,
            components=[ComponentStatus(component_id='api', state=HealthState.OPERATIONAL,
                                        checked_at=now, name='API')],
            name='Infinitum View',
        )

        data = snapshot.to_dict()
        assert data['targetId'] == 'infinitum-view'
        assert data['state'] == 'degraded'
        assert data['statusCode'] == 200
        assert data['elapsedMs'] == 321
        assert data['errorMessage'] == 'Data feed issue detected'
        assert data['lastHealthyAt'] == '2025-01-27T11:55:00'
        assert data['consecutiveFailures'] == 2
        assert data['components'][0]['componentId'] == 'api'

    def test_from_dict_restores_snapshot(self):
        """测试从持久化文档恢复"""
        data = {
            'targetId': 'firebase',
            'state': 'majorOutage',
            'statusCode': None,
            'elapsedMs': 0,
            'errorMessage': '连接超时',
            'checkedAt': '2025-01-27T12:00:00',
            'lastHealthyAt': None,
            'consecutiveFailures': 3,
            'components': [{'componentId': 'auth', 'state': 'down', 'source': 'root'}],
        }

        snapshot = ServiceSnapshot.from_dict(data)
        assert snapshot.state is HealthState.MAJOR_OUTAGE
        assert snapshot.last_healthy_at is None
        assert snapshot.consecutive_failures == 3
        assert snapshot.components[0].state is HealthState.DOWN
        assert snapshot.components[0].source == 'root'

    def test_history_entry_from_snapshot(self):
        now = datetime(2025, 1, 27, 12, 0, 0)
        snapshot = ServiceSnapshot(target_id='crm', state=HealthState.DOWN, status_code=502,
                                   elapsed_ms=50, error_message='HTTP 502', checked_at=now)
        entry = HistoryEntry.from_snapshot(snapshot)
        assert entry.target_id == 'crm'
        assert entry.timestamp == now
        assert entry.state is HealthState.DOWN
        assert HistoryEntry.from_dict(entry.to_dict()) == entry

    def test_batch_metadata_document(self):
        now = datetime(2025, 1, 27, 12, 0, 0)
        metadata = BatchMetadata(timestamp=now, total_targets=8, written_count=3,
                                 window_started_at=now, writes_this_window=4)
        data = metadata.to_dict()
        assert data['timestamp'] == '2025-01-27T12:00:00'
        assert data['writtenCount'] == 3
        assert data['writesThisWindow'] == 4


class TestTargetDefinition:
    """测试目标定义"""

    def test_from_config(self):
        config = {
            'name': 'Firebase',
            'url': 'https://status.firebase.google.com/',
            'kind': 'thirdParty',
            'parser': 'firebase',
            'signatures': [{'phrase': 'data feed issue', 'state': 'degraded',
                            'message': 'Data feed issue detected'}],
            'components': [
                {'id': 'auth', 'name': 'Firebase Authentication', 'type': 'auth',
                 'functional': True, 'check_url': 'https://example.com/auth',
                 'check_method': 'post'},
                {'id': 'hosting', 'name': 'Firebase Hosting', 'type': 'cdn'},
            ],
        }

        target = TargetDefinition.from_config('firebase', config)
        assert target.kind is TargetKind.THIRD_PARTY
        assert target.parser == 'firebase'
        assert target.signatures[0].state is HealthState.DEGRADED
        assert target.components[0].component_type is ComponentType.AUTH
        assert target.components[0].functional
        assert target.components[0].check_method == 'POST'
        assert target.components[1].check_url is None

    def test_missing_url_raises(self):
        with pytest.raises(KeyError):
            TargetDefinition.from_config('broken', {'name': 'Broken'})


class TestStatusStatistics:
    """测试历史统计"""

    def _entry(self, minutes, state, elapsed=100):
        start = datetime(2025, 1, 27, 12, 0, 0)
        return HistoryEntry(target_id='view', timestamp=start + timedelta(minutes=minutes),
                            state=state, elapsed_ms=elapsed)

    def test_empty_history(self):
        stats = StatusStatistics.from_history([])
        assert stats.total_checks == 0
        assert stats.uptime_percentage == 0.0

    def test_uptime_and_last_outage(self):
        """测试可用率和最近一次故障"""
        history = [
            self._entry(0, HealthState.OPERATIONAL, 100),
            self._entry(1, HealthState.DOWN, 0),
            self._entry(2, HealthState.DEGRADED, 300),
            self._entry(3, HealthState.OPERATIONAL, 200),
        ]

        stats = StatusStatistics.from_history(history)
        assert stats.total_checks == 4
        assert stats.uptime_percentage == 50.0
        assert stats.average_response_time == 200.0
        assert stats.state_counts['down'] == 1
        assert stats.last_outage_start == history[1].timestamp
        assert stats.last_outage_end == history[3].timestamp
        assert stats.last_outage_duration == timedelta(minutes=2)

    def test_open_outage_ends_now(self):
        history = [self._entry(0, HealthState.OPERATIONAL), self._entry(1, HealthState.DOWN)]
        now = history[1].timestamp + timedelta(minutes=9)

        stats = StatusStatistics.from_history(history, now=now)
        assert stats.last_outage_end == now
        assert stats.last_outage_duration == timedelta(minutes=9)
