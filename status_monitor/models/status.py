"""健康状态、探测结果和快照相关的数据模型"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional, List, Iterable


class HealthState(Enum):
    """健康状态枚举

    全序（从差到好）：down > majorOutage > partialOutage > degraded
    > maintenance > unknown > operational。聚合只需要取严重度最大值。
    """
    OPERATIONAL = 'operational'
    UNKNOWN = 'unknown'
    MAINTENANCE = 'maintenance'
    DEGRADED = 'degraded'
    PARTIAL_OUTAGE = 'partialOutage'
    MAJOR_OUTAGE = 'majorOutage'
    DOWN = 'down'

    @property
    def severity(self) -> int:
        """严重度，数值越大状态越差"""
        return _SEVERITY[self]

    @property
    def is_operational(self) -> bool:
        return self is HealthState.OPERATIONAL

    @classmethod
    def worst(cls, states: Iterable['HealthState']) -> 'HealthState':
        """返回一组状态中最差的一个，空集合视为 operational"""
        return max(states, key=lambda s: s.severity, default=cls.OPERATIONAL)

    @classmethod
    def from_value(cls, value: Optional[str]) -> 'HealthState':
        """宽松解析持久化的状态字符串，无法识别时返回 unknown"""
        if value is None:
            return cls.UNKNOWN
        if isinstance(value, HealthState):
            return value

        key = str(value).replace('_', '').replace('-', '').lower()
        for state in cls:
            if state.value.lower() == key:
                return state
        return cls.UNKNOWN


_SEVERITY = {
    HealthState.OPERATIONAL: 0,
    HealthState.UNKNOWN: 1,
    HealthState.MAINTENANCE: 2,
    HealthState.DEGRADED: 3,
    HealthState.PARTIAL_OUTAGE: 4,
    HealthState.MAJOR_OUTAGE: 5,
    HealthState.DOWN: 6,
}


class FailureKind(Enum):
    """探测失败类型"""
    TIMEOUT = 'timeout'
    UNREACHABLE = 'unreachable'
    CLIENT_ERROR = 'clientError'
    SERVER_ERROR = 'serverError'


@dataclass(frozen=True)
class ProbeResult:
    """单次HTTP探测结果，每次尝试重新创建，不直接持久化"""
    status_code: Optional[int]
    elapsed_ms: int
    body: Optional[str] = None
    failure_kind: Optional[FailureKind] = None
    error_message: Optional[str] = None

    @property
    def is_success(self) -> bool:
        """2xx-3xx 且没有失败类型"""
        return (self.failure_kind is None and self.status_code is not None
                and 200 <= self.status_code < 400)

    @property
    def page_unavailable(self) -> bool:
        """页面本身拿不到（服务端错误、超时或无法连接）"""
        return self.failure_kind in (FailureKind.SERVER_ERROR, FailureKind.UNREACHABLE,
                                     FailureKind.TIMEOUT)

    def to_state(self) -> HealthState:
        """仅根据HTTP层结果给出的初步状态"""
        if self.failure_kind is None:
            return HealthState.OPERATIONAL
        if self.failure_kind is FailureKind.CLIENT_ERROR:
            return HealthState.DEGRADED
        return HealthState.DOWN


@dataclass(frozen=True)
class CheckVerdict:
    """根页面在内容分析之后的判定"""
    state: HealthState
    status_code: Optional[int]
    elapsed_ms: int
    error_message: Optional[str] = None

    @classmethod
    def from_probe(cls, probe: ProbeResult) -> 'CheckVerdict':
        return cls(
            state=probe.to_state(),
            status_code=probe.status_code,
            elapsed_ms=probe.elapsed_ms,
            error_message=probe.error_message,
        )


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_time(value: Any) -> Optional[datetime]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass(frozen=True)
class ComponentStatus:
    """子组件状态，每个周期重新计算，只随父快照一起持久化"""
    component_id: str
    state: HealthState
    elapsed_ms: int = 0
    error_message: Optional[str] = None
    status_code: Optional[int] = None
    checked_at: datetime = field(default_factory=datetime.now)
    name: str = ''
    source: str = 'page'  # page | functional | root

    def to_dict(self) -> Dict[str, Any]:
        return {
            'componentId': self.component_id,
            'name': self.name,
            'state': self.state.value,
            'elapsedMs': self.elapsed_ms,
            'errorMessage': self.error_message,
            'statusCode': self.status_code,
            'checkedAt': _format_time(self.checked_at),
            'source': self.source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ComponentStatus':
        return cls(
            component_id=data.get('componentId', ''),
            name=data.get('name', ''),
            state=HealthState.from_value(data.get('state')),
            elapsed_ms=int(data.get('elapsedMs') or 0),
            error_message=data.get('errorMessage'),
            status_code=data.get('statusCode'),
            checked_at=_parse_time(data.get('checkedAt')) or datetime.now(),
            source=data.get('source', 'page'),
        )


@dataclass(frozen=True)
class ServiceSnapshot:
    """服务快照，持久化和跨周期比较的基本单位

    不变式：consecutive_failures == 0 当且仅当 state 为 operational；
    last_healthy_at 只在确认 operational 时前进。
    """
    target_id: str
    state: HealthState
    status_code: Optional[int]
    elapsed_ms: int
    error_message: Optional[str]
    checked_at: datetime
    last_healthy_at: Optional[datetime] = None
    consecutive_failures: int = 0
    components: List[ComponentStatus] = field(default_factory=list)
    name: str = ''
    url: str = ''
    kind: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'targetId': self.target_id,
            'name': self.name,
            'url': self.url,
            'kind': self.kind,
            'state': self.state.value,
            'statusCode': self.status_code,
            'elapsedMs': self.elapsed_ms,
            'errorMessage': self.error_message,
            'checkedAt': _format_time(self.checked_at),
            'lastHealthyAt': _format_time(self.last_healthy_at),
            'consecutiveFailures': self.consecutive_failures,
            'components': [c.to_dict() for c in self.components],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ServiceSnapshot':
        return cls(
            target_id=data['targetId'],
            name=data.get('name', ''),
            url=data.get('url', ''),
            kind=data.get('kind', ''),
            state=HealthState.from_value(data.get('state')),
            status_code=data.get('statusCode'),
            elapsed_ms=int(data.get('elapsedMs') or 0),
            error_message=data.get('errorMessage'),
            checked_at=_parse_time(data.get('checkedAt')) or datetime.now(),
            last_healthy_at=_parse_time(data.get('lastHealthyAt')),
            consecutive_failures=int(data.get('consecutiveFailures') or 0),
            components=[ComponentStatus.from_dict(c) for c in data.get('components') or []],
        )


@dataclass(frozen=True)
class HistoryEntry:
    """历史记录条目，只追加，不修改"""
    target_id: str
    timestamp: datetime
    state: HealthState
    elapsed_ms: int = 0
    error_message: Optional[str] = None

    @classmethod
    def from_snapshot(cls, snapshot: ServiceSnapshot) -> 'HistoryEntry':
        return cls(
            target_id=snapshot.target_id,
            timestamp=snapshot.checked_at,
            state=snapshot.state,
            elapsed_ms=snapshot.elapsed_ms,
            error_message=snapshot.error_message,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'targetId': self.target_id,
            'timestamp': _format_time(self.timestamp),
            'state': self.state.value,
            'elapsedMs': self.elapsed_ms,
            'errorMessage': self.error_message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HistoryEntry':
        return cls(
            target_id=data['targetId'],
            timestamp=_parse_time(data['timestamp']),
            state=HealthState.from_value(data.get('state')),
            elapsed_ms=int(data.get('elapsedMs') or 0),
            error_message=data.get('errorMessage'),
        )


@dataclass(frozen=True)
class BatchMetadata:
    """批次元数据文档，随每次批量提交一起写入"""
    timestamp: datetime
    total_targets: int
    written_count: int
    window_started_at: Optional[datetime] = None
    writes_this_window: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': _format_time(self.timestamp),
            'totalTargets': self.total_targets,
            'writtenCount': self.written_count,
            'windowStartedAt': _format_time(self.window_started_at),
            'writesThisWindow': self.writes_this_window,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BatchMetadata':
        return cls(
            timestamp=_parse_time(data['timestamp']),
            total_targets=int(data.get('totalTargets') or 0),
            written_count=int(data.get('writtenCount') or 0),
            window_started_at=_parse_time(data.get('windowStartedAt')),
            writes_this_window=int(data.get('writesThisWindow') or 0),
        )
