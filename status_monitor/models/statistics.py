"""历史统计模型"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Any

from .status import HealthState, HistoryEntry


@dataclass
class StatusStatistics:
    """一段时间内的可用性统计"""
    total_checks: int = 0
    state_counts: Dict[str, int] = field(default_factory=dict)
    uptime_percentage: float = 0.0
    average_response_time: float = 0.0
    last_outage_start: Optional[datetime] = None
    last_outage_end: Optional[datetime] = None
    last_outage_duration: Optional[timedelta] = None

    @classmethod
    def from_history(cls, history: List[HistoryEntry],
                     now: Optional[datetime] = None) -> 'StatusStatistics':
        """根据按时间升序排列的历史记录计算统计

        连续的非 operational（unknown 除外）记录视为一次故障，
        遇到 operational 记录时故障结束；仍未结束的故障截止到 now。
        """
        if not history:
            return cls()

        counts = {state.value: 0 for state in HealthState}
        total_response_time = 0
        response_time_count = 0

        outage_start: Optional[datetime] = None
        last_start: Optional[datetime] = None
        last_end: Optional[datetime] = None

        for entry in history:
            counts[entry.state.value] += 1

            if entry.state is HealthState.OPERATIONAL:
                if outage_start is not None:
                    last_start, last_end = outage_start, entry.timestamp
                    outage_start = None
            elif entry.state is not HealthState.UNKNOWN:
                if outage_start is None:
                    outage_start = entry.timestamp

            if entry.elapsed_ms > 0:
                total_response_time += entry.elapsed_ms
                response_time_count += 1

        if outage_start is not None:
            last_start, last_end = outage_start, now or datetime.now()

        total = len(history)
        return cls(
            total_checks=total,
            state_counts=counts,
            uptime_percentage=counts[HealthState.OPERATIONAL.value] / total * 100,
            average_response_time=(total_response_time / response_time_count
                                   if response_time_count else 0.0),
            last_outage_start=last_start,
            last_outage_end=last_end,
            last_outage_duration=(last_end - last_start) if last_start else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalChecks': self.total_checks,
            'stateCounts': self.state_counts,
            'uptimePercentage': round(self.uptime_percentage, 2),
            'averageResponseTime': round(self.average_response_time, 1),
            'lastOutageStart': self.last_outage_start.isoformat() if self.last_outage_start else None,
            'lastOutageEnd': self.last_outage_end.isoformat() if self.last_outage_end else None,
            'lastOutageSeconds': (self.last_outage_duration.total_seconds()
                                  if self.last_outage_duration else None),
        }
