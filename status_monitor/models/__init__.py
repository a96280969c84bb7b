"""数据模型模块"""

from .status import (HealthState, FailureKind, ProbeResult, CheckVerdict, ComponentStatus,
                     ServiceSnapshot, HistoryEntry, BatchMetadata)
from .statistics import StatusStatistics
from .target import (TargetKind, ComponentType, ContentSignature, ComponentDefinition,
                     TargetDefinition)

__all__ = ['HealthState', 'FailureKind', 'ProbeResult', 'CheckVerdict', 'ComponentStatus',
           'ServiceSnapshot', 'HistoryEntry', 'BatchMetadata', 'StatusStatistics',
           'TargetKind', 'ComponentType', 'ContentSignature', 'ComponentDefinition',
           'TargetDefinition']
