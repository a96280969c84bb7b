"""服务模块"""

from .cache_writer import CacheWriter, RateLimiterState, BatchWriteResult
from .check_api import CheckAPI, create_check_app
from .config_manager import ConfigManager
from .config_watcher import ConfigWatcher
from .history_service import HistoryService
from .monitor_scheduler import MonitorScheduler
from .on_demand import OnDemandChecker
from .status_aggregator import StatusAggregator
from .target_pipeline import TargetPipeline, AttemptOutcome
from .triple_check_validator import TripleCheckValidator

__all__ = ['CacheWriter', 'RateLimiterState', 'BatchWriteResult', 'CheckAPI',
           'create_check_app', 'ConfigManager', 'ConfigWatcher', 'HistoryService',
           'MonitorScheduler', 'OnDemandChecker', 'StatusAggregator', 'TargetPipeline',
           'AttemptOutcome', 'TripleCheckValidator']
