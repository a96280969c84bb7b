"""工具模块"""

from .exceptions import (StatusMonitorError, ErrorCode, ConfigError, InvalidInputError,
                         ProbeError, StorageError, HistoryWriteError, SchedulerError)
from .log_manager import LogManager, LogLevel, get_logger, configure_logging, log_manager

__all__ = [
    'StatusMonitorError', 'ErrorCode', 'ConfigError', 'InvalidInputError', 'ProbeError',
    'StorageError', 'HistoryWriteError', 'SchedulerError',
    'LogManager', 'LogLevel', 'get_logger', 'configure_logging', 'log_manager'
]
