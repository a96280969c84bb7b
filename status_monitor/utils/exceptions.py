"""自定义异常类和错误代码"""

import traceback
from enum import Enum
from typing import Optional, Dict, Any
from datetime import datetime


class ErrorCode(Enum):
    """错误代码枚举"""
    # 通用错误 (1000-1999)
    UNKNOWN_ERROR = 1000
    INITIALIZATION_ERROR = 1001
    INVALID_INPUT = 1002

    # 配置错误 (2000-2999)
    CONFIG_FILE_NOT_FOUND = 2000
    CONFIG_PARSE_ERROR = 2001
    CONFIG_VALIDATION_ERROR = 2002
    CONFIG_RELOAD_ERROR = 2003

    # 探测与分析 (3000-3999)
    PROBE_TIMEOUT = 3000
    PROBE_UNREACHABLE = 3001
    PROBE_CLIENT_ERROR = 3002
    PROBE_SERVER_ERROR = 3003
    CONTENT_SIGNATURE_MATCH = 3004
    PARSE_AMBIGUOUS = 3005
    PARSER_REGISTRATION_ERROR = 3006

    # 存储错误 (4000-4999)
    STORAGE_ERROR = 4000
    BATCH_COMMIT_FAILED = 4001
    HISTORY_WRITE_FAILURE = 4002
    QUOTA_EXCEEDED = 4003

    # 调度错误 (5000-5999)
    SCHEDULER_ERROR = 5000
    CYCLE_FAILURE = 5001


class StatusMonitorError(Exception):
    """状态监控系统基础异常类"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = True
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause
        self.recoverable = recoverable
        self.timestamp = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """将异常转换为字典格式"""
        return {
            'error_code': self.error_code.value,
            'error_name': self.error_code.name,
            'message': self.message,
            'details': self.details,
            'recoverable': self.recoverable,
            'timestamp': self.timestamp.isoformat(),
            'cause': str(self.cause) if self.cause else None,
            'traceback': traceback.format_exc() if self.cause else None
        }

    def format_error(self) -> str:
        """格式化错误信息"""
        error_msg = f"[{self.error_code.name}] {self.message}"
        if self.details:
            details_str = ", ".join([f"{k}={v}" for k, v in self.details.items()])
            error_msg += f" (详情: {details_str})"
        if self.cause:
            error_msg += f" (原因: {str(self.cause)})"
        return error_msg


class ConfigError(StatusMonitorError):
    """配置相关异常"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.CONFIG_VALIDATION_ERROR,
        config_path: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop('details', {})
        if config_path:
            details['config_path'] = config_path
        super().__init__(message, error_code, details, recoverable=False, **kwargs)


class InvalidInputError(StatusMonitorError):
    """按需检查的输入参数无效，在任何网络请求之前抛出"""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        details = kwargs.pop('details', {})
        if field:
            details['field'] = field
        super().__init__(message, ErrorCode.INVALID_INPUT, details,
                         recoverable=False, **kwargs)


class ProbeError(StatusMonitorError):
    """探测器或解析器的内部异常（正常的探测失败不会抛出）"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.PROBE_UNREACHABLE,
        target_id: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop('details', {})
        if target_id:
            details['target_id'] = target_id
        super().__init__(message, error_code, details, **kwargs)


class StorageError(StatusMonitorError):
    """存储后端异常"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.STORAGE_ERROR,
        backend: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop('details', {})
        if backend:
            details['backend'] = backend
        super().__init__(message, error_code, details, **kwargs)


class HistoryWriteError(StorageError):
    """历史记录追加失败，不影响主批次提交"""

    def __init__(self, message: str, backend: Optional[str] = None, **kwargs):
        super().__init__(message, ErrorCode.HISTORY_WRITE_FAILURE, backend=backend,
                         **kwargs)


class SchedulerError(StatusMonitorError):
    """调度器相关异常"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.SCHEDULER_ERROR,
        cycle_id: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop('details', {})
        if cycle_id is not None:
            details['cycle_id'] = cycle_id
        super().__init__(message, error_code, details, **kwargs)
