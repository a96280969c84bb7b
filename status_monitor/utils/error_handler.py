"""错误处理器

提供统一的错误统计和 ``handle_errors`` 装饰器。装饰器只应该用在
“捕获-记录-继续”的边界上（例如一次完整的检查周期），
单个目标的探测失败属于数据，不经过这里。
"""

import asyncio
import logging
from functools import wraps
from typing import Callable, Any, Optional, Dict, Union, TypeVar

from .exceptions import StatusMonitorError

T = TypeVar('T')
logger = logging.getLogger(__name__)


class ErrorHandler:
    """统一错误处理器，记录各类异常的出现次数"""

    def __init__(self, name: str = 'default'):
        self.name = name
        self.error_stats: Dict[str, int] = {}
        self.last_error: Optional[Exception] = None

    def handle_error(
            self,
            error: Exception,
            context: Optional[Dict[str, Any]] = None
    ) -> None:
        """记录错误并输出日志"""
        context = context or {}

        error_type = type(error).__name__
        self.error_stats[error_type] = self.error_stats.get(error_type, 0) + 1
        self.last_error = error

        where = context.get('function', self.name)
        if isinstance(error, StatusMonitorError):
            logger.error(f"{where} 发生系统错误: {error.format_error()}",
                         extra={'error_details': error.to_dict()})
        else:
            logger.error(f"{where} 发生未预期的错误: {error}", exc_info=error)

    def get_error_stats(self) -> Dict[str, int]:
        """获取错误统计信息"""
        return self.error_stats.copy()

    def total_errors(self) -> int:
        """累计错误次数"""
        return sum(self.error_stats.values())

    def reset_error_stats(self):
        """重置错误统计"""
        self.error_stats.clear()
        self.last_error = None


def handle_errors(
        error_handler: Optional[ErrorHandler] = None,
        suppress_errors: bool = False,
        default_return: Any = None
):
    """错误处理装饰器

    Args:
        error_handler: 记录错误的处理器
        suppress_errors: 为True时吞掉异常并返回 default_return
        default_return: 吞掉异常时的返回值
    """

    def decorator(func: Callable[..., T]) -> Callable[..., Union[T, Any]]:
        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs) -> Union[T, Any]:
                try:
                    return await func(*args, **kwargs)
                except asyncio.CancelledError:
                    raise
                except Exception as error:
                    if error_handler:
                        error_handler.handle_error(error, {'function': func.__name__})

                    if suppress_errors:
                        logger.warning(f"抑制错误: {error}")
                        return default_return

                    raise

            return async_wrapper
        else:
            @wraps(func)
            def sync_wrapper(*args, **kwargs) -> Union[T, Any]:
                try:
                    return func(*args, **kwargs)
                except Exception as error:
                    if error_handler:
                        error_handler.handle_error(error, {'function': func.__name__})

                    if suppress_errors:
                        logger.warning(f"抑制错误: {error}")
                        return default_return

                    raise

            return sync_wrapper

    return decorator
