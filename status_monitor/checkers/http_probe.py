"""HTTP探测器

对单个URL发起一次有界的HTTP请求并对原始结果分类。
这里不做任何重试，重新验证由三重校验器负责。
"""

import asyncio
import time
from typing import Optional, Dict, Any

import aiohttp

from ..models.status import ProbeResult, FailureKind
from ..utils.log_manager import get_logger

DEFAULT_TIMEOUT = 10
DEFAULT_MAX_REDIRECTS = 5
DEFAULT_USER_AGENT = 'StatusMonitor/1.0'

TIMEOUT_MESSAGE = '连接超时'
SUPPORTED_METHODS = ('GET', 'HEAD', 'POST', 'OPTIONS')


class HttpProbe:
    """HTTP探测器"""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT,
                 max_redirects: int = DEFAULT_MAX_REDIRECTS,
                 user_agent: str = DEFAULT_USER_AGENT,
                 max_body_bytes: int = 2 * 1024 * 1024):
        """
        初始化HTTP探测器

        Args:
            timeout: 默认超时时间（秒）
            max_redirects: 最大重定向次数
            user_agent: 请求使用的User-Agent
            max_body_bytes: 读取响应体的最大字节数
        """
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.user_agent = user_agent
        self.max_body_bytes = max_body_bytes
        self.logger = get_logger('checker.http_probe')

    @classmethod
    def from_config(cls, probe_config: Optional[Dict[str, Any]]) -> 'HttpProbe':
        probe_config = probe_config or {}
        return cls(
            timeout=probe_config.get('timeout', DEFAULT_TIMEOUT),
            max_redirects=probe_config.get('max_redirects', DEFAULT_MAX_REDIRECTS),
            user_agent=probe_config.get('user_agent', DEFAULT_USER_AGENT),
        )

    @staticmethod
    def classify_status(status_code: int) -> Optional[FailureKind]:
        """
        根据HTTP状态码分类

        Returns:
            None 表示 2xx-3xx（初步判定正常），否则返回失败类型
        """
        if status_code >= 500:
            return FailureKind.SERVER_ERROR
        if status_code >= 400:
            return FailureKind.CLIENT_ERROR
        return None

    async def probe(self, url: str, method: str = 'GET',
                    timeout: Optional[float] = None,
                    json_body: Optional[Dict[str, Any]] = None) -> ProbeResult:
        """
        执行一次HTTP探测

        Args:
            url: 目标URL
            method: HTTP方法
            timeout: 本次请求的超时时间，默认使用探测器配置
            json_body: POST 时发送的JSON

        Returns:
            ProbeResult: 探测结果（网络层失败也以结果形式返回）
        """
        method = method.upper()
        if method not in SUPPORTED_METHODS:
            raise ValueError(f"不支持的HTTP方法: {method}")

        client_timeout = aiohttp.ClientTimeout(total=timeout or self.timeout)
        headers = {'User-Agent': self.user_agent}
        start_time = time.monotonic()

        try:
            async with aiohttp.ClientSession(timeout=client_timeout,
                                             headers=headers) as session:
                request_kwargs: Dict[str, Any] = {
                    'allow_redirects': True,
                    'max_redirects': self.max_redirects,
                }
                if json_body is not None:
                    request_kwargs['json'] = json_body

                async with session.request(method, url, **request_kwargs) as response:
                    status_code = response.status
                    body = None
                    if method != 'HEAD':
                        raw = await response.content.read(self.max_body_bytes)
                        body = raw.decode(response.charset or 'utf-8', errors='replace')

            failure_kind = self.classify_status(status_code)
            error_message = f"HTTP {status_code}" if failure_kind else None
            result = ProbeResult(
                status_code=status_code,
                elapsed_ms=self._elapsed_ms(start_time),
                body=body,
                failure_kind=failure_kind,
                error_message=error_message,
            )

        except asyncio.TimeoutError:
            result = ProbeResult(
                status_code=None,
                elapsed_ms=self._elapsed_ms(start_time),
                failure_kind=FailureKind.TIMEOUT,
                error_message=TIMEOUT_MESSAGE,
            )
        except aiohttp.TooManyRedirects:
            result = ProbeResult(
                status_code=None,
                elapsed_ms=self._elapsed_ms(start_time),
                failure_kind=FailureKind.UNREACHABLE,
                error_message=f"重定向次数超过 {self.max_redirects} 次",
            )
        except (aiohttp.ClientError, OSError) as e:
            result = ProbeResult(
                status_code=None,
                elapsed_ms=self._elapsed_ms(start_time),
                failure_kind=FailureKind.UNREACHABLE,
                error_message=f"连接失败: {e}",
            )

        self.logger.debug(
            f"探测 {method} {url}: 状态码={result.status_code}, "
            f"失败类型={result.failure_kind.value if result.failure_kind else '-'}, "
            f"耗时={result.elapsed_ms}ms"
        )
        return result

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return int(round((time.monotonic() - start_time) * 1000))
