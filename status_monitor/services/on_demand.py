"""按需检查服务

对任意URL执行一次探测并直接返回结果，不经过三重校验，也不写入存储。
目标ID是已配置的目标时，同时应用该目标的内容特征规则。
"""

import asyncio
from typing import Dict, Any, Iterable, List, Optional

from ..checkers.content_analyzer import analyze
from ..checkers.http_probe import HttpProbe
from ..models.status import FailureKind, ProbeResult
from ..models.target import TargetDefinition
from ..utils.exceptions import InvalidInputError
from ..utils.log_manager import get_logger


class OnDemandChecker:
    """按需检查服务"""

    def __init__(self, probe: HttpProbe, targets: Optional[Iterable[TargetDefinition]] = None):
        """
        初始化按需检查服务

        Args:
            probe: 探测器
            targets: 已配置的目标，用于按ID查找内容特征规则
        """
        self.probe = probe
        self.targets: Dict[str, TargetDefinition] = {}
        self.logger = get_logger('service.on_demand')
        self.update_targets(targets or [])

    def update_targets(self, targets: Iterable[TargetDefinition]):
        """替换已配置的目标（配置热更新时调用）"""
        self.targets = {target.id: target for target in targets}

    def _to_response(self, target_id: Optional[str], result: ProbeResult) -> Dict[str, Any]:
        target = self.targets.get(target_id) if isinstance(target_id, str) else None
        verdict = analyze(result, target.signatures if target else (), str(target_id or ''))
        return {
            # 4xx 说明服务本身可达
            'ok': result.failure_kind in (None, FailureKind.CLIENT_ERROR),
            'state': verdict.state.value,
            'statusCode': verdict.status_code,
            'elapsedMs': verdict.elapsed_ms,
            'errorMessage': verdict.error_message,
        }

    @staticmethod
    def _require_url(url: Any, field: str) -> str:
        if not isinstance(url, str) or not url.strip():
            raise InvalidInputError('url 不能为空', field=field)
        return url.strip()

    async def check_single(self, target_id: Optional[str], url: Any) -> Dict[str, Any]:
        """
        检查单个URL

        Args:
            target_id: 目标ID，已配置时应用该目标的内容特征规则
            url: 目标URL

        Returns:
            {ok, state, statusCode, elapsedMs, errorMessage}

        Raises:
            InvalidInputError: url 为空（在任何网络请求之前）
        """
        url = self._require_url(url, 'url')

        self.logger.info(f"按需检查 {target_id or '-'}: {url}")
        result = await self.probe.probe(url)
        return self._to_response(target_id, result)

    async def check_batch(self, targets: Any) -> Dict[str, Any]:
        """
        批量检查

        Args:
            targets: [{id, url}, ...]，不能为空

        Returns:
            {ok, results: [{id, ok, state, ...}, ...]}，每个目标的结果互相独立

        Raises:
            InvalidInputError: 列表为空或某一项缺少 url
        """
        if not isinstance(targets, list) or not targets:
            raise InvalidInputError('targets 必须是非空列表', field='targets')

        urls: List[str] = []
        for index, item in enumerate(targets):
            if not isinstance(item, dict):
                raise InvalidInputError(f"targets[{index}] 必须是对象", field=f'targets[{index}]')
            urls.append(self._require_url(item.get('url'), f'targets[{index}].url'))

        self.logger.info(f"按需批量检查 {len(urls)} 个目标")
        probe_results = await asyncio.gather(*[self.probe.probe(url) for url in urls])

        results = []
        for item, result in zip(targets, probe_results):
            response = self._to_response(item.get('id'), result)
            response['id'] = item.get('id')
            results.append(response)

        return {'ok': True, 'results': results}
