"""检查服务HTTP接口

POST /check         单个按需检查
POST /check-batch   批量按需检查
GET  /status        最近一次提交的快照和批次元数据
GET  /history/{id}  历史记录和可用性统计
GET  /health        接口自身的存活检查
"""

import json
from datetime import datetime
from typing import Any, Dict, Optional

from aiohttp import web

from .history_service import HistoryService, DEFAULT_HOURS
from .on_demand import OnDemandChecker
from ..storage.base import SnapshotStore, METADATA_KEY
from ..utils.exceptions import InvalidInputError, StorageError
from ..utils.log_manager import get_logger

logger = get_logger('service.check_api')


def json_response(data: Any, status: int = 200) -> web.Response:
    return web.Response(
        text=json.dumps(data, ensure_ascii=False),
        status=status,
        content_type='application/json',
    )


def error_response(message: str, status: int = 400) -> web.Response:
    return json_response({'ok': False, 'error': message}, status=status)


class CheckAPI:
    """检查服务接口"""

    def __init__(self, checker: OnDemandChecker, store: SnapshotStore,
                 history_service: Optional[HistoryService] = None):
        self._checker = checker
        self._store = store
        self._history = history_service or HistoryService(store)
        self._started_at = datetime.now()

    @staticmethod
    async def _read_json(request: web.Request) -> Dict[str, Any]:
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise InvalidInputError('请求体必须是JSON')
        if not isinstance(body, dict):
            raise InvalidInputError('请求体必须是JSON对象')
        return body

    async def check(self, request: web.Request) -> web.Response:
        """POST /check"""
        try:
            body = await self._read_json(request)
            result = await self._checker.check_single(body.get('targetId'), body.get('url'))
        except InvalidInputError as e:
            return error_response(e.message)
        return json_response(result)

    async def check_batch(self, request: web.Request) -> web.Response:
        """POST /check-batch"""
        try:
            body = await self._read_json(request)
            result = await self._checker.check_batch(body.get('targets'))
        except InvalidInputError as e:
            return error_response(e.message)
        return json_response(result)

    async def status(self, request: web.Request) -> web.Response:
        """GET /status"""
        try:
            snapshots = await self._store.load_snapshots()
            metadata = await self._store.load_batch_metadata()
        except StorageError as e:
            logger.error(f"读取快照失败: {e.format_error()}")
            return error_response('存储暂不可用', status=503)

        return json_response({
            'ok': True,
            'snapshots': {target_id: s.to_dict() for target_id, s in snapshots.items()},
            METADATA_KEY: metadata.to_dict() if metadata else None,
        })

    async def history(self, request: web.Request) -> web.Response:
        """GET /history/{target_id}?hours=N"""
        target_id = request.match_info['target_id']
        try:
            hours = float(request.query.get('hours', DEFAULT_HOURS))
        except ValueError:
            return error_response('hours 必须是数字')

        try:
            report = await self._history.get_report(target_id, hours)
        except InvalidInputError as e:
            return error_response(e.message)
        except StorageError as e:
            logger.error(f"读取历史记录失败: {e.format_error()}")
            return error_response('存储暂不可用', status=503)

        report['ok'] = True
        return json_response(report)

    async def health(self, request: web.Request) -> web.Response:
        """GET /health"""
        return json_response({
            'ok': True,
            'uptimeSeconds': int((datetime.now() - self._started_at).total_seconds()),
        })


def create_check_app(checker: OnDemandChecker, store: SnapshotStore,
                     history_service: Optional[HistoryService] = None) -> web.Application:
    """创建检查服务的 aiohttp 应用"""
    api = CheckAPI(checker, store, history_service)

    app = web.Application()
    app.router.add_post('/check', api.check)
    app.router.add_post('/check-batch', api.check_batch)
    app.router.add_get('/status', api.status)
    app.router.add_get('/history/{target_id}', api.history)
    app.router.add_get('/health', api.health)
    return app
