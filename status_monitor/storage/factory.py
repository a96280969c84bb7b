"""根据配置创建存储后端"""

from typing import Dict, Any, Optional

from .base import SnapshotStore
from .file_store import FileSnapshotStore
from .memory_store import MemorySnapshotStore
from .redis_store import RedisSnapshotStore
from ..utils.exceptions import ConfigError

SUPPORTED_BACKENDS = ('memory', 'file', 'redis')


def create_store(storage_config: Optional[Dict[str, Any]] = None) -> SnapshotStore:
    """
    创建存储后端

    Args:
        storage_config: global.storage 配置，缺省时使用文件存储

    Raises:
        ConfigError: 存储类型不支持
    """
    storage_config = storage_config or {}
    backend = storage_config.get('type', 'file')

    if backend == 'memory':
        return MemorySnapshotStore()
    if backend == 'file':
        return FileSnapshotStore(storage_config.get('path', 'data'))
    if backend == 'redis':
        return RedisSnapshotStore(storage_config.get('url', 'redis://localhost:6379/0'))

    raise ConfigError(f"不支持的存储类型: {backend}")
