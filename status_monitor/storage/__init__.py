"""快照存储模块"""

from .base import SnapshotStore, METADATA_KEY
from .factory import create_store
from .file_store import FileSnapshotStore
from .memory_store import MemorySnapshotStore
from .redis_store import RedisSnapshotStore
from .subscriber import SnapshotSubscriber

__all__ = ['SnapshotStore', 'METADATA_KEY', 'create_store', 'FileSnapshotStore',
           'MemorySnapshotStore', 'RedisSnapshotStore', 'SnapshotSubscriber']
