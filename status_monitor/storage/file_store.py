"""JSON文件存储

快照和批次元数据保存在同一个JSON文档中，先写临时文件再 os.replace，
因此读者只会看到完整的旧文档或完整的新文档。
历史记录按目标保存为 JSON Lines 文件。
"""

import asyncio
import json
import os
import re
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Any

from .base import SnapshotStore, METADATA_KEY
from ..models.status import ServiceSnapshot, HistoryEntry, BatchMetadata
from ..utils.exceptions import StorageError, HistoryWriteError, ErrorCode

SNAPSHOT_FILE = 'snapshots.json'
HISTORY_DIR = 'history'

_UNSAFE_CHARS_RE = re.compile(r'[^A-Za-z0-9_.-]')


class FileSnapshotStore(SnapshotStore):
    """本地文件存储"""

    backend_name = 'file'

    def __init__(self, path: str = 'data'):
        """
        初始化文件存储

        Args:
            path: 数据目录
        """
        super().__init__()
        self.root = Path(path)
        self.snapshot_path = self.root / SNAPSHOT_FILE
        self.history_dir = self.root / HISTORY_DIR
        self._lock = asyncio.Lock()

    def _history_path(self, target_id: str) -> Path:
        return self.history_dir / f"{_UNSAFE_CHARS_RE.sub('_', target_id)}.jsonl"

    def _read_document(self) -> Dict[str, Any]:
        if not self.snapshot_path.exists():
            return {'snapshots': {}, METADATA_KEY: None}
        with open(self.snapshot_path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def _write_document(self, document: Dict[str, Any]) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=self.root, prefix='.snapshots-', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.snapshot_path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    async def load_snapshots(self) -> Dict[str, ServiceSnapshot]:
        try:
            document = await self._run(self._read_document)
        except (OSError, ValueError) as e:
            raise StorageError(f"读取快照文件失败: {e}", backend=self.backend_name,
                               cause=e)

        return {
            target_id: ServiceSnapshot.from_dict(data)
            for target_id, data in (document.get('snapshots') or {}).items()
        }

    async def load_batch_metadata(self) -> Optional[BatchMetadata]:
        try:
            document = await self._run(self._read_document)
        except (OSError, ValueError) as e:
            raise StorageError(f"读取快照文件失败: {e}", backend=self.backend_name,
                               cause=e)

        metadata = document.get(METADATA_KEY)
        return BatchMetadata.from_dict(metadata) if metadata else None

    async def commit_batch(self, snapshots: List[ServiceSnapshot],
                           metadata: BatchMetadata) -> None:
        async with self._lock:
            try:
                document = await self._run(self._read_document)
                stored = document.setdefault('snapshots', {})
                for snapshot in snapshots:
                    stored[snapshot.target_id] = snapshot.to_dict()
                document[METADATA_KEY] = metadata.to_dict()

                await self._run(self._write_document, document)
            except (OSError, ValueError) as e:
                raise StorageError(f"提交快照批次失败: {e}", ErrorCode.BATCH_COMMIT_FAILED,
                                   backend=self.backend_name, cause=e)

        self.logger.debug(f"已提交 {len(snapshots)} 个快照到 {self.snapshot_path}")
        await self._notify(snapshots, metadata)

    def _append_lines(self, entries: List[HistoryEntry]) -> None:
        self.history_dir.mkdir(parents=True, exist_ok=True)
        for entry in entries:
            with open(self._history_path(entry.target_id), 'a', encoding='utf-8') as f:
                f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + '\n')

    async def append_history(self, entries: List[HistoryEntry]) -> None:
        try:
            await self._run(self._append_lines, entries)
        except OSError as e:
            raise HistoryWriteError(f"追加历史记录失败: {e}", backend=self.backend_name,
                                    cause=e)

    def _read_lines(self, target_id: str) -> List[HistoryEntry]:
        path = self._history_path(target_id)
        if not path.exists():
            return []

        entries = []
        with open(path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if line:
                    entries.append(HistoryEntry.from_dict(json.loads(line)))
        return entries

    async def get_history(self, target_id: str, since: Optional[datetime] = None,
                          limit: Optional[int] = None) -> List[HistoryEntry]:
        try:
            entries = await self._run(self._read_lines, target_id)
        except (OSError, ValueError) as e:
            raise StorageError(f"读取历史记录失败: {e}", backend=self.backend_name, cause=e)
        return self._select_history(entries, since, limit)
