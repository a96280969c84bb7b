"""配置文件监控器"""

import asyncio
import os
from typing import Callable, Optional, List, Dict, Any

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .config_manager import ConfigManager
from ..utils.exceptions import ConfigError
from ..utils.log_manager import get_logger

ConfigChangeCallback = Callable[[Dict[str, Any], Dict[str, Any]], None]


class ConfigFileHandler(FileSystemEventHandler):
    """配置文件变更事件处理器"""

    def __init__(self, config_path: str, callback: Callable[[], None]):
        self.config_path = config_path
        self.callback = callback
        self.logger = get_logger('config_watcher.handler')

    def on_modified(self, event):
        if not event.is_directory and os.path.abspath(event.src_path) == self.config_path:
            self.logger.info(f"检测到配置文件变更: {self.config_path}")
            self.callback()


class ConfigWatcher:
    """配置文件监控器，支持目标列表热更新

    watchdog 的回调运行在观察者线程中；传入 loop 时，
    变更处理会被转交到事件循环线程执行。
    """

    def __init__(self, config_manager: ConfigManager,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        初始化配置监控器

        Args:
            config_manager: 配置管理器实例
            loop: 回调所在的事件循环
        """
        self.config_manager = config_manager
        self.loop = loop
        self.observer: Optional[Observer] = None
        self.change_callbacks: List[ConfigChangeCallback] = []
        self.reload_count = 0
        self.logger = get_logger('config_watcher')
        self._running = False

    def add_change_callback(self, callback: ConfigChangeCallback):
        """
        添加配置变更回调函数

        Args:
            callback: 回调函数，参数为 (旧配置, 新配置)
        """
        self.change_callbacks.append(callback)

    def remove_change_callback(self, callback: ConfigChangeCallback):
        if callback in self.change_callbacks:
            self.change_callbacks.remove(callback)

    def _on_file_event(self):
        if self.loop is not None and self.loop.is_running():
            self.loop.call_soon_threadsafe(self._on_config_changed)
        else:
            self._on_config_changed()

    def _on_config_changed(self):
        """重新加载配置并通知回调，加载失败时保留旧配置"""
        old_config = self.config_manager.config
        try:
            new_config = self.config_manager.reload_config()
        except ConfigError as e:
            self.logger.error(f"配置重新加载失败，继续使用原配置: {e.format_error()}")
            return

        self.reload_count += 1
        self.logger.info("配置文件已重新加载")

        for callback in self.change_callbacks:
            try:
                callback(old_config, new_config)
            except ConfigError as e:
                self.logger.error(f"配置变更回调执行失败: {e.format_error()}")

    def start_watching(self):
        """开始监控配置文件"""
        if self._running:
            self.logger.warning("配置监控器已经在运行")
            return

        config_path = os.path.abspath(self.config_manager.config_path)
        config_dir = os.path.dirname(config_path)

        try:
            self.observer = Observer()
            self.observer.schedule(ConfigFileHandler(config_path, self._on_file_event),
                                   config_dir, recursive=False)
            self.observer.start()
        except OSError as e:
            self.logger.error(f"启动配置监控失败: {e}")
            raise ConfigError(f"启动配置监控失败: {e}", cause=e)

        self._running = True
        self.logger.info(f"开始监控配置文件: {self.config_manager.config_path}")

    def stop_watching(self):
        """停止监控配置文件"""
        if not self._running:
            return

        if self.observer:
            self.observer.stop()
            self.observer.join()
            self.observer = None

        self._running = False
        self.logger.info("配置文件监控已停止")

    def is_running(self) -> bool:
        return self._running

    async def watch_config_changes_async(self, check_interval: float = 5):
        """
        异步轮询配置文件的修改时间（watchdog 不可用的文件系统上使用）

        Args:
            check_interval: 检查间隔（秒）
        """
        self.logger.info(f"开始异步监控配置文件变更，检查间隔: {check_interval}秒")

        while True:
            if self.config_manager.is_config_changed():
                self.logger.info("检测到配置文件变更")
                self._on_config_changed()

            await asyncio.sleep(check_interval)

    def __enter__(self):
        self.start_watching()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop_watching()
