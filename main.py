#!/usr/bin/env python3
"""
状态监控系统主应用程序入口

组装调度器、存储、配置热更新和检查接口，
负责启动、信号处理和优雅关闭。
"""

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from typing import Optional, Dict, Any

from aiohttp import web

from status_monitor.checkers.http_probe import HttpProbe
from status_monitor.services.check_api import create_check_app
from status_monitor.services.config_manager import ConfigManager
from status_monitor.services.config_watcher import ConfigWatcher
from status_monitor.services.history_service import HistoryService
from status_monitor.services.monitor_scheduler import MonitorScheduler
from status_monitor.services.on_demand import OnDemandChecker
from status_monitor.storage.base import SnapshotStore
from status_monitor.storage.factory import create_store
from status_monitor.utils.exceptions import StatusMonitorError, ConfigError
from status_monitor.utils.log_manager import log_manager, get_logger

# 版本信息
__version__ = "1.0.0"


class StatusMonitorApp:
    """状态监控系统主应用程序类"""

    def __init__(self, config_path: str, serve_api: bool = False,
                 log_overrides: Optional[Dict[str, Any]] = None):
        """初始化应用程序

        Args:
            config_path: 配置文件路径
            serve_api: 是否同时启动HTTP检查接口
            log_overrides: 命令行传入的日志配置（覆盖配置文件）
        """
        self.config_path = config_path
        self.serve_api = serve_api
        self.log_overrides = log_overrides or {}
        self.logger: Optional[logging.Logger] = None
        self.is_running = False
        self.shutdown_event = asyncio.Event()

        # 核心组件
        self.config_manager: Optional[ConfigManager] = None
        self.config_watcher: Optional[ConfigWatcher] = None
        self.store: Optional[SnapshotStore] = None
        self.monitor_scheduler: Optional[MonitorScheduler] = None
        self.on_demand: Optional[OnDemandChecker] = None
        self.api_runner: Optional[web.AppRunner] = None

        # 任务管理
        self.background_tasks = set()

    async def initialize(self):
        """初始化应用程序组件"""
        self.config_manager = ConfigManager(self.config_path)
        config = self.config_manager.load_config()
        global_config = config.get('global', {})

        self._configure_logging(global_config)
        self.logger = get_logger('main')
        self.logger.info("开始初始化状态监控系统")

        self.store = create_store(global_config.get('storage'))
        self.monitor_scheduler = MonitorScheduler.from_config(config, self.store)
        self.on_demand = OnDemandChecker(HttpProbe.from_config(global_config.get('probe')),
                                         self.monitor_scheduler.targets.values())

        if global_config.get('watch_config', True):
            self.config_watcher = ConfigWatcher(self.config_manager,
                                                loop=asyncio.get_running_loop())
            self.config_watcher.add_change_callback(self._on_config_changed_callback)

        self.logger.info(f"应用程序组件初始化完成，存储后端: {self.store.backend_name}")

    def _configure_logging(self, global_config: Dict[str, Any]):
        """配置日志系统，命令行参数优先"""
        log_config = {
            'log_level': global_config.get('log_level', 'INFO'),
            'enable_console': True,
        }
        if global_config.get('log_file'):
            log_config['log_file'] = global_config['log_file']
            log_config['max_file_size'] = global_config.get('max_log_size', 10 * 1024 * 1024)
            log_config['backup_count'] = global_config.get('log_backup_count', 5)

        log_config.update({k: v for k, v in self.log_overrides.items() if v})
        log_manager.configure(log_config)

    def _on_config_changed_callback(self, old_config: Dict[str, Any],
                                    new_config: Dict[str, Any]):
        """配置文件变更回调：在两个周期之间替换目标列表"""
        self.logger.info("检测到配置文件变更，更新监控目标")
        self._configure_logging(new_config.get('global', {}))
        self.monitor_scheduler.configure_targets(new_config.get('targets', {}))
        self.on_demand.update_targets(self.monitor_scheduler.targets.values())
        self.logger.info(f"监控目标已更新，共 {len(self.monitor_scheduler.targets)} 个")

    async def _start_api(self):
        api_config = self.config_manager.get_global_config().get('api', {})
        host = api_config.get('host', '0.0.0.0')
        port = api_config.get('port', 8080)

        history_service = HistoryService(self.store)
        app = create_check_app(self.on_demand, self.store, history_service)
        self.api_runner = web.AppRunner(app)
        await self.api_runner.setup()
        await web.TCPSite(self.api_runner, host, port).start()
        self.logger.info(f"检查接口已启动: http://{host}:{port}")

    def _track(self, coro):
        task = asyncio.create_task(coro)
        self.background_tasks.add(task)
        task.add_done_callback(self.background_tasks.discard)
        return task

    async def start(self):
        """启动应用程序"""
        if self.is_running:
            self.logger.warning("应用程序已经在运行")
            return

        try:
            self.is_running = True
            self.logger.info("启动状态监控系统")

            if self.config_watcher:
                try:
                    self.config_watcher.start_watching()
                except ConfigError as e:
                    self.logger.warning(f"文件监控不可用，改为轮询配置文件: {e}")
                    self._track(self.config_watcher.watch_config_changes_async(
                        self.config_manager.get_global_config().get('config_poll_interval', 5)))

            self._track(self.monitor_scheduler.start())

            if self.serve_api:
                await self._start_api()

            self.logger.info("状态监控系统启动完成")
            await self.shutdown_event.wait()

        finally:
            await self.stop()

    async def stop(self):
        """停止应用程序"""
        if not self.is_running:
            return

        self.logger.info("正在停止状态监控系统...")
        self.is_running = False

        if self.monitor_scheduler:
            await self.monitor_scheduler.stop()

        if self.config_watcher:
            self.config_watcher.stop_watching()

        if self.api_runner:
            await self.api_runner.cleanup()
            self.api_runner = None

        for task in self.background_tasks:
            if not task.done():
                task.cancel()
        if self.background_tasks:
            await asyncio.gather(*self.background_tasks, return_exceptions=True)
        self.background_tasks.clear()

        if self.store:
            await self.store.close()

        self.logger.info("状态监控系统已停止")
        log_manager.cleanup()

    def shutdown(self):
        """触发应用程序关闭"""
        if self.logger:
            self.logger.info("收到关闭信号")
        self.shutdown_event.set()

    def get_status(self) -> Dict[str, Any]:
        """获取应用程序状态"""
        status = {
            'is_running': self.is_running,
            'config_path': self.config_path,
            'background_tasks_count': len(self.background_tasks),
            'api_enabled': self.serve_api,
        }

        if self.monitor_scheduler:
            status['scheduler_stats'] = self.monitor_scheduler.get_scheduler_stats()
            status['snapshots'] = {s.target_id: s.state.value
                                   for s in self.monitor_scheduler.get_snapshots()}

        if self.config_watcher:
            status['config_reloads'] = self.config_watcher.reload_count

        return status


# 全局应用程序实例
app: Optional[StatusMonitorApp] = None


def signal_handler(signum, frame):
    """信号处理器"""
    signal_name = signal.Signals(signum).name
    print(f"\n收到信号 {signal_name} ({signum})")

    if app:
        app.shutdown()
    else:
        print("应用程序未初始化，直接退出")
        sys.exit(0)


def create_argument_parser() -> argparse.ArgumentParser:
    """创建命令行参数解析器"""
    parser = argparse.ArgumentParser(
        prog='status-monitor',
        description='状态监控系统 - 持续检查内部和第三方服务的状态并汇总成共享状态记录',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例用法:
  %(prog)s config.yaml                          # 使用指定配置文件启动监控
  %(prog)s --serve config.yaml                  # 启动监控并开启HTTP检查接口
  %(prog)s --validate config.yaml               # 验证配置文件格式
  %(prog)s --check-once config.yaml             # 执行一个检查周期后退出
  %(prog)s --check-url https://example.com      # 按需检查单个URL
  %(prog)s --version                            # 显示版本信息

配置文件格式请参考 config/example.yaml
        """
    )

    parser.add_argument(
        'config_file',
        nargs='?',
        help='YAML配置文件路径'
    )

    parser.add_argument(
        '--version', '-v',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--validate',
        action='store_true',
        help='验证配置文件格式并退出'
    )

    parser.add_argument(
        '--check-once',
        action='store_true',
        help='执行一个检查周期后退出'
    )

    parser.add_argument(
        '--check-url',
        metavar='URL',
        help='按需检查单个URL并输出JSON结果'
    )

    parser.add_argument(
        '--target-id',
        help='与 --check-url 一起使用的目标ID'
    )

    parser.add_argument(
        '--serve',
        action='store_true',
        help='同时启动HTTP检查接口'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='设置日志级别（覆盖配置文件设置）'
    )

    parser.add_argument(
        '--log-file',
        help='日志文件路径（覆盖配置文件设置）'
    )

    return parser


def validate_config_file(config_path: str) -> bool:
    """验证配置文件

    Returns:
        验证是否成功
    """
    print(f"正在验证配置文件: {config_path}")

    try:
        config = ConfigManager(config_path).load_config()
    except ConfigError as e:
        print(f"❌ 配置文件验证失败: {e}")
        return False

    targets = config.get('targets', {})
    print("✅ 配置文件验证成功!")
    print(f"   - 目标数量: {len(targets)}")
    for target_id, target_config in targets.items():
        components = target_config.get('components', [])
        print(f"     * {target_id} ({target_config.get('kind', 'internal')}, "
              f"组件 {len(components)} 个)")

    return True


async def check_once(config_path: str, log_overrides: Optional[Dict[str, Any]] = None) -> bool:
    """执行一个完整的检查周期（包括写入存储）

    Returns:
        所有目标是否都为 operational
    """
    print(f"正在执行检查周期: {config_path}")

    app_instance = StatusMonitorApp(config_path, log_overrides=log_overrides)
    await app_instance.initialize()
    scheduler = app_instance.monitor_scheduler

    try:
        result = await scheduler.run_cycle()
        snapshots = scheduler.get_snapshots()
    finally:
        await app_instance.store.close()

    if scheduler.completed_cycles == 0:
        print("❌ 检查周期执行失败，详见日志")
        return False

    print(f"✅ 检查完成，共检查 {len(snapshots)} 个目标"
          f"{'，已写入存储' if result and result.written else ''}:")

    all_operational = True
    for snapshot in snapshots:
        if snapshot.state.is_operational:
            print(f"   ✅ {snapshot.target_id}: operational ({snapshot.elapsed_ms}ms)")
        else:
            all_operational = False
            print(f"   ❌ {snapshot.target_id}: {snapshot.state.value} - {snapshot.error_message}")
            for component in snapshot.components:
                if not component.state.is_operational:
                    print(f"      - {component.name}: {component.state.value}")

    return all_operational


async def check_url(url: str, target_id: Optional[str] = None) -> bool:
    """按需检查单个URL并以JSON输出结果

    Returns:
        目标是否可达（ok 字段）
    """
    checker = OnDemandChecker(HttpProbe())
    result = await checker.check_single(target_id, url)
    print(json.dumps(result, ensure_ascii=False, indent=2))
    return result['ok']


async def main():
    """主函数"""
    global app

    parser = create_argument_parser()
    args = parser.parse_args()

    if args.check_url is not None:
        try:
            success = await check_url(args.check_url, args.target_id)
        except StatusMonitorError as e:
            print(f"输入无效: {e}", file=sys.stderr)
            sys.exit(2)
        sys.exit(0 if success else 1)

    if not args.config_file:
        parser.print_help()
        sys.exit(1)

    config_path = args.config_file

    if not os.path.exists(config_path):
        print(f"配置文件不存在: {config_path}", file=sys.stderr)
        sys.exit(1)

    if args.validate:
        success = validate_config_file(config_path)
        sys.exit(0 if success else 1)

    log_overrides = {'log_level': args.log_level, 'log_file': args.log_file}

    if args.check_once:
        try:
            success = await check_once(config_path, log_overrides)
        except StatusMonitorError as e:
            print(f"❌ 检查失败: {e}", file=sys.stderr)
            sys.exit(1)
        sys.exit(0 if success else 1)

    try:
        app = StatusMonitorApp(config_path, serve_api=args.serve, log_overrides=log_overrides)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        await app.initialize()

        print(f"状态监控系统 v{__version__} 已启动")
        print(f"配置文件: {config_path}")
        print("按 Ctrl+C 停止程序")

        await app.start()

    except KeyboardInterrupt:
        print("\n用户中断程序")
    except ConfigError as e:
        print(f"配置错误: {e}", file=sys.stderr)
        sys.exit(1)
    except StatusMonitorError as e:
        print(f"状态监控系统错误: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        if app:
            await app.stop()


def cli():
    """命令行入口"""
    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())

    asyncio.run(main())


if __name__ == "__main__":
    cli()
