"""主应用程序测试"""

import asyncio
import json
import os
import pytest
from unittest.mock import patch

from main import StatusMonitorApp
from status_monitor.storage.memory_store import MemorySnapshotStore
from status_monitor.services.config_watcher import ConfigWatcher
from status_monitor.utils.exceptions import ConfigError


def write_config(tmp_path, targets=None, serve_port=0):
    config = {
        'global': {
            'check_interval': 3600,
            'watch_config': True,
            'config_poll_interval': 0.05,
            'storage': {'type': 'memory'},
            'api': {'host': '127.0.0.1', 'port': serve_port},
        },
        'targets': targets or {
            'infinitum-view': {'name': 'Infinitum View', 'url': 'http://127.0.0.1:1/'},
        },
    }
    path = tmp_path / 'config.yaml'
    path.write_text(json.dumps(config), encoding='utf-8')
    return str(path)


class TestStatusMonitorApp:
    """StatusMonitorApp 测试类"""

    @pytest.mark.asyncio
    async def test_initialize(self, tmp_path):
        app = StatusMonitorApp(write_config(tmp_path))

        await app.initialize()

        assert isinstance(app.store, MemorySnapshotStore)
        assert list(app.monitor_scheduler.targets) == ['infinitum-view']
        assert app.config_watcher is not None
        assert app.on_demand is not None

        status = app.get_status()
        assert status['is_running'] is False
        assert status['scheduler_stats']['total_targets'] == 1
        assert status['config_reloads'] == 0

    @pytest.mark.asyncio
    async def test_initialize_missing_config(self, tmp_path):
        app = StatusMonitorApp(str(tmp_path / 'missing.yaml'))
        with pytest.raises(ConfigError):
            await app.initialize()

    @pytest.mark.asyncio
    async def test_config_change_replaces_targets(self, tmp_path):
        """测试配置热更新替换目标列表"""
        app = StatusMonitorApp(write_config(tmp_path))
        await app.initialize()

        new_config = {'targets': {
            'discord': {'name': 'Discord', 'url': 'https://discordstatus.com/'},
            'google': {'name': 'Google', 'url': 'https://www.google.com/appsstatus/'},
        }}
        app._on_config_changed_callback(app.config_manager.config, new_config)

        assert set(app.monitor_scheduler.targets) == {'discord', 'google'}

    @pytest.mark.asyncio
    async def test_start_serve_and_shutdown(self, tmp_path):
        """测试启动调度器和检查接口，然后优雅关闭"""
        app = StatusMonitorApp(write_config(tmp_path), serve_api=True)
        await app.initialize()

        task = asyncio.create_task(app.start())
        await asyncio.sleep(0.2)

        assert app.is_running
        assert app.api_runner is not None
        assert app.monitor_scheduler.is_running

        app.shutdown()
        await asyncio.wait_for(task, timeout=5)

        assert not app.is_running
        assert app.api_runner is None
        assert not app.monitor_scheduler.is_running
        assert not app.config_watcher.is_running()

    @pytest.mark.asyncio
    async def test_config_change_updates_on_demand_targets(self, tmp_path):
        app = StatusMonitorApp(write_config(tmp_path))
        await app.initialize()
        assert set(app.on_demand.targets) == {'infinitum-view'}

        new_config = {'targets': {
            'discord': {'name': 'Discord', 'url': 'https://discordstatus.com/'},
        }}
        app._on_config_changed_callback(app.config_manager.config, new_config)

        assert set(app.on_demand.targets) == {'discord'}

    @pytest.mark.asyncio
    async def test_polling_fallback_when_watcher_cannot_start(self, tmp_path):
        """测试文件监控启动失败时改为轮询配置文件"""
        config_path = write_config(tmp_path)
        app = StatusMonitorApp(config_path)
        await app.initialize()

        with patch.object(ConfigWatcher, 'start_watching',
                          side_effect=ConfigError('启动配置监控失败: inotify limit')):
            task = asyncio.create_task(app.start())
            await asyncio.sleep(0.1)

            assert app.is_running
            assert not app.config_watcher.is_running()

            # 先在别处写好新配置再整体替换，只触发一次变更
            staging = tmp_path / 'staging'
            staging.mkdir()
            new_path = write_config(staging, targets={
                'discord': {'name': 'Discord', 'url': 'https://discordstatus.com/'},
            })
            modified = os.path.getmtime(config_path) + 10
            os.utime(new_path, (modified, modified))
            os.replace(new_path, config_path)

            for _ in range(40):
                if 'discord' in app.monitor_scheduler.targets:
                    break
                await asyncio.sleep(0.05)

            assert list(app.monitor_scheduler.targets) == ['discord']
            assert app.config_watcher.reload_count == 1

            app.shutdown()
            await asyncio.wait_for(task, timeout=5)

        assert not app.is_running
        assert not app.background_tasks
