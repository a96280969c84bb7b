"""CLI接口功能测试"""

import json
import pytest
from contextlib import asynccontextmanager
from unittest.mock import patch

from aiohttp import web
from aiohttp import test_utils

from main import (create_argument_parser, validate_config_file, check_once, check_url, main,
                  __version__)

VALID_CONFIG = """
targets:
  infinitum-view:
    name: Infinitum View
    url: https://view.example.com/
"""


@asynccontextmanager
async def status_server():
    async def healthy(request):
        return web.Response(text='<p>Welcome</p>', content_type='text/html')

    async def broken(request):
        return web.Response(status=502, text='bad gateway')

    app = web.Application()
    app.router.add_get('/healthy', healthy)
    app.router.add_get('/broken', broken)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()


def write_config(tmp_path, server, include_broken=False):
    targets = {
        'healthy': {'name': 'Healthy', 'url': str(server.make_url('/healthy'))},
    }
    if include_broken:
        targets['broken'] = {'name': 'Broken', 'url': str(server.make_url('/broken'))}

    config = {
        'global': {
            'check_interval': 60,
            'watch_config': False,
            'probe': {'timeout': 5},
            'triple_check': {'first_delay': 0.01, 'second_delay': 0.01},
            'storage': {'type': 'file', 'path': str(tmp_path / 'data')},
        },
        'targets': targets,
    }
    path = tmp_path / 'config.yaml'
    # JSON 是合法的 YAML
    path.write_text(json.dumps(config), encoding='utf-8')
    return str(path)


class TestArgumentParser:
    """命令行参数解析器测试"""

    def test_create_argument_parser(self):
        parser = create_argument_parser()
        assert parser.prog == 'status-monitor'
        assert '状态监控系统' in parser.description

    def test_parse_basic_args(self):
        args = create_argument_parser().parse_args(['config.yaml'])
        assert args.config_file == 'config.yaml'
        assert not args.validate
        assert not args.check_once
        assert not args.serve
        assert args.check_url is None

    def test_parse_flags(self):
        args = create_argument_parser().parse_args(
            ['--serve', '--log-level', 'DEBUG', '--log-file', 'x.log', 'config.yaml'])
        assert args.serve
        assert args.log_level == 'DEBUG'
        assert args.log_file == 'x.log'

    def test_parse_check_url(self):
        args = create_argument_parser().parse_args(
            ['--check-url', 'https://example.com', '--target-id', 'view'])
        assert args.check_url == 'https://example.com'
        assert args.target_id == 'view'
        assert args.config_file is None

    def test_invalid_log_level(self):
        with pytest.raises(SystemExit):
            create_argument_parser().parse_args(['--log-level', 'VERBOSE', 'config.yaml'])

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            create_argument_parser().parse_args(['--version'])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out


class TestValidateConfigFile:
    """配置文件验证测试"""

    def test_valid(self, tmp_path, capsys):
        path = tmp_path / 'config.yaml'
        path.write_text(VALID_CONFIG, encoding='utf-8')

        assert validate_config_file(str(path))
        assert 'infinitum-view' in capsys.readouterr().out

    def test_invalid(self, tmp_path, capsys):
        path = tmp_path / 'config.yaml'
        path.write_text('targets: {}\n', encoding='utf-8')

        assert not validate_config_file(str(path))
        assert '验证失败' in capsys.readouterr().out


class TestCheckCommands:
    """--check-once 和 --check-url 测试"""

    @pytest.mark.asyncio
    async def test_check_once_all_healthy(self, tmp_path):
        """测试执行一个周期并写入文件存储"""
        async with status_server() as server:
            config_path = write_config(tmp_path, server)
            assert await check_once(config_path)

        document = json.loads((tmp_path / 'data' / 'snapshots.json').read_text(encoding='utf-8'))
        assert document['snapshots']['healthy']['state'] == 'operational'
        assert document['last_update']['writtenCount'] == 1

    @pytest.mark.asyncio
    async def test_check_once_with_failing_target(self, tmp_path, capsys):
        async with status_server() as server:
            config_path = write_config(tmp_path, server, include_broken=True)
            assert not await check_once(config_path)

        output = capsys.readouterr().out
        assert 'broken: down - HTTP 502' in output

    @pytest.mark.asyncio
    async def test_check_url(self, capsys):
        async with status_server() as server:
            ok = await check_url(str(server.make_url('/broken')), 'broken')

        output = capsys.readouterr().out
        result = json.loads(output[output.index('{'):])
        assert not ok
        assert result['statusCode'] == 502
        assert result['state'] == 'down'


class TestMain:
    """main 函数退出码测试"""

    @pytest.mark.asyncio
    async def test_no_arguments_prints_help(self):
        with patch('sys.argv', ['status-monitor']):
            with pytest.raises(SystemExit) as exc_info:
                await main()
        assert exc_info.value.code == 1

    @pytest.mark.asyncio
    async def test_missing_config_file(self, tmp_path):
        with patch('sys.argv', ['status-monitor', str(tmp_path / 'missing.yaml')]):
            with pytest.raises(SystemExit) as exc_info:
                await main()
        assert exc_info.value.code == 1

    @pytest.mark.asyncio
    async def test_validate(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text(VALID_CONFIG, encoding='utf-8')

        with patch('sys.argv', ['status-monitor', '--validate', str(path)]):
            with pytest.raises(SystemExit) as exc_info:
                await main()
        assert exc_info.value.code == 0

    @pytest.mark.asyncio
    async def test_check_url_without_value_is_invalid_input(self):
        """测试空url返回退出码2且不发出请求"""
        with patch('sys.argv', ['status-monitor', '--check-url', ' ']):
            with pytest.raises(SystemExit) as exc_info:
                await main()
        assert exc_info.value.code == 2
