"""配置验证工具"""

from typing import Dict, Any

from .exceptions import ConfigError

SUPPORTED_KINDS = ['internal', 'thirdParty']
SUPPORTED_PARSERS = ['keyword', 'firebase', 'google']
SUPPORTED_COMPONENT_TYPES = ['main', 'auth', 'api', 'database', 'cdn', 'other']
SUPPORTED_STATES = ['operational', 'unknown', 'maintenance', 'degraded', 'partialOutage',
                    'majorOutage', 'down']
SUPPORTED_STORAGE = ['memory', 'file', 'redis']
SUPPORTED_METHODS = ['GET', 'HEAD', 'POST', 'OPTIONS']


def _is_http_url(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(('http://', 'https://'))


def _is_positive_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


class ConfigValidator:
    """配置验证器"""

    @staticmethod
    def validate_target_config(target_id: str, config: Dict[str, Any]) -> None:
        """
        验证监控目标配置

        Args:
            target_id: 目标ID
            config: 目标配置

        Raises:
            ConfigError: 配置验证失败
        """
        if not isinstance(config, dict):
            raise ConfigError(f"目标 '{target_id}' 的配置必须是字典类型")

        for field in ('name', 'url'):
            if field not in config:
                raise ConfigError(f"目标 '{target_id}' 缺少必需的配置项: {field}")

        if not _is_http_url(config['url']):
            raise ConfigError(f"目标 '{target_id}' 的 url 必须以 http:// 或 https:// 开头")

        kind = config.get('kind', 'internal')
        if kind not in SUPPORTED_KINDS:
            raise ConfigError(f"目标 '{target_id}' 的类型 '{kind}' 不受支持。支持的类型: {SUPPORTED_KINDS}")

        parser = config.get('parser', 'keyword')
        if parser not in SUPPORTED_PARSERS:
            raise ConfigError(
                f"目标 '{target_id}' 的解析器 '{parser}' 不受支持。支持的解析器: {SUPPORTED_PARSERS}")

        timeout = config.get('timeout')
        if timeout is not None and not _is_positive_number(timeout):
            raise ConfigError(f"目标 '{target_id}' 的 timeout 必须是正数")

        signatures = config.get('signatures', [])
        if not isinstance(signatures, list):
            raise ConfigError(f"目标 '{target_id}' 的 signatures 必须是列表")
        for rule in signatures:
            ConfigValidator.validate_signature_config(target_id, rule)

        components = config.get('components', [])
        if not isinstance(components, list):
            raise ConfigError(f"目标 '{target_id}' 的 components 必须是列表")

        seen = set()
        for component in components:
            ConfigValidator.validate_component_config(target_id, component)
            if component['id'] in seen:
                raise ConfigError(f"目标 '{target_id}' 的组件ID重复: {component['id']}")
            seen.add(component['id'])

    @staticmethod
    def validate_signature_config(target_id: str, rule: Any) -> None:
        if not isinstance(rule, dict) or not rule.get('phrase'):
            raise ConfigError(f"目标 '{target_id}' 的内容特征规则必须包含 phrase")

        state = rule.get('state', 'degraded')
        if state not in SUPPORTED_STATES:
            raise ConfigError(f"目标 '{target_id}' 的内容特征状态 '{state}' 无效")

    @staticmethod
    def validate_component_config(target_id: str, component: Any) -> None:
        """
        验证组件配置

        Raises:
            ConfigError: 配置验证失败
        """
        if not isinstance(component, dict):
            raise ConfigError(f"目标 '{target_id}' 的组件配置必须是字典类型")

        for field in ('id', 'name'):
            if not component.get(field):
                raise ConfigError(f"目标 '{target_id}' 的组件缺少必需的配置项: {field}")

        component_type = component.get('type', 'other')
        if component_type not in SUPPORTED_COMPONENT_TYPES:
            raise ConfigError(f"组件 '{component['id']}' 的类型 '{component_type}' 不受支持")

        aliases = component.get('aliases', [])
        if not isinstance(aliases, list) or not all(isinstance(a, str) for a in aliases):
            raise ConfigError(f"组件 '{component['id']}' 的 aliases 必须是字符串列表")

        if component.get('functional'):
            check_url = component.get('check_url') or component.get('url')
            if not _is_http_url(check_url):
                raise ConfigError(f"功能性组件 '{component['id']}' 需要有效的 check_url")

            method = str(component.get('check_method', 'GET')).upper()
            if method not in SUPPORTED_METHODS:
                raise ConfigError(f"组件 '{component['id']}' 的 check_method '{method}' 不受支持")

    @staticmethod
    def validate_global_config(global_config: Dict[str, Any]) -> None:
        """
        验证全局配置

        Raises:
            ConfigError: 配置验证失败
        """
        if not isinstance(global_config, dict):
            raise ConfigError("全局配置必须是字典类型")

        check_interval = global_config.get('check_interval')
        if check_interval is not None and not _is_positive_number(check_interval):
            raise ConfigError("check_interval 必须是正数")

        poll_interval = global_config.get('config_poll_interval')
        if poll_interval is not None and not _is_positive_number(poll_interval):
            raise ConfigError("config_poll_interval 必须是正数")

        max_concurrent = global_config.get('max_concurrent_checks')
        if max_concurrent is not None:
            if not isinstance(max_concurrent, int) or max_concurrent <= 0:
                raise ConfigError("max_concurrent_checks 必须是正整数")

        log_level = global_config.get('log_level')
        if log_level is not None:
            valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
            if log_level not in valid_levels:
                raise ConfigError(f"log_level 必须是以下值之一: {valid_levels}")

        for section in ('probe', 'triple_check', 'resolver', 'cache', 'storage', 'api'):
            value = global_config.get(section)
            if value is not None and not isinstance(value, dict):
                raise ConfigError(f"{section} 配置必须是字典类型")

        cache = global_config.get('cache') or {}
        for key in ('max_writes_per_hour', 'min_write_interval', 'stale_after'):
            if key in cache and not (isinstance(cache[key], (int, float)) and cache[key] >= 0):
                raise ConfigError(f"cache.{key} 必须是非负数")

        storage = global_config.get('storage') or {}
        storage_type = storage.get('type', 'file')
        if storage_type not in SUPPORTED_STORAGE:
            raise ConfigError(f"storage.type 必须是以下值之一: {SUPPORTED_STORAGE}")

        probe = global_config.get('probe') or {}
        if 'timeout' in probe and not _is_positive_number(probe['timeout']):
            raise ConfigError("probe.timeout 必须是正数")
