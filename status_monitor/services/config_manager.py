"""配置管理器"""

import os
from typing import Dict, Any, Optional, List

import yaml

from ..models.target import TargetDefinition
from ..utils.config_validator import ConfigValidator
from ..utils.exceptions import ConfigError, ErrorCode
from ..utils.log_manager import get_logger


class ConfigManager:
    """配置管理器，负责YAML配置文件的加载、验证和重新加载"""

    def __init__(self, config_path: str):
        """
        初始化配置管理器

        Args:
            config_path: 配置文件路径
        """
        self.config_path = config_path
        self.config: Dict[str, Any] = {}
        self.last_modified: Optional[float] = None
        self.logger = get_logger('config_manager')

    def load_config(self) -> Dict[str, Any]:
        """
        加载YAML配置文件

        Returns:
            Dict[str, Any]: 配置字典

        Raises:
            ConfigError: 配置加载或验证失败
        """
        self.logger.info(f"开始加载配置文件: {self.config_path}")

        if not os.path.exists(self.config_path):
            self.logger.error(f"配置文件不存在: {self.config_path}")
            raise ConfigError(f"配置文件不存在: {self.config_path}",
                              ErrorCode.CONFIG_FILE_NOT_FOUND, config_path=self.config_path)

        try:
            with open(self.config_path, 'r', encoding='utf-8') as file:
                config = yaml.safe_load(file)
        except yaml.YAMLError as e:
            self.logger.error(f"YAML格式错误: {e}")
            raise ConfigError(f"YAML格式错误: {e}", ErrorCode.CONFIG_PARSE_ERROR,
                              config_path=self.config_path, cause=e)
        except OSError as e:
            self.logger.error(f"读取配置文件失败: {e}")
            raise ConfigError(f"读取配置文件失败: {e}", ErrorCode.CONFIG_FILE_NOT_FOUND,
                              config_path=self.config_path, cause=e)

        if config is None:
            self.logger.error("配置文件为空")
            raise ConfigError("配置文件为空", config_path=self.config_path)

        self._validate_config(config)

        targets_count = len(config.get('targets', {}))
        components_count = sum(len(t.get('components', []))
                               for t in config.get('targets', {}).values())
        self.logger.info(f"配置验证成功，包含 {targets_count} 个目标和 {components_count} 个组件")

        old_config = self.config
        self.config = config
        self.last_modified = os.path.getmtime(self.config_path)

        if old_config:
            self._log_config_changes(old_config, config)
        else:
            self.logger.info("首次加载配置文件")

        return self.config

    def _validate_config(self, config: Any) -> None:
        """
        验证配置文件内容

        Raises:
            ConfigError: 配置验证失败
        """
        if not isinstance(config, dict):
            raise ConfigError("配置文件根节点必须是字典类型")

        if 'global' in config:
            ConfigValidator.validate_global_config(config['global'])

        targets = config.get('targets')
        if not isinstance(targets, dict) or not targets:
            raise ConfigError("targets配置必须是非空字典")

        for target_id, target_config in targets.items():
            ConfigValidator.validate_target_config(target_id, target_config)

    def get_global_config(self) -> Dict[str, Any]:
        return self.config.get('global', {})

    def get_targets_config(self) -> Dict[str, Any]:
        return self.config.get('targets', {})

    def get_target_definitions(self) -> List[TargetDefinition]:
        """把目标配置转换为目标定义，顺序与配置文件一致"""
        return [TargetDefinition.from_config(target_id, target_config)
                for target_id, target_config in self.get_targets_config().items()]

    def get_target_config(self, target_id: str) -> Optional[Dict[str, Any]]:
        return self.get_targets_config().get(target_id)

    def is_config_changed(self) -> bool:
        """
        检查配置文件是否已修改

        Returns:
            bool: 配置文件是否已修改
        """
        try:
            if not os.path.exists(self.config_path):
                return False

            current_modified = os.path.getmtime(self.config_path)
            return self.last_modified is None or current_modified > self.last_modified

        except OSError:
            return False

    def reload_config(self) -> Dict[str, Any]:
        """
        重新加载配置文件，失败时保留原有配置

        Raises:
            ConfigError: 配置重新加载失败
        """
        self.logger.info("重新加载配置文件")
        return self.load_config()

    def _log_config_changes(self, old_config: Dict[str, Any], new_config: Dict[str, Any]) -> None:
        old_targets = old_config.get('targets', {})
        new_targets = new_config.get('targets', {})

        added = set(new_targets) - set(old_targets)
        if added:
            self.logger.info(f"新增目标: {', '.join(sorted(added))}")

        removed = set(old_targets) - set(new_targets)
        if removed:
            self.logger.info(f"删除目标: {', '.join(sorted(removed))}")

        for target_id in set(old_targets) & set(new_targets):
            if old_targets[target_id] != new_targets[target_id]:
                self.logger.info(f"目标配置已修改: {target_id}")
                self.logger.debug(f"目标 {target_id} 新配置: {new_targets[target_id]}")

        if old_config.get('global', {}) != new_config.get('global', {}):
            self.logger.info("全局配置已修改，部分设置需要重启后生效")
