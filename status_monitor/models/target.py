"""监控目标定义（从静态配置加载，不可变）"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional, Tuple

from .status import HealthState


class TargetKind(Enum):
    """目标类型"""
    INTERNAL = 'internal'
    THIRD_PARTY = 'thirdParty'


class ComponentType(Enum):
    """子组件类型"""
    MAIN = 'main'
    AUTH = 'auth'
    API = 'api'
    DATABASE = 'database'
    CDN = 'cdn'
    OTHER = 'other'


@dataclass(frozen=True)
class ContentSignature:
    """内容特征规则：页面包含 phrase 时，把判定覆盖为 state/message"""
    phrase: str
    state: HealthState = HealthState.DEGRADED
    message: str = '检测到已知内容问题'


@dataclass(frozen=True)
class ComponentDefinition:
    """子组件定义"""
    id: str
    name: str
    url: str = ''
    component_type: ComponentType = ComponentType.OTHER
    aliases: Tuple[str, ...] = ()
    functional: bool = False
    check_url: Optional[str] = None
    check_method: str = 'GET'

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'ComponentDefinition':
        return cls(
            id=config['id'],
            name=config['name'],
            url=config.get('url', ''),
            component_type=ComponentType(config.get('type', 'other')),
            aliases=tuple(config.get('aliases', ())),
            functional=bool(config.get('functional', False)),
            check_url=config.get('check_url') or config.get('url') or None,
            check_method=str(config.get('check_method', 'GET')).upper(),
        )


@dataclass(frozen=True)
class TargetDefinition:
    """监控目标定义"""
    id: str
    name: str
    url: str
    kind: TargetKind = TargetKind.INTERNAL
    components: Tuple[ComponentDefinition, ...] = ()
    signatures: Tuple[ContentSignature, ...] = ()
    parser: str = 'keyword'
    timeout: Optional[float] = None

    @classmethod
    def from_config(cls, target_id: str, config: Dict[str, Any]) -> 'TargetDefinition':
        """从配置字典构建目标定义

        Args:
            target_id: 目标ID（配置中的键）
            config: 目标配置
        """
        signatures = tuple(
            ContentSignature(
                phrase=rule['phrase'],
                state=HealthState.from_value(rule.get('state', 'degraded')),
                message=rule.get('message', '检测到已知内容问题'),
            )
            for rule in config.get('signatures', [])
        )
        components = tuple(
            ComponentDefinition.from_config(component)
            for component in config.get('components', [])
        )

        return cls(
            id=target_id,
            name=config.get('name', target_id),
            url=config['url'],
            kind=TargetKind(config.get('kind', 'internal')),
            components=components,
            signatures=signatures,
            parser=config.get('parser', 'keyword'),
            timeout=config.get('timeout'),
        )
