"""
配置验证服务
"""
import os
import re
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from ..models import ExtractMode, ProbeConfig
from .error_handler import ConfigurationError


DURATION_PATTERN = re.compile(r'(?P<value>\d+(?:\.\d*)?|\.\d+)(?P<unit>ms|us|µs|ns|h|m|s)')
DURATION_UNITS = {
    'h': 3600.0,
    'm': 60.0,
    's': 1.0,
    'ms': 1e-3,
    'us': 1e-6,
    'µs': 1e-6,
    'ns': 1e-9,
}

# 配置项 -> 环境变量
ENV_DEFAULTS = {
    'host': 'CHECK_CERT_HOST',
    'port': 'CHECK_CERT_PORT',
    'server_name': 'CHECK_CERT_SERVERNAME',
    'timeout': 'CHECK_CERT_TIMEOUT',
    'critical_days': 'CHECK_CERT_CRITICAL',
    'warning_days': 'CHECK_CERT_WARNING',
    'openssl_path': 'OPENSSL_PATH',
}

BOOL_FIELDS = ('verify_server_name', 'prefer_rsa', 'prefer_ecdsa', 'merge_output')
TRUE_VALUES = {'1', 'true', 'yes', 'on'}


def parse_duration(value: Union[str, int, float]) -> float:
    """
    解析时长，支持 '5s'、'500ms'、'1m30s'，纯数字按秒处理

    Args:
        value: 时长

    Returns:
        float: 秒数

    Raises:
        ValueError: 格式无效
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    text = value.strip()
    try:
        return float(text)
    except ValueError:
        pass

    position = 0
    total = 0.0
    for match in DURATION_PATTERN.finditer(text):
        if match.start() != position:
            break
        total += float(match.group('value')) * DURATION_UNITS[match.group('unit')]
        position = match.end()

    if position == 0 or position != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return total


class ConfigValidator:
    """探测配置构建与验证器"""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        """
        初始化配置验证器

        Args:
            environ: 环境变量，默认为 os.environ
        """
        self.environ = os.environ if environ is None else environ
        self.logger = logging.getLogger(__name__)

    def build_config(self, values: Optional[Mapping[str, Any]] = None) -> ProbeConfig:
        """
        构建探测配置，未提供的配置项从环境变量读取

        Args:
            values: 配置项（命令行参数或 Lambda 事件）

        Returns:
            ProbeConfig: 已验证的探测配置

        Raises:
            ConfigurationError: 配置无效
        """
        values = dict(values or {})
        kwargs: Dict[str, Any] = {}
        errors: List[str] = []

        for name, env_var in ENV_DEFAULTS.items():
            value = values.get(name)
            if value is None:
                value = self.environ.get(env_var)
            if value is not None and value != "":
                kwargs[name] = value

        for name in BOOL_FIELDS:
            value = values.get(name)
            if value is not None:
                kwargs[name] = self._to_bool(value)

        if 'timeout' in kwargs:
            try:
                kwargs['timeout'] = parse_duration(kwargs['timeout'])
            except ValueError as e:
                errors.append(f"timeout: {e}")
                del kwargs['timeout']

        for name in ('critical_days', 'warning_days'):
            if name in kwargs:
                try:
                    kwargs[name] = int(kwargs[name])
                except (TypeError, ValueError):
                    errors.append(f"{name}: invalid integer {kwargs[name]!r}")
                    del kwargs[name]

        if 'port' in kwargs:
            kwargs['port'] = str(kwargs['port'])

        mode = values.get('extract_mode')
        if mode is not None:
            try:
                kwargs['extract_mode'] = mode if isinstance(mode, ExtractMode) else ExtractMode(mode)
            except ValueError:
                errors.append(f"extract_mode: unknown mode {mode!r}")

        if errors:
            raise ConfigurationError("; ".join(errors))

        config = ProbeConfig(**kwargs)
        result = self.validate(config)

        for warning in result['warnings']:
            self.logger.warning(warning)

        if not result['is_valid']:
            raise ConfigurationError("; ".join(result['errors']))

        return config

    def validate(self, config: ProbeConfig) -> Dict[str, Any]:
        """
        验证探测配置

        Args:
            config: 探测配置

        Returns:
            Dict[str, Any]: 验证结果
        """
        result = {
            'is_valid': True,
            'errors': [],
            'warnings': []
        }

        if not config.host:
            result['errors'].append("host must not be empty")

        if not self._validate_port(config.port):
            result['errors'].append(f"invalid port {config.port!r}")

        if config.timeout <= 0:
            result['errors'].append(f"timeout must be positive, got {config.timeout}")

        if config.critical_days < 0 or config.warning_days < 0:
            result['errors'].append("thresholds must not be negative")

        if config.prefer_rsa and config.prefer_ecdsa:
            result['errors'].append("cannot use --rsa and --ecdsa at the same time")

        if config.verify_server_name:
            if not config.server_name:
                result['errors'].append("--verify-servername requires --servername")
            if config.extract_mode is ExtractMode.DATES:
                result['errors'].append("--verify-servername cannot be used with --dates-only")

        if config.critical_days > config.warning_days:
            result['warnings'].append(
                f"critical threshold ({config.critical_days}) is greater than "
                f"warning threshold ({config.warning_days}), WARNING will never be reported"
            )

        result['is_valid'] = not result['errors']
        return result

    def _validate_port(self, port: Union[str, int]) -> bool:
        try:
            number = int(port)
        except (TypeError, ValueError):
            return False
        return 0 < number < 65536

    def _to_bool(self, value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in TRUE_VALUES
        return bool(value)
