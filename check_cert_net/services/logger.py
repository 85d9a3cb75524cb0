"""
日志服务
"""
import os
import logging
import traceback
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from ..interfaces import LoggerServiceInterface
from ..models import CertificateInfo, CommandSpec, ProbeConfig, Status, StatusVerdict


class LoggerService(LoggerServiceInterface):
    """日志服务实现，日志写入标准错误，标准输出留给检查结论"""

    def __init__(self, logger_name: str = "check_cert_net", log_level: Optional[str] = None):
        """
        初始化日志服务

        Args:
            logger_name: 日志器名称
            log_level: 日志级别，如果为None则从环境变量读取
        """
        self.logger_name = logger_name
        self.log_level = log_level or os.getenv('LOG_LEVEL', 'WARNING')

        self.logger = logging.getLogger(logger_name)
        self._configure_logger()

        self.execution_stats = self._empty_stats()

    def _configure_logger(self):
        """配置日志器"""
        level = getattr(logging, self.log_level.upper(), logging.WARNING)
        self.logger.setLevel(level)

        # 避免重复添加处理器
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(level)

            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            handler.setFormatter(formatter)

            self.logger.addHandler(handler)

        self.logger.propagate = False

    def _empty_stats(self) -> Dict[str, Any]:
        return {
            'start_time': None,
            'end_time': None,
            'host': None,
            'status': None,
            'message': None,
            'errors': []
        }

    def log_check_start(self, config: ProbeConfig):
        """
        记录检查开始

        Args:
            config: 探测配置
        """
        # 同一个日志服务可用于多次检查，每次检查的统计独立
        self.reset_stats()
        self.execution_stats['start_time'] = datetime.now(timezone.utc)
        self.execution_stats['host'] = config.host

        self.logger.info(f"开始检查证书 - 目标: {config.target}, servername: {config.server_name or '(none)'}")
        self.logger.debug(f"检查开始时间: {self.execution_stats['start_time'].isoformat()}")

    def log_command(self, spec: CommandSpec):
        """记录将要执行的管道命令"""
        self.logger.debug(f"执行命令: {spec}")

    def log_certificate_info(self, host: str, cert_info: CertificateInfo):
        """
        记录证书信息

        Args:
            host: 目标主机
            cert_info: 证书信息
        """
        subjects = ", ".join(cert_info.subjects) if cert_info.subjects else "(none)"
        self.logger.info(
            f"证书信息 - 主机: {host}, "
            f"过期时间: {cert_info.not_after.isoformat()}, "
            f"主题名称: {subjects}"
        )

    def log_verdict(self, host: str, verdict: StatusVerdict):
        """
        记录检查结论

        Args:
            host: 目标主机
            verdict: 检查结论
        """
        self.execution_stats['status'] = verdict.status.name
        self.execution_stats['message'] = verdict.message

        if verdict.status is Status.OK:
            self.logger.info(f"证书正常 - 主机: {host}, {verdict.message}")
        elif verdict.status is Status.WARNING:
            self.logger.warning(f"证书即将过期 - 主机: {host}, {verdict.message}")
        else:
            self.logger.error(f"证书检查严重 - 主机: {host}, {verdict.message}")

    def log_error(self, host: str, error: Exception, error_info: Optional[Dict[str, Any]] = None):
        """
        记录错误信息

        Args:
            host: 目标主机
            error: 异常对象
            error_info: 错误处理器给出的错误详情（含建议），为None时只记录类型和消息
        """
        if error_info is None:
            error_info = {
                'host': host,
                'error_type': type(error).__name__,
                'error_message': str(error),
                'timestamp': datetime.now(timezone.utc).isoformat()
            }

        self.execution_stats['errors'].append(error_info)

        message = f"主机 {host} 检查时发生错误: {type(error).__name__}: {str(error)}"
        if error_info.get('suggested_action'):
            message += f"，建议: {error_info['suggested_action']}"
        self.logger.error(message)

        # 详细的堆栈跟踪（调试级别）
        self.logger.debug(f"主机 {host} 错误堆栈跟踪:\n{traceback.format_exc()}")

    def log_check_end(self):
        """记录检查结束"""
        self.execution_stats['end_time'] = datetime.now(timezone.utc)

        if self.execution_stats['start_time']:
            duration = (self.execution_stats['end_time'] - self.execution_stats['start_time']).total_seconds()
        else:
            duration = 0

        self.logger.info(f"证书检查完成，耗时 {duration:.2f} 秒，结果: {self.execution_stats['status']}")

    def log_configuration_info(self, config: Dict[str, Any]):
        """
        记录配置信息

        Args:
            config: 配置信息字典
        """
        safe_config = self._sanitize_config(config)

        self.logger.debug("检查配置信息:")
        for key, value in safe_config.items():
            self.logger.debug(f"  {key}: {value}")

    def config_to_dict(self, config: ProbeConfig) -> Dict[str, Any]:
        """将探测配置转换为可记录的字典"""
        values = asdict(config)
        values['extract_mode'] = config.extract_mode.value
        return values

    def _sanitize_config(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        清理配置信息中的敏感数据

        Args:
            config: 原始配置

        Returns:
            Dict[str, Any]: 清理后的配置
        """
        safe_config = {}
        for key, value in config.items():
            key_lower = key.lower()

            is_sensitive = (
                key_lower in {'password', 'secret', 'token', 'key', 'sns_topic_arn'} or
                key_lower.endswith('_key') or
                key_lower.endswith('_secret') or
                key_lower.endswith('_token')
            )

            if is_sensitive and isinstance(value, str) and value:
                if value.startswith('arn:'):
                    # ARN只显示前缀和主题名
                    parts = value.split(':')
                    if len(parts) >= 6:
                        safe_value = f"{':'.join(parts[:3])}:***:{parts[-1]}"
                    else:
                        safe_value = "***"
                else:
                    safe_value = value[:3] + "***" if len(value) > 3 else "***"
                safe_config[key] = safe_value
            else:
                safe_config[key] = value

        return safe_config

    def get_execution_summary(self) -> Dict[str, Any]:
        """
        获取执行摘要

        Returns:
            Dict[str, Any]: 执行摘要信息
        """
        duration = 0
        if self.execution_stats['start_time'] and self.execution_stats['end_time']:
            duration = (self.execution_stats['end_time'] - self.execution_stats['start_time']).total_seconds()

        return {
            'start_time': self.execution_stats['start_time'].isoformat() if self.execution_stats['start_time'] else None,
            'end_time': self.execution_stats['end_time'].isoformat() if self.execution_stats['end_time'] else None,
            'duration_seconds': duration,
            'host': self.execution_stats['host'],
            'status': self.execution_stats['status'],
            'message': self.execution_stats['message'],
            'error_count': len(self.execution_stats['errors']),
            'errors': self.execution_stats['errors']
        }

    def reset_stats(self):
        """重置执行统计"""
        self.execution_stats = self._empty_stats()
