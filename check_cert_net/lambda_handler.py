"""
AWS Lambda函数入口点
"""
import shutil
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from .models import ProbeConfig, StatusVerdict
from .services.cert_checker import CertificateChecker
from .services.config_validator import ConfigValidator
from .services.error_handler import ConfigurationError
from .services.logger import LoggerService
from .services.sns_notification import SNSNotificationService


class CertificateProbeMonitor:
    """证书探测监控器主类"""

    def __init__(self, topic_arn: Optional[str] = None):
        """
        初始化监控器

        Args:
            topic_arn: SNS主题ARN，如果为None则从环境变量读取
        """
        self.logger_service = LoggerService()
        self.config_validator = ConfigValidator()
        self.checker = CertificateChecker(logger_service=self.logger_service)
        self.notification_service = SNSNotificationService(topic_arn=topic_arn)

    def build_config(self, values: Optional[Dict[str, Any]] = None) -> ProbeConfig:
        """构建并记录探测配置"""
        config = self.config_validator.build_config(values)

        settings = self.logger_service.config_to_dict(config)
        settings['sns_topic_arn'] = self.notification_service.topic_arn or ''
        self.logger_service.log_configuration_info(settings)

        return config

    def execute(self, config: ProbeConfig) -> StatusVerdict:
        """
        执行一次证书检查

        Args:
            config: 探测配置

        Returns:
            StatusVerdict: 检查结论
        """
        verdict = self.checker.check(config)
        self.notify(config.host, verdict)
        return verdict

    def notify(self, host: str, verdict: StatusVerdict) -> bool:
        """发送通知，通知失败不影响检查结论"""
        try:
            sent = self.notification_service.send_verdict_notification(host, verdict)
        except Exception as e:
            self.logger_service.logger.error(f"发送通知时发生错误: {str(e)}")
            return False

        if not sent:
            self.logger_service.logger.error(f"主机 {host} 的检查结论通知发送失败")
        return sent

    def validate_system_health(self, values: Optional[Dict[str, Any]] = None) -> dict:
        """
        验证系统健康状态

        Args:
            values: 配置项，与检查时相同

        Returns:
            dict: 系统健康状态信息
        """
        health_status = {
            'overall_healthy': True,
            'components': {},
            'issues': []
        }

        try:
            # 检查探测配置
            config = None
            try:
                config = self.config_validator.build_config(values)
                health_status['components']['probe_config'] = {
                    'healthy': True,
                    'details': self.logger_service.config_to_dict(config)
                }
            except ConfigurationError as e:
                health_status['components']['probe_config'] = {
                    'healthy': False,
                    'details': {'error': str(e)}
                }
                health_status['issues'].append(f"探测配置无效: {str(e)}")
                health_status['overall_healthy'] = False

            # 检查 openssl 可执行文件
            openssl_path = config.openssl_path if config else ProbeConfig.openssl_path
            resolved_path = shutil.which(openssl_path)
            health_status['components']['openssl'] = {
                'healthy': resolved_path is not None,
                'details': {'openssl_path': openssl_path, 'resolved_path': resolved_path}
            }

            if resolved_path is None:
                health_status['issues'].append(f"找不到 openssl 可执行文件: {openssl_path}")
                health_status['overall_healthy'] = False

            # 检查SNS配置，未配置主题时通知关闭，不算异常
            sns_config = self.notification_service.get_configuration_status()
            sns_healthy = not sns_config['topic_arn_configured'] or sns_config['configuration_valid']
            health_status['components']['sns_notification'] = {
                'healthy': sns_healthy,
                'details': sns_config
            }

            if not sns_healthy:
                health_status['issues'].append("SNS通知配置无效")
                health_status['overall_healthy'] = False

            # 测试SNS连接
            if sns_config['configuration_valid']:
                sns_connection = self.notification_service.test_connection()
                health_status['components']['sns_connection'] = {
                    'healthy': sns_connection,
                    'details': {'connection_test': sns_connection}
                }

                if not sns_connection:
                    health_status['issues'].append("SNS连接测试失败")
                    health_status['overall_healthy'] = False

        except Exception as e:
            health_status['overall_healthy'] = False
            health_status['issues'].append(f"健康检查时发生错误: {str(e)}")

        return health_status


def _response(status_code: int, verdict: StatusVerdict, values: Dict[str, Any],
              execution_summary: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'body': {
            'status': verdict.status.name,
            'message': verdict.message,
            'exit_code': verdict.exit_code,
            'host': values.get('host'),
            'port': values.get('port'),
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'execution_summary': execution_summary
        }
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda函数入口点

    Args:
        event: 触发事件，键与 ProbeConfig 字段相同（host、port、server_name 等），
            action 为 health_check 时只验证系统健康状态
        context: Lambda运行时上下文

    Returns:
        dict: 检查结论和执行摘要，或健康状态
    """
    event = event or {}
    monitor = CertificateProbeMonitor(topic_arn=event.get('sns_topic_arn'))

    if event.get('action') == 'health_check':
        health_status = monitor.validate_system_health(event)
        return {
            'statusCode': 200 if health_status['overall_healthy'] else 503,
            'body': health_status
        }

    try:
        config = monitor.build_config(event)
    except ConfigurationError as e:
        verdict = StatusVerdict.critical(str(e))
        monitor.logger_service.log_error(str(event.get('host')), e)
        monitor.notify(str(event.get('host')), verdict)
        return _response(400, verdict, event, monitor.logger_service.get_execution_summary())

    verdict = monitor.execute(config)
    return _response(200, verdict, {'host': config.host, 'port': config.port},
                     monitor.logger_service.get_execution_summary())
