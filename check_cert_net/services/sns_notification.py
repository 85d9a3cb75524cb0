"""
SNS通知服务
"""
import os
import time
import logging
from datetime import datetime, timezone
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..interfaces import NotificationServiceInterface
from ..models import StatusVerdict
from ..version import CHECK_NAME


class SNSNotificationService(NotificationServiceInterface):
    """SNS通知服务实现，仅在结论不是 OK 时发布"""

    def __init__(self, topic_arn: Optional[str] = None, region_name: Optional[str] = None):
        """
        初始化SNS通知服务

        Args:
            topic_arn: SNS主题ARN，如果为None则从环境变量读取
            region_name: AWS区域名称，如果为None则从ARN中提取
        """
        self.topic_arn = topic_arn or os.getenv('SNS_TOPIC_ARN')

        if region_name:
            self.region_name = region_name
        elif self.topic_arn and self.topic_arn.startswith('arn:aws:sns:'):
            self.region_name = self.topic_arn.split(':')[3]
        else:
            self.region_name = os.getenv('AWS_REGION', 'us-east-1')

        self.logger = logging.getLogger(__name__)
        self._sns_client = None

    @property
    def sns_client(self):
        """延迟创建SNS客户端，未配置主题时不访问AWS"""
        if self._sns_client is None:
            self._sns_client = boto3.client('sns', region_name=self.region_name)
            self.logger.debug(f"SNS客户端初始化成功，区域: {self.region_name}")
        return self._sns_client

    @property
    def enabled(self) -> bool:
        return bool(self.topic_arn)

    def send_verdict_notification(self, host: str, verdict: StatusVerdict) -> bool:
        """
        发送检查结论通知

        Args:
            host: 目标主机
            verdict: 检查结论

        Returns:
            bool: 发送是否成功（OK 结论或未配置主题时跳过并返回 True）
        """
        if not self.enabled:
            self.logger.debug("未配置SNS主题，跳过通知发送")
            return True

        if verdict.is_ok:
            self.logger.info(f"主机 {host} 证书状态正常，无需发送通知")
            return True

        subject = self._format_subject(host, verdict)
        message = self.format_notification_content(host, verdict)

        return self._publish_with_retry(subject, message)

    def _publish_with_retry(self, subject: str, message: str, max_retries: int = 3) -> bool:
        """
        带重试机制的SNS消息发布

        Args:
            subject: 消息主题
            message: 消息内容
            max_retries: 最大重试次数

        Returns:
            bool: 发送是否成功
        """
        for attempt in range(max_retries + 1):
            try:
                response = self.sns_client.publish(
                    TopicArn=self.topic_arn,
                    Subject=subject,
                    Message=message
                )

                self.logger.info(f"SNS通知发送成功，MessageId: {response.get('MessageId')}")
                return True

            except ClientError as e:
                error_code = e.response['Error']['Code']
                error_message = e.response['Error']['Message']

                if self._is_retryable_error(error_code) and attempt < max_retries:
                    wait_time = 2 ** attempt
                    self.logger.warning(
                        f"SNS发送失败 (尝试 {attempt + 1}/{max_retries + 1}) - {error_code}: {error_message}，"
                        f"{wait_time}秒后重试"
                    )
                    time.sleep(wait_time)
                    continue

                self.logger.error(f"SNS发送失败 - {error_code}: {error_message}")
                return False

            except BotoCoreError as e:
                if attempt < max_retries:
                    wait_time = 2 ** attempt
                    self.logger.warning(
                        f"发送SNS通知时发生错误 (尝试 {attempt + 1}/{max_retries + 1}): {str(e)}，"
                        f"{wait_time}秒后重试"
                    )
                    time.sleep(wait_time)
                    continue

                self.logger.error(f"发送SNS通知时发生错误: {str(e)}")
                return False

        return False

    def _is_retryable_error(self, error_code: str) -> bool:
        """
        判断错误是否可重试

        Args:
            error_code: AWS错误代码

        Returns:
            bool: 是否可重试
        """
        return error_code in {
            'Throttling',
            'ServiceUnavailable',
            'InternalError',
            'RequestTimeout'
        }

    def _format_subject(self, host: str, verdict: StatusVerdict) -> str:
        """格式化通知主题，SNS 要求主题为 ASCII 且少于100个字符"""
        subject = f"[{verdict.status.name}] {CHECK_NAME}: {host}"
        return subject.encode('ascii', errors='replace').decode('ascii')[:99]

    def format_notification_content(self, host: str, verdict: StatusVerdict) -> str:
        """
        格式化通知内容

        Args:
            host: 目标主机
            verdict: 检查结论

        Returns:
            str: 格式化的通知内容
        """
        lines = [
            "SSL证书检查报告",
            "=" * 30,
            f"检查时间: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')} UTC",
            f"主机: {host}",
            f"状态: {verdict.status.name}",
            f"详情: {verdict.message}",
            "",
            verdict.format(CHECK_NAME),
        ]
        return "\n".join(lines)

    def test_connection(self) -> bool:
        """
        测试SNS主题是否可访问

        Returns:
            bool: 主题是否可访问
        """
        if not self.enabled:
            return False

        try:
            self.sns_client.get_topic_attributes(TopicArn=self.topic_arn)
            self.logger.info("SNS连接测试成功")
            return True
        except (ClientError, BotoCoreError) as e:
            self.logger.error(f"SNS连接测试失败: {str(e)}")
            return False

    def get_configuration_status(self) -> dict:
        """
        获取配置状态

        Returns:
            dict: 配置状态
        """
        return {
            'topic_arn_configured': self.enabled,
            'topic_arn': self.topic_arn,
            'region_name': self.region_name,
            'configuration_valid': bool(self.topic_arn and self.topic_arn.startswith('arn:aws:sns:'))
        }
