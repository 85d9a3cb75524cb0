"""
证书过期评估服务
"""
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ..models import CertificateInfo, ProbeConfig, StatusVerdict
from .error_handler import VerificationError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def match_server_name(server_name: str, subjects: List[str]) -> bool:
    """
    判断 servername 是否包含在证书主题名称中

    通配符名称 '*.example.com' 与 servername 去掉最左侧标签后的部分比较，
    其余名称要求完全相同。

    Args:
        server_name: 请求的 servername
        subjects: 证书主题名称

    Returns:
        bool: 是否匹配
    """
    for subject in subjects:
        if subject.startswith("*."):
            if subject.split(".")[1:] == server_name.split(".")[1:]:
                return True
        elif subject == server_name:
            return True
    return False


class ExpiryEvaluator:
    """证书过期评估器"""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        """
        初始化过期评估器

        Args:
            clock: 返回当前 UTC 时间的函数，默认使用系统时间
        """
        self.clock = clock or utc_now

    def calculate_days_remaining(self, not_after: datetime) -> int:
        """
        计算剩余天数

        按小时数除以24后向零截断，23.9小时后过期为0天，已过期为负数。

        Args:
            not_after: 过期时间

        Returns:
            int: 剩余天数
        """
        hours = (not_after - self.clock()).total_seconds() / 3600
        return int(hours / 24)

    def verify_server_name(self, cert_info: CertificateInfo, server_name: str):
        """
        校验 servername

        Raises:
            VerificationError: servername 不在证书主题名称中
        """
        if not match_server_name(server_name, cert_info.subjects):
            raise VerificationError(server_name, cert_info.subjects)

    def evaluate(self, cert_info: CertificateInfo, config: ProbeConfig) -> StatusVerdict:
        """
        根据证书信息和阈值给出检查结论

        Args:
            cert_info: 证书信息
            config: 探测配置

        Returns:
            StatusVerdict: 检查结论
        """
        if config.verify_server_name:
            try:
                self.verify_server_name(cert_info, config.server_name)
            except VerificationError as e:
                return StatusVerdict.critical(str(e))

        days_remaining = self.calculate_days_remaining(cert_info.not_after)
        message = f"Expiration date: {cert_info.expiry_date}, {days_remaining} days remaining"

        if days_remaining < config.critical_days:
            return StatusVerdict.critical(message)
        elif days_remaining < config.warning_days:
            return StatusVerdict.warning(message)
        return StatusVerdict.ok(message)
