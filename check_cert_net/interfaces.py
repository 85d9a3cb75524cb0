"""
服务接口定义
"""
from abc import ABC, abstractmethod
from typing import Any, BinaryIO, Dict, Optional

from .models import CertificateInfo, CommandSpec, ExtractMode, PipelineResult, ProbeConfig, StatusVerdict


class PipelineRunnerInterface(ABC):
    """子进程管道执行器接口"""

    @abstractmethod
    def run(self, spec: CommandSpec, stdout: BinaryIO, stderr: BinaryIO, context) -> None:
        """执行管道，输出写入 stdout / stderr"""
        pass

    @abstractmethod
    def execute(self, spec: CommandSpec, context, merge_output: bool = False) -> PipelineResult:
        """执行管道并收集结果，管道失败记录在结果中而不是抛出"""
        pass


class CertificateParserInterface(ABC):
    """证书输出解析器接口"""

    @abstractmethod
    def parse(self, text: str, mode: ExtractMode) -> CertificateInfo:
        """按提取方式解析输出"""
        pass

    @abstractmethod
    def parse_dates(self, text: str) -> CertificateInfo:
        """解析 -dates 输出"""
        pass

    @abstractmethod
    def parse_text(self, text: str) -> CertificateInfo:
        """解析 -text 输出"""
        pass


class CertificateCheckerInterface(ABC):
    """证书检查器接口"""

    @abstractmethod
    def check(self, config: ProbeConfig) -> StatusVerdict:
        """执行一次检查"""
        pass


class NotificationServiceInterface(ABC):
    """通知服务接口"""

    @abstractmethod
    def send_verdict_notification(self, host: str, verdict: StatusVerdict) -> bool:
        """发送检查结论通知"""
        pass

    @abstractmethod
    def format_notification_content(self, host: str, verdict: StatusVerdict) -> str:
        """格式化通知内容"""
        pass


class LoggerServiceInterface(ABC):
    """日志服务接口"""

    @abstractmethod
    def log_check_start(self, config: ProbeConfig):
        """记录检查开始"""
        pass

    @abstractmethod
    def log_certificate_info(self, host: str, cert_info: CertificateInfo):
        """记录证书信息"""
        pass

    @abstractmethod
    def log_error(self, host: str, error: Exception, error_info: Optional[Dict[str, Any]] = None):
        """记录错误信息"""
        pass
